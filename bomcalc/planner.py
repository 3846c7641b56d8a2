# =============================================================================
# BOMCALC ENGINE - PRODUCTION PLANNER
# =============================================================================
# Orchestrates multi-product plans, the partial-plan optimizer and the
# due-date production schedule.
#
# KEY PRINCIPLES:
# - Infeasible plans never degrade silently: partial plans need allow_partial
# - The optimizer evaluates every product on its own; priority_mode is
#   accepted and validated but does not change allocation
# - The schedule is a greedy single pass in due-date order over a running
#   material ledger; it is not a globally optimal packing
# =============================================================================

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional
import logging

from .aggregate import (
    MultiProductBatchResult,
    calculate_multi_product_batch,
    validate_production_plan,
)
from .batch import MaterialShortage, batch_requirements_for, quantize_money
from .config import EngineSettings
from .entities import ZERO, format_quantity
from .errors import (
    BomError,
    InvalidInput,
    NoActiveRecipe,
    ProductError,
    ProductNotFound,
    require_positive_int,
)
from .explosion import availability_for, require_bom

logger = logging.getLogger(__name__)

PRIORITY_MODES = ("balanced", "maximize_quantity", "minimize_cost")


@dataclass
class ProductPlanOutcome:
    """Optimizer verdict for one product."""
    product_id: str
    requested: int
    status: str  # fully_feasible | partially_feasible | infeasible | error
    product_name: Optional[str] = None
    suggested: int = 0
    reduction_percentage: Optional[Decimal] = None
    reason: Optional[str] = None


@dataclass
class OptimizedPlan:
    feasible_products: List[ProductPlanOutcome] = field(default_factory=list)
    infeasible_products: List[ProductPlanOutcome] = field(default_factory=list)
    total_products: int = 0
    feasible_count: int = 0
    recommendations: List[str] = field(default_factory=list)


@dataclass
class ProductionPlanResult:
    status: str  # feasible | infeasible | optimized
    message: str
    priority_mode: str
    original_requirements: Dict[str, int]
    analysis: MultiProductBatchResult
    shortages: List[MaterialShortage] = field(default_factory=list)
    optimized_plan: Optional[OptimizedPlan] = None
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class ProductionOrder:
    product_id: str
    quantity: int
    due_date: date
    order_id: Optional[str] = None


@dataclass
class ScheduleEntry:
    order_id: str
    product_id: str
    quantity: int
    due_date: date
    status: str  # scheduled | material_shortage | error
    product_name: Optional[str] = None
    production_date: Optional[date] = None
    production_cost: Optional[Decimal] = None
    shortages: List[MaterialShortage] = field(default_factory=list)
    error: Optional[ProductError] = None


@dataclass
class ProductionSchedule:
    entries: List[ScheduleEntry] = field(default_factory=list)
    total_orders: int = 0
    scheduled: int = 0
    material_shortages: int = 0
    errors: int = 0
    planning_horizon_days: int = 7
    ledger: Dict[str, Decimal] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class ProductCapacity:
    product_id: str
    product_name: str
    current_capacity: Optional[int]
    bottleneck_material: Optional[str] = None
    recipe_name: Optional[str] = None
    unit_cost: Optional[Decimal] = None  # material cost per yielded unit
    error: Optional[ProductError] = None


@dataclass
class BottleneckSummary:
    material_id: str
    material_name: str
    affects_products: List[str] = field(default_factory=list)


@dataclass
class CapacityOverview:
    total_bom_products: int = 0
    product_capacities: List[ProductCapacity] = field(default_factory=list)
    critical_bottlenecks: List[BottleneckSummary] = field(default_factory=list)


@dataclass
class RecipeUsage:
    recipe_id: str
    recipe_name: str
    product_id: str
    product_name: Optional[str]
    quantity_per_unit: Decimal
    max_producible_batches: Optional[int]


@dataclass
class MaterialUsageInsight:
    material_id: str
    material_name: str
    current_stock: Decimal
    unit: str
    used_in_recipes: List[RecipeUsage] = field(default_factory=list)
    suggestion: str = ""


# =============================================================================
# PRODUCTION PLAN
# =============================================================================

def generate_shortage_recommendations(shortages: List[MaterialShortage]) -> List[str]:
    """One summary line plus one restock line per short material."""
    if not shortages:
        return ["No shortages detected"]

    recommendations = [f"Restock {len(shortages)} material(s) to enable production"]
    for shortage in shortages:
        recommendations.append(
            f"Order {format_quantity(shortage.shortage)} {shortage.unit} "
            f"of {shortage.material_name}"
        )
    return recommendations


def optimize_production_plan(
    catalog, scope: str, production_plan: Mapping[str, int], priority_mode: str
) -> OptimizedPlan:
    """
    Best-effort partial plan, one product at a time.

    Each product is compared against its own producible maximum; scarce
    shared materials are not redistributed between products.
    """
    plan = validate_production_plan(production_plan)
    products = catalog.get_products(scope, list(plan.keys()))
    recipes = catalog.get_recipes_for_products(scope, list(products.keys()))

    optimized = OptimizedPlan(total_products=len(plan))

    for product_id, requested in plan.items():
        try:
            product = products.get(product_id)
            if product is None:
                raise ProductNotFound(product_id)
            availability = availability_for(require_bom(product), recipes.get(product_id))
        except BomError as exc:
            optimized.infeasible_products.append(ProductPlanOutcome(
                product_id=product_id,
                requested=requested,
                status="error",
                reason=str(exc),
            ))
            continue

        maximum = availability.max_quantity
        if maximum is None or maximum >= requested:
            optimized.feasible_products.append(ProductPlanOutcome(
                product_id=product_id,
                product_name=availability.product_name,
                requested=requested,
                suggested=requested,
                status="fully_feasible",
            ))
        elif maximum > 0:
            reduction = Decimal(requested - maximum) / Decimal(requested) * 100
            optimized.feasible_products.append(ProductPlanOutcome(
                product_id=product_id,
                product_name=availability.product_name,
                requested=requested,
                suggested=maximum,
                status="partially_feasible",
                reduction_percentage=quantize_money(reduction),
            ))
        else:
            optimized.infeasible_products.append(ProductPlanOutcome(
                product_id=product_id,
                product_name=availability.product_name,
                requested=requested,
                status="infeasible",
                reason=availability.reason if not availability.has_recipe else "Insufficient materials",
            ))

    optimized.feasible_count = len(optimized.feasible_products)
    if optimized.feasible_products:
        optimized.recommendations.append(
            f"Produce {optimized.feasible_count} product(s) with available materials"
        )
    if optimized.infeasible_products:
        optimized.recommendations.append(
            f"Restock materials for {len(optimized.infeasible_products)} product(s)"
        )
    return optimized


def create_production_plan(
    catalog,
    scope: str,
    production_plan: Mapping[str, int],
    allow_partial: bool = True,
    priority_mode: str = "balanced",
) -> ProductionPlanResult:
    """
    Plan production of several products against shared material stock.

    Args:
        catalog: Repository
        scope: Tenant scope
        production_plan: product_id -> requested quantity
        allow_partial: Produce a reduced plan when the full one is infeasible
        priority_mode: balanced | maximize_quantity | minimize_cost

    Returns:
        ProductionPlanResult with status feasible, infeasible or optimized
    """
    if priority_mode not in PRIORITY_MODES:
        raise InvalidInput(
            f"priority_mode must be one of {', '.join(PRIORITY_MODES)}, got {priority_mode!r}"
        )
    plan = validate_production_plan(production_plan)

    analysis = calculate_multi_product_batch(catalog, plan, scope)

    if analysis.overall_feasible:
        logger.info("Production plan for %d product(s) is feasible", len(plan))
        return ProductionPlanResult(
            status="feasible",
            message="All products can be produced with available materials",
            priority_mode=priority_mode,
            original_requirements=plan,
            analysis=analysis,
            recommendations=["Execute production as planned"],
        )

    if not allow_partial:
        logger.info(
            "Production plan infeasible: %d material shortage(s), %d failed product(s)",
            len(analysis.material_shortages),
            len(analysis.failed_products),
        )
        return ProductionPlanResult(
            status="infeasible",
            message="Cannot produce requested quantities with available materials",
            priority_mode=priority_mode,
            original_requirements=plan,
            analysis=analysis,
            shortages=analysis.material_shortages,
            recommendations=generate_shortage_recommendations(analysis.material_shortages),
        )

    optimized = optimize_production_plan(catalog, scope, plan, priority_mode)
    logger.info(
        "Production plan optimized: %d of %d product(s) feasible",
        optimized.feasible_count,
        optimized.total_products,
    )
    return ProductionPlanResult(
        status="optimized",
        message="Original plan adjusted to fit available materials",
        priority_mode=priority_mode,
        original_requirements=plan,
        analysis=analysis,
        shortages=analysis.material_shortages,
        optimized_plan=optimized,
        recommendations=list(optimized.recommendations),
    )


# =============================================================================
# PRODUCTION SCHEDULE
# =============================================================================

def _parse_due_date(value, index: int) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value).date()
        except ValueError:
            pass
    raise InvalidInput(f"Order {index + 1} has an invalid due_date: {value!r}")


def parse_orders(orders: Iterable) -> List[ProductionOrder]:
    """Validate raw orders (mappings or ProductionOrder) before scheduling."""
    parsed = []
    for index, order in enumerate(orders):
        if isinstance(order, ProductionOrder):
            data = asdict(order)
        elif isinstance(order, Mapping):
            data = order
        else:
            raise InvalidInput(f"Order {index + 1} must be a mapping, got {order!r}")

        product_id = data.get("product_id")
        if not product_id:
            raise InvalidInput(f"Order {index + 1} is missing product_id")
        quantity = require_positive_int(data.get("quantity"), f"quantity of order {index + 1}")
        order_id = data.get("order_id")

        parsed.append(ProductionOrder(
            product_id=str(product_id),
            quantity=quantity,
            due_date=_parse_due_date(data.get("due_date"), index),
            order_id=str(order_id) if order_id is not None else None,
        ))
    return parsed


def _ledger_shortages(requirements, ledger: Dict[str, Decimal]) -> List[MaterialShortage]:
    shortages = []
    for line in requirements.lines:
        available = ledger.get(line.material_id, ZERO)
        if line.material_id not in ledger or available < line.total_required:
            shortages.append(MaterialShortage(
                material_id=line.material_id,
                material_name=line.material_name,
                unit=line.unit,
                required=line.total_required,
                available=available,
                shortage=line.total_required - available,
            ))
    return shortages


def generate_production_schedule(
    catalog,
    scope: str,
    orders: Iterable,
    horizon_days: Optional[int] = None,
) -> ProductionSchedule:
    """
    Greedy production schedule in due-date order.

    Args:
        catalog: Repository
        scope: Tenant scope
        orders: Orders with product_id, quantity, due_date and optional order_id
        horizon_days: Planning horizon reported with the schedule

    Returns:
        ProductionSchedule with one entry per order in processing order

    Notes:
        - Orders are stably sorted by due date, earliest first
        - Each order is checked against the running ledger; a fully covered
          order is scheduled and consumes its materials, an uncovered order
          is rejected and consumes nothing
        - The fold is strictly sequential: each decision observes every
          earlier decrement. A later, smaller order is never moved ahead of
          an earlier one that does not fit.
    """
    settings = getattr(catalog, "settings", None) or EngineSettings()
    horizon = settings.default_horizon_days if horizon_days is None else horizon_days
    require_positive_int(horizon, "horizon_days")

    parsed = sorted(parse_orders(orders), key=lambda order: order.due_date)

    product_ids = list(dict.fromkeys(order.product_id for order in parsed))
    products = catalog.get_products(scope, product_ids)
    recipes = catalog.get_recipes_for_products(scope, list(products.keys()))
    ledger: Dict[str, Decimal] = {
        material.id: material.stock_quantity for material in catalog.list_materials(scope)
    }
    lead = timedelta(days=settings.production_lead_days)

    schedule = ProductionSchedule(total_orders=len(parsed), planning_horizon_days=horizon)

    for index, order in enumerate(parsed):
        entry = ScheduleEntry(
            order_id=order.order_id or f"ORD-{index + 1}",
            product_id=order.product_id,
            quantity=order.quantity,
            due_date=order.due_date,
            status="error",
        )
        schedule.entries.append(entry)

        try:
            product = products.get(order.product_id)
            if product is None:
                raise ProductNotFound(order.product_id)
            entry.product_name = product.name
            require_bom(product)
            recipe = recipes.get(order.product_id)
            if recipe is None:
                raise NoActiveRecipe(order.product_id)
            requirements = batch_requirements_for(
                product, recipe, order.quantity, settings.money_places
            )
        except BomError as exc:
            logger.warning("Order %s could not be evaluated: %s", entry.order_id, exc)
            entry.error = ProductError.from_exception(order.product_id, exc)
            schedule.errors += 1
            continue

        shortages = _ledger_shortages(requirements, ledger)
        if shortages:
            entry.status = "material_shortage"
            entry.shortages = shortages
            schedule.material_shortages += 1
            continue

        for line in requirements.lines:
            ledger[line.material_id] -= line.total_required

        entry.status = "scheduled"
        entry.production_date = order.due_date - lead
        entry.production_cost = requirements.cost_analysis.total_material_cost
        schedule.scheduled += 1

    schedule.ledger = ledger
    logger.info(
        "Schedule generated: %d scheduled, %d short, %d error(s) of %d order(s)",
        schedule.scheduled,
        schedule.material_shortages,
        schedule.errors,
        schedule.total_orders,
    )
    return schedule


# =============================================================================
# CAPACITY AND MATERIAL USAGE OVERVIEWS
# =============================================================================

def calculate_overall_capacity(catalog, scope: str) -> CapacityOverview:
    """Capacity of every BOM product that has an active recipe."""
    settings = getattr(catalog, "settings", None) or EngineSettings()
    active = {}
    for recipe in catalog.list_active_recipes(scope):
        active.setdefault(recipe.product_id, recipe)
    bom_products = [
        product for product in catalog.list_products(scope)
        if product.is_bom and product.id in active
    ]

    overview = CapacityOverview(total_bom_products=len(bom_products))
    bottlenecks: Dict[str, BottleneckSummary] = {}

    for product in bom_products:
        availability = availability_for(product, active[product.id])
        bottleneck = availability.bottleneck_material
        overview.product_capacities.append(ProductCapacity(
            product_id=product.id,
            product_name=product.name,
            current_capacity=availability.max_quantity,
            bottleneck_material=bottleneck.material_name if bottleneck else None,
            recipe_name=availability.recipe_name,
            unit_cost=quantize_money(active[product.id].cost_per_unit(), settings.money_places),
        ))

        if bottleneck is not None:
            summary = bottlenecks.setdefault(bottleneck.material_id, BottleneckSummary(
                material_id=bottleneck.material_id,
                material_name=bottleneck.material_name,
            ))
            summary.affects_products.append(product.name)

    overview.critical_bottlenecks = list(bottlenecks.values())
    return overview


def _usage_suggestion(material, usages: List[RecipeUsage]) -> str:
    total = len(usages)
    if material.stock_quantity <= 0:
        return f"Out of stock - affects {total} product(s). Priority restock required."
    if material.is_low_stock:
        batches = [u.max_producible_batches for u in usages if u.max_producible_batches is not None]
        min_batches = min(batches) if batches else 0
        return (
            f"Low stock - can produce only {min_batches} batch(es) of constrained "
            f"product. Consider restocking."
        )
    return f"Material is shared across {total} product(s). Monitor usage patterns."


def optimize_material_usage(catalog, scope: str) -> List[MaterialUsageInsight]:
    """How far each material stretches across the active recipes using it."""
    active_recipes = catalog.list_active_recipes(scope)
    products = catalog.get_products(scope, [r.product_id for r in active_recipes])

    insights = []
    for material in catalog.list_materials(scope):
        usages = []
        for recipe in active_recipes:
            if not recipe.has_material(material.id):
                continue
            component = recipe.get_component(material.id)
            effective = component.effective_quantity
            if effective > 0:
                batches = int(max(ZERO, material.stock_quantity) // effective)
            else:
                batches = None
            product = products.get(recipe.product_id)
            usages.append(RecipeUsage(
                recipe_id=recipe.id,
                recipe_name=recipe.name,
                product_id=recipe.product_id,
                product_name=product.name if product else None,
                quantity_per_unit=effective,
                max_producible_batches=batches,
            ))

        if usages:
            insights.append(MaterialUsageInsight(
                material_id=material.id,
                material_name=material.name,
                current_stock=material.stock_quantity,
                unit=material.unit,
                used_in_recipes=usages,
                suggestion=_usage_suggestion(material, usages),
            ))
    return insights


# =============================================================================
# END OF PRODUCTION PLANNER
# =============================================================================
