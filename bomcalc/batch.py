# =============================================================================
# BOMCALC ENGINE - BATCH REQUIREMENTS MODULE
# =============================================================================
# Projects material consumption, shortages and cost for a production batch.
#
# FORMULAS:
# required[c]  = effective_quantity[c] * quantity
# shortage[c]  = max(0, required[c] - stock[c])
# remaining[c] = stock[c] - required[c]          (may go negative)
# cost[c]      = required[c] * unit_cost[c]
# cost_per_unit = SUM(cost[c]) / quantity
#
# KEY PRINCIPLE: projection only, stock is never mutated here.
# =============================================================================

from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Tuple
import math

from .config import EngineSettings
from .entities import ZERO, Product, Recipe, to_decimal
from .errors import InvalidInput, NoActiveRecipe, require_positive_int
from .explosion import BottleneckMaterial, availability_for, require_bom


@dataclass
class RequirementLine:
    """Consumption of one material for a batch."""
    material_id: str
    material_name: str
    sku: str
    unit: str
    quantity_per_unit: Decimal
    waste_percentage: Decimal
    effective_quantity_per_unit: Decimal
    total_required: Decimal
    current_stock: Decimal
    reorder_level: Decimal
    remaining_after_production: Decimal
    is_sufficient: bool
    shortage: Decimal
    unit_cost: Decimal
    total_cost: Decimal


@dataclass
class MaterialShortage:
    material_id: str
    material_name: str
    unit: str
    required: Decimal
    available: Decimal
    shortage: Decimal


@dataclass
class CostAnalysis:
    total_material_cost: Decimal
    cost_per_unit: Decimal


@dataclass
class BatchRequirements:
    """Material requirements of producing `requested_quantity` units."""
    product_id: str
    product_name: str
    recipe_id: str
    recipe_name: str
    requested_quantity: int
    can_produce: bool
    lines: List[RequirementLine] = field(default_factory=list)
    shortages: List[MaterialShortage] = field(default_factory=list)
    cost_analysis: Optional[CostAnalysis] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class MaterialChange:
    material_id: str
    material_name: str
    unit: str
    before_production: Decimal
    consumed: Decimal
    after_production: Decimal
    goes_negative: bool
    below_reorder_level: bool


@dataclass
class SimulationResult:
    success: bool
    product_id: str
    product_name: str
    quantity: int
    message: str = ""
    material_changes: List[MaterialChange] = field(default_factory=list)
    shortages: List[MaterialShortage] = field(default_factory=list)
    production_cost: Decimal = ZERO
    cost_per_unit: Decimal = ZERO


@dataclass
class CostEstimate:
    product_id: str
    product_name: str
    quantity: int
    total_material_cost: Decimal
    cost_per_unit: Decimal
    recipe_used: str


@dataclass
class BatchSizeOption:
    batch_size: int
    total_cost: Decimal
    cost_per_unit: Decimal
    utilization_percentage: Optional[Decimal]


@dataclass
class OptimalBatchResult:
    product_id: str
    product_name: str
    maximum_producible: Optional[int]
    bottleneck_material: Optional[BottleneckMaterial]
    suggested_batches: List[BatchSizeOption] = field(default_factory=list)
    recommended_batch_size: Optional[int] = None
    recommendation: str = ""


@dataclass
class ForecastPoint:
    day: int
    date: date
    production_capacity: int
    capacity_percentage: Decimal


@dataclass
class CapacityForecast:
    product_id: str
    product_name: str
    current_capacity: Optional[int]
    bottleneck_material: Optional[BottleneckMaterial]
    forecast_period_days: int
    average_daily_usage: Decimal
    capacity_forecast: List[ForecastPoint] = field(default_factory=list)
    days_until_depletion: Optional[int] = None
    warnings: List[str] = field(default_factory=list)


def quantize_money(value: Decimal, places: int = 2) -> Decimal:
    """Round a money amount half-up to `places` decimals."""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def _percentage(part: Decimal, whole: Decimal) -> Decimal:
    return quantize_money(Decimal(part) / Decimal(whole) * 100)


def load_bom_product(catalog, product_id: str, scope: str) -> Tuple[Product, Recipe]:
    """Load a BOM product and its active recipe, or raise."""
    product = require_bom(catalog.get_product(scope, product_id))
    recipe = catalog.get_active_recipe_for_product(scope, product_id)
    if recipe is None:
        raise NoActiveRecipe(product_id)
    return product, recipe


def batch_requirements_for(
    product: Product,
    recipe: Recipe,
    quantity: int,
    money_places: int = 2,
) -> BatchRequirements:
    """
    Project a batch for an already loaded product and recipe.

    Args:
        product: BOM product
        recipe: Its active recipe with materials attached
        quantity: Units to produce (positive integer)
        money_places: Decimal places of cost figures

    Returns:
        BatchRequirements with per-material lines, shortages and costs
    """
    require_positive_int(quantity)

    result = BatchRequirements(
        product_id=product.id,
        product_name=product.name,
        recipe_id=recipe.id,
        recipe_name=recipe.name,
        requested_quantity=quantity,
        can_produce=True,
    )
    total_cost = ZERO

    for component in recipe.components:
        material = component.material
        effective = component.effective_quantity
        required = effective * quantity
        available = material.stock_quantity
        shortage = max(ZERO, required - available)
        component_cost = required * material.unit_cost

        if component.is_degenerate:
            result.warnings.append(
                f"Component {material.name} ({material.id}) of recipe {recipe.id} "
                f"has effective quantity {effective}"
            )

        if shortage > 0:
            result.can_produce = False
            result.shortages.append(MaterialShortage(
                material_id=material.id,
                material_name=material.name,
                unit=material.unit,
                required=required,
                available=available,
                shortage=shortage,
            ))

        total_cost += component_cost
        result.lines.append(RequirementLine(
            material_id=material.id,
            material_name=material.name,
            sku=material.sku,
            unit=material.unit,
            quantity_per_unit=component.quantity_required,
            waste_percentage=component.waste_percentage,
            effective_quantity_per_unit=effective,
            total_required=required,
            current_stock=available,
            reorder_level=material.reorder_level,
            remaining_after_production=available - required,
            is_sufficient=available >= required,
            shortage=shortage,
            unit_cost=material.unit_cost,
            total_cost=quantize_money(component_cost, money_places),
        ))

    if not recipe.components:
        result.warnings.append(f"Recipe {recipe.id} has no components")

    result.cost_analysis = CostAnalysis(
        total_material_cost=quantize_money(total_cost, money_places),
        cost_per_unit=quantize_money(total_cost / quantity, money_places),
    )
    return result


def calculate_batch_requirements(
    catalog, product_id: str, scope: str, quantity: int
) -> BatchRequirements:
    """
    Calculate material requirements for producing `quantity` units.

    Raises:
        InvalidInput: quantity is not a positive integer
        ProductNotFound / InvalidProductType: product lookup failures
        NoActiveRecipe: product has no active recipe
    """
    require_positive_int(quantity)
    settings = getattr(catalog, "settings", None) or EngineSettings()
    product, recipe = load_bom_product(catalog, product_id, scope)
    return batch_requirements_for(product, recipe, quantity, settings.money_places)


def simulate_production(
    catalog, product_id: str, scope: str, quantity: int
) -> SimulationResult:
    """What-if view of stock levels after producing `quantity` units."""
    requirements = calculate_batch_requirements(catalog, product_id, scope, quantity)

    changes = [
        MaterialChange(
            material_id=line.material_id,
            material_name=line.material_name,
            unit=line.unit,
            before_production=line.current_stock,
            consumed=line.total_required,
            after_production=line.remaining_after_production,
            goes_negative=line.remaining_after_production < 0,
            below_reorder_level=line.remaining_after_production < line.reorder_level,
        )
        for line in requirements.lines
    ]

    return SimulationResult(
        success=requirements.can_produce,
        product_id=requirements.product_id,
        product_name=requirements.product_name,
        quantity=quantity,
        message=(
            "Production can be completed with current stock"
            if requirements.can_produce
            else "Cannot simulate production due to material shortages"
        ),
        material_changes=changes,
        shortages=requirements.shortages,
        production_cost=requirements.cost_analysis.total_material_cost,
        cost_per_unit=requirements.cost_analysis.cost_per_unit,
    )


def estimate_production_cost(
    catalog, product_id: str, scope: str, quantity: int
) -> CostEstimate:
    requirements = calculate_batch_requirements(catalog, product_id, scope, quantity)
    return CostEstimate(
        product_id=requirements.product_id,
        product_name=requirements.product_name,
        quantity=quantity,
        total_material_cost=requirements.cost_analysis.total_material_cost,
        cost_per_unit=requirements.cost_analysis.cost_per_unit,
        recipe_used=requirements.recipe_name,
    )


def _batch_recommendation(
    maximum: Optional[int],
    options: List[BatchSizeOption],
    has_recipe: bool,
    threshold: int,
) -> Tuple[str, Optional[int]]:
    if not has_recipe:
        return "Cannot produce. No active recipe found for this product.", None
    if maximum == 0:
        return "Cannot produce. Material shortages detected. Restock materials before production.", None
    if maximum is not None and maximum < threshold:
        return (
            "Very limited production capacity. "
            "Recommend restocking materials before production.",
            None,
        )

    if options:
        # min() keeps the first (smallest) size on equal cost per unit
        best = min(options, key=lambda option: option.cost_per_unit)
        return (
            f"Recommended batch size: {best.batch_size} units for optimal cost efficiency.",
            best.batch_size,
        )

    return f"Maximum capacity: {maximum} units. Plan batch size accordingly.", None


def calculate_optimal_batch_size(catalog, product_id: str, scope: str) -> OptimalBatchResult:
    """
    Evaluate the batch size ladder up to current capacity.

    Candidates larger than the producible maximum are excluded (never
    clamped). The lowest cost per unit wins.
    """
    settings = getattr(catalog, "settings", None) or EngineSettings()
    product = require_bom(catalog.get_product(scope, product_id))
    recipe = catalog.get_active_recipe_for_product(scope, product_id)
    availability = availability_for(product, recipe)
    maximum = availability.max_quantity

    options: List[BatchSizeOption] = []
    if recipe is not None:
        for size in settings.batch_size_ladder:
            if maximum is not None and size > maximum:
                continue
            requirements = batch_requirements_for(
                product, recipe, size, settings.money_places
            )
            options.append(BatchSizeOption(
                batch_size=size,
                total_cost=requirements.cost_analysis.total_material_cost,
                cost_per_unit=requirements.cost_analysis.cost_per_unit,
                utilization_percentage=(
                    _percentage(size, maximum) if maximum else None
                ),
            ))

    recommendation, recommended = _batch_recommendation(
        maximum, options, recipe is not None, settings.limited_capacity_threshold
    )

    return OptimalBatchResult(
        product_id=product.id,
        product_name=product.name,
        maximum_producible=maximum,
        bottleneck_material=availability.bottleneck_material,
        suggested_batches=options,
        recommended_batch_size=recommended,
        recommendation=recommendation,
    )


def get_production_capacity_forecast(
    catalog,
    product_id: str,
    scope: str,
    days: int,
    avg_daily_usage=0,
    start_date: Optional[date] = None,
) -> CapacityForecast:
    """
    Linear depletion forecast of production capacity.

    Args:
        days: Forecast horizon; days 0..days are evaluated
        avg_daily_usage: Units of capacity consumed per day
        start_date: Date of day 0 (defaults to today)

    Formula:
        capacity(day) = max(0, current - avg_daily_usage * day)
        days_until_depletion = ceil(current / avg_daily_usage), None if usage == 0

    Notes:
        - Iteration stops after the first day with zero capacity
        - Unbounded capacity produces no forecast points
    """
    if isinstance(days, bool) or not isinstance(days, int) or days < 0:
        raise InvalidInput(f"days must be a non-negative integer, got {days!r}")
    usage = to_decimal(avg_daily_usage, "avg_daily_usage")
    if usage < 0:
        raise InvalidInput(f"avg_daily_usage must be >= 0, got {avg_daily_usage}")

    availability = availability_for(
        require_bom(catalog.get_product(scope, product_id)),
        catalog.get_active_recipe_for_product(scope, product_id),
    )
    current = availability.max_quantity
    start = start_date or date.today()

    forecast = CapacityForecast(
        product_id=availability.product_id,
        product_name=availability.product_name,
        current_capacity=current,
        bottleneck_material=availability.bottleneck_material,
        forecast_period_days=days,
        average_daily_usage=usage,
    )

    if current is None:
        forecast.warnings.append("Capacity is unbounded by material stock; no forecast")
        return forecast

    for day in range(days + 1):
        capacity = max(ZERO, current - usage * day)
        forecast.capacity_forecast.append(ForecastPoint(
            day=day,
            date=start + timedelta(days=day),
            production_capacity=int(capacity.to_integral_value(rounding=ROUND_HALF_UP)),
            capacity_percentage=_percentage(capacity, current) if current > 0 else ZERO,
        ))
        if capacity <= 0:
            break

    if usage > 0:
        forecast.days_until_depletion = math.ceil(Decimal(current) / usage)

    return forecast


# =============================================================================
# END OF BATCH REQUIREMENTS MODULE
# =============================================================================
