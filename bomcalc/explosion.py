# =============================================================================
# BOMCALC ENGINE - EXPLOSION ENGINE
# =============================================================================
# Calculates the maximum producible quantity of a BOM product from current
# material stock, and the bottleneck material that limits it.
#
# FORMULA:
# unit_max[c]  = floor(stock[c] / effective_quantity[c])
# max_quantity = min(unit_max[c] over components)
#
# KEY RULES:
# - Bottleneck ties resolve to the first component in recipe order
# - effective_quantity <= 0 is degenerate data: non-limiting, flagged
# - No limiting component at all means unbounded (max_quantity = None)
# - No active recipe is a zero-capacity result, not an error
# =============================================================================

from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Union
import logging
import math
import threading

from .config import EngineSettings
from .entities import Product, Recipe
from .errors import (
    BomError,
    InvalidProductType,
    OperationCancelled,
    ProductError,
    ProductNotFound,
    require_positive_int,
)

logger = logging.getLogger(__name__)

NO_RECIPE_REASON = "No active recipe found for this product"


@dataclass
class MaterialAvailabilityLine:
    """Availability of one recipe component for a single produced unit."""
    material_id: str
    material_name: str
    unit: str
    quantity_required: Decimal
    waste_percentage: Decimal
    effective_quantity: Decimal
    required_quantity: Decimal
    available_stock: Decimal
    max_producible: Optional[int]
    sufficient: bool
    degenerate: bool = False


@dataclass
class BottleneckMaterial:
    material_id: str
    material_name: str
    required_per_unit: Decimal
    available_stock: Decimal
    max_units: int


@dataclass
class RecipeExplosion:
    """Pure explosion of a single recipe."""
    max_quantity: Optional[int]  # None = unbounded
    bottleneck: Optional[BottleneckMaterial] = None
    lines: List[MaterialAvailabilityLine] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def unbounded(self) -> bool:
        return self.max_quantity is None

    @property
    def can_produce(self) -> bool:
        return self.max_quantity is None or self.max_quantity > 0

    @property
    def degenerate(self) -> bool:
        return self.unbounded or any(line.degenerate for line in self.lines)


@dataclass
class AvailabilityResult:
    """Producible quantity of a BOM product."""
    product_id: str
    product_name: str
    recipe_id: Optional[str] = None
    recipe_name: Optional[str] = None
    max_quantity: Optional[int] = 0
    can_produce: bool = False
    bottleneck_material: Optional[BottleneckMaterial] = None
    lines: List[MaterialAvailabilityLine] = field(default_factory=list)
    yield_quantity: Optional[Decimal] = None
    yield_unit: Optional[str] = None
    reason: Optional[str] = None
    degenerate: bool = False
    warnings: List[str] = field(default_factory=list)

    @property
    def has_recipe(self) -> bool:
        return self.recipe_id is not None

    @property
    def unbounded(self) -> bool:
        return self.max_quantity is None

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class FeasibilityCheck:
    product_id: str
    product_name: str
    requested_quantity: int
    available_quantity: Optional[int]
    is_feasible: bool
    shortage: int
    bottleneck_material: Optional[BottleneckMaterial]
    recipe_id: Optional[str]


@dataclass
class LowStockMaterial:
    material_id: str
    material_name: str
    current_stock: Decimal
    reorder_level: Decimal
    unit: str
    stock_status: str
    priority: str  # high | medium
    affected_products: List[Dict[str, str]] = field(default_factory=list)


AvailabilityEntry = Union[AvailabilityResult, ProductError]


def require_bom(product: Product) -> Product:
    """Raise InvalidProductType unless the product uses BOM inventory."""
    if not product.is_bom:
        raise InvalidProductType(
            product.id, product.name, product.inventory_management_type
        )
    return product


def explode_recipe(recipe: Recipe) -> RecipeExplosion:
    """
    Explode a recipe against the current stock of its materials.

    Args:
        recipe: Recipe with components and materials attached

    Returns:
        RecipeExplosion with max quantity, bottleneck and per-component lines

    Notes:
        - Iterates in recipe order and replaces the bottleneck only on a
          strictly smaller value, so the first tied component wins
        - Degenerate components keep a line (max_producible None) and a warning
    """
    explosion = RecipeExplosion(max_quantity=None)

    for component in recipe.components:
        material = component.material
        effective = component.effective_quantity
        stock = material.stock_quantity

        if effective <= 0:
            message = (
                f"Component {material.name} ({material.id}) of recipe {recipe.id} "
                f"has effective quantity {effective}; treated as non-limiting"
            )
            logger.warning(message)
            explosion.warnings.append(message)
            explosion.lines.append(MaterialAvailabilityLine(
                material_id=material.id,
                material_name=material.name,
                unit=material.unit,
                quantity_required=component.quantity_required,
                waste_percentage=component.waste_percentage,
                effective_quantity=effective,
                required_quantity=effective,
                available_stock=stock,
                max_producible=None,
                sufficient=True,
                degenerate=True,
            ))
            continue

        unit_max = max(0, math.floor(stock / effective))

        explosion.lines.append(MaterialAvailabilityLine(
            material_id=material.id,
            material_name=material.name,
            unit=material.unit,
            quantity_required=component.quantity_required,
            waste_percentage=component.waste_percentage,
            effective_quantity=effective,
            required_quantity=effective,
            available_stock=stock,
            max_producible=unit_max,
            sufficient=stock >= effective,
        ))

        if explosion.max_quantity is None or unit_max < explosion.max_quantity:
            explosion.max_quantity = unit_max
            explosion.bottleneck = BottleneckMaterial(
                material_id=material.id,
                material_name=material.name,
                required_per_unit=effective,
                available_stock=stock,
                max_units=unit_max,
            )

    if explosion.max_quantity is None:
        message = (
            f"Recipe {recipe.id} has no limiting components; "
            f"production is unbounded by material stock"
        )
        logger.warning(message)
        explosion.warnings.append(message)

    logger.debug(
        "Exploded recipe %s: max_quantity=%s bottleneck=%s components=%d",
        recipe.id,
        explosion.max_quantity,
        explosion.bottleneck.material_id if explosion.bottleneck else None,
        len(recipe.components),
    )
    return explosion


def availability_for(product: Product, recipe: Optional[Recipe]) -> AvailabilityResult:
    """Build the availability result for an already loaded product and recipe."""
    if recipe is None:
        return AvailabilityResult(
            product_id=product.id,
            product_name=product.name,
            max_quantity=0,
            can_produce=False,
            reason=NO_RECIPE_REASON,
        )

    explosion = explode_recipe(recipe)
    return AvailabilityResult(
        product_id=product.id,
        product_name=product.name,
        recipe_id=recipe.id,
        recipe_name=recipe.name,
        max_quantity=explosion.max_quantity,
        can_produce=explosion.can_produce,
        bottleneck_material=explosion.bottleneck,
        lines=explosion.lines,
        yield_quantity=recipe.yield_quantity,
        yield_unit=recipe.yield_unit,
        degenerate=explosion.degenerate,
        warnings=list(explosion.warnings),
    )


def calculate_available_quantity(catalog, product_id: str, scope: str) -> AvailabilityResult:
    """
    Calculate the producible quantity of a BOM product.

    Args:
        catalog: Repository providing products and active recipes
        product_id: Product to evaluate
        scope: Tenant scope handed to every lookup

    Returns:
        AvailabilityResult (zero capacity with a reason if no active recipe)

    Raises:
        ProductNotFound: product does not resolve in this scope
        InvalidProductType: product is not BOM-managed
    """
    product = require_bom(catalog.get_product(scope, product_id))
    recipe = catalog.get_active_recipe_for_product(scope, product_id)
    return availability_for(product, recipe)


def _explode_unless_cancelled(
    product: Product,
    recipe: Optional[Recipe],
    cancel_event: Optional[threading.Event],
) -> AvailabilityResult:
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelled("Availability calculation cancelled")
    return availability_for(product, recipe)


def bulk_calculate_availability(
    catalog,
    product_ids: Iterable[str],
    scope: str,
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Dict[str, AvailabilityEntry]:
    """
    Calculate availability for many products.

    Products and active recipes are fetched in one batch, then exploded on a
    bounded thread pool. Each product's failure stays in its own slot.

    Args:
        catalog: Repository with get_products / get_recipes_for_products
        product_ids: Products to evaluate (duplicates collapse)
        scope: Tenant scope
        max_workers: Pool size (defaults to settings.bulk_max_workers)
        timeout: Seconds to wait before abandoning unfinished products
        cancel_event: Set to stop products that have not started yet

    Returns:
        Dict mapping product_id to AvailabilityResult or ProductError
    """
    wanted = list(dict.fromkeys(product_ids))
    if not wanted:
        return {}

    settings = getattr(catalog, "settings", None) or EngineSettings()
    products = catalog.get_products(scope, wanted)
    recipes = catalog.get_recipes_for_products(scope, list(products.keys()))

    results: Dict[str, AvailabilityEntry] = {}
    tasks = []
    for product_id in wanted:
        product = products.get(product_id)
        try:
            if product is None:
                raise ProductNotFound(product_id)
            require_bom(product)
        except (ProductNotFound, InvalidProductType) as exc:
            logger.warning("Bulk availability skipped %s: %s", product_id, exc)
            results[product_id] = ProductError.from_exception(product_id, exc)
            continue
        tasks.append((product, recipes.get(product_id)))

    pool = ThreadPoolExecutor(max_workers=max_workers or settings.bulk_max_workers)
    try:
        futures = {
            pool.submit(_explode_unless_cancelled, product, recipe, cancel_event): product.id
            for product, recipe in tasks
        }
        done, not_done = wait(futures, timeout=timeout)
        for future in not_done:
            future.cancel()
            product_id = futures[future]
            results[product_id] = ProductError(
                product_id=product_id,
                kind=OperationCancelled.kind,
                message="Deadline exceeded before availability was calculated",
            )
        for future in done:
            product_id = futures[future]
            try:
                results[product_id] = future.result()
            except BomError as exc:
                logger.warning("Bulk availability failed for %s: %s", product_id, exc)
                results[product_id] = ProductError.from_exception(product_id, exc)
            except Exception as exc:
                logger.exception("Unexpected failure calculating availability for %s", product_id)
                results[product_id] = ProductError.from_exception(product_id, exc)
    finally:
        pool.shutdown(wait=False, cancel_futures=True)

    return {product_id: results[product_id] for product_id in wanted}


def check_production_feasibility(
    catalog, product_id: str, scope: str, requested_quantity: int
) -> FeasibilityCheck:
    """Compare a requested quantity against the producible quantity."""
    require_positive_int(requested_quantity, "requested_quantity")
    availability = calculate_available_quantity(catalog, product_id, scope)

    available = availability.max_quantity
    if available is None:
        is_feasible, shortage = True, 0
    else:
        is_feasible = available >= requested_quantity
        shortage = 0 if is_feasible else requested_quantity - available

    return FeasibilityCheck(
        product_id=availability.product_id,
        product_name=availability.product_name,
        requested_quantity=requested_quantity,
        available_quantity=available,
        is_feasible=is_feasible,
        shortage=shortage,
        bottleneck_material=availability.bottleneck_material,
        recipe_id=availability.recipe_id,
    )


def get_low_stock_materials_in_active_recipes(catalog, scope: str) -> List[LowStockMaterial]:
    """
    Materials below their reorder level that an active recipe depends on.

    Returns:
        List ordered high priority (critical / out of stock) first; order
        within a priority follows the catalog's material order
    """
    settings = getattr(catalog, "settings", None) or EngineSettings()
    active_recipes = catalog.list_active_recipes(scope)
    products = catalog.get_products(scope, [r.product_id for r in active_recipes])

    critical: List[LowStockMaterial] = []
    for material in catalog.list_materials(scope):
        if not material.is_low_stock:
            continue

        affected = []
        for recipe in active_recipes:
            if not recipe.has_material(material.id):
                continue
            product = products.get(recipe.product_id)
            affected.append({
                "product_id": recipe.product_id,
                "product_name": product.name if product else None,
                "recipe_id": recipe.id,
                "recipe_name": recipe.name,
            })

        if affected:
            status = material.stock_status(settings.critical_stock_ratio)
            critical.append(LowStockMaterial(
                material_id=material.id,
                material_name=material.name,
                current_stock=material.stock_quantity,
                reorder_level=material.reorder_level,
                unit=material.unit,
                stock_status=status,
                priority="high" if status in ("critical", "out_of_stock") else "medium",
                affected_products=affected,
            ))

    # sorted() is stable
    return sorted(critical, key=lambda item: item.priority != "high")


# =============================================================================
# END OF EXPLOSION ENGINE
# =============================================================================
