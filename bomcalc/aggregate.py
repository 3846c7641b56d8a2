# =============================================================================
# BOMCALC ENGINE - MULTI-PRODUCT AGGREGATION MODULE
# =============================================================================
# Combines batch requirements of several products into one shared-material
# demand view.
#
# FORMULA:
# total_required[m] = SUM over products p of required_for_batch[p, m]
# shortage[m]       = max(0, total_required[m] - stock[m])
#
# KEY PRINCIPLE: sufficiency is re-evaluated against the merged totals.
# Two products that each fit alone can still overdraw a shared material.
# =============================================================================

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Dict, List, Mapping, Optional
import logging

from .batch import BatchRequirements, MaterialShortage, batch_requirements_for
from .config import EngineSettings
from .entities import ZERO
from .errors import (
    BomError,
    InvalidInput,
    NoActiveRecipe,
    ProductError,
    ProductNotFound,
    require_positive_int,
)
from .explosion import require_bom

logger = logging.getLogger(__name__)


@dataclass
class MaterialContribution:
    product_id: str
    product_name: str
    quantity: int
    required: Decimal


@dataclass
class AggregatedMaterial:
    """Demand on one material summed across all products of a plan."""
    material_id: str
    material_name: str
    unit: str
    current_stock: Decimal
    unit_cost: Decimal
    total_required: Decimal = ZERO
    contributions: List[MaterialContribution] = field(default_factory=list)

    @property
    def shortage(self) -> Decimal:
        return max(ZERO, self.total_required - self.current_stock)

    @property
    def remaining_after_production(self) -> Decimal:
        return self.current_stock - self.total_required

    @property
    def is_sufficient(self) -> bool:
        return self.total_required <= self.current_stock


@dataclass
class ProductBatchLine:
    product_id: str
    quantity: int
    product_name: Optional[str] = None
    can_produce: bool = False
    total_cost: Decimal = ZERO
    shortages: List[MaterialShortage] = field(default_factory=list)
    requirements: Optional[BatchRequirements] = None
    error: Optional[ProductError] = None


@dataclass
class MultiProductBatchResult:
    product_lines: List[ProductBatchLine] = field(default_factory=list)
    materials: Dict[str, AggregatedMaterial] = field(default_factory=dict)
    material_shortages: List[MaterialShortage] = field(default_factory=list)
    total_products: int = 0
    overall_feasible: bool = False
    total_production_cost: Decimal = ZERO

    @property
    def failed_products(self) -> List[ProductBatchLine]:
        return [line for line in self.product_lines if line.error is not None]

    def to_dict(self) -> Dict:
        return asdict(self)


def validate_production_plan(production_plan: Mapping[str, int]) -> Dict[str, int]:
    """
    Validate a product -> quantity mapping before any calculation runs.

    Raises:
        InvalidInput: not a non-empty mapping, or a quantity is not an int >= 1
    """
    if not isinstance(production_plan, Mapping):
        raise InvalidInput(
            f"production plan must be a mapping of product_id to quantity, "
            f"got {type(production_plan).__name__}"
        )
    if not production_plan:
        raise InvalidInput("production plan must contain at least one product")

    for product_id, quantity in production_plan.items():
        require_positive_int(quantity, f"quantity for product {product_id}")
    return dict(production_plan)


def merge_requirements(
    result: MultiProductBatchResult, requirements: BatchRequirements
) -> None:
    """Add one product's batch lines into the per-material totals."""
    for line in requirements.lines:
        material = result.materials.get(line.material_id)
        if material is None:
            material = AggregatedMaterial(
                material_id=line.material_id,
                material_name=line.material_name,
                unit=line.unit,
                current_stock=line.current_stock,
                unit_cost=line.unit_cost,
            )
            result.materials[line.material_id] = material

        material.total_required += line.total_required
        material.contributions.append(MaterialContribution(
            product_id=requirements.product_id,
            product_name=requirements.product_name,
            quantity=requirements.requested_quantity,
            required=line.total_required,
        ))


def calculate_multi_product_batch(
    catalog, production_plan: Mapping[str, int], scope: str
) -> MultiProductBatchResult:
    """
    Aggregate batch requirements across several products.

    Args:
        catalog: Repository with batch lookups
        production_plan: product_id -> requested quantity
        scope: Tenant scope

    Returns:
        MultiProductBatchResult; a product that cannot be calculated carries
        its error inline and does not stop the others

    Raises:
        InvalidInput: malformed plan (checked before any lookup)
    """
    plan = validate_production_plan(production_plan)
    settings = getattr(catalog, "settings", None) or EngineSettings()

    products = catalog.get_products(scope, list(plan.keys()))
    recipes = catalog.get_recipes_for_products(scope, list(products.keys()))

    result = MultiProductBatchResult(total_products=len(plan))
    total_cost = ZERO
    products_feasible = True

    for product_id, quantity in plan.items():
        line = ProductBatchLine(product_id=product_id, quantity=quantity)
        result.product_lines.append(line)
        try:
            product = products.get(product_id)
            if product is None:
                raise ProductNotFound(product_id)
            line.product_name = product.name
            require_bom(product)
            recipe = recipes.get(product_id)
            if recipe is None:
                raise NoActiveRecipe(product_id)

            requirements = batch_requirements_for(
                product, recipe, quantity, settings.money_places
            )
        except BomError as exc:
            logger.warning("Batch calculation failed for %s: %s", product_id, exc)
            line.error = ProductError.from_exception(product_id, exc)
            products_feasible = False
            continue

        line.requirements = requirements
        line.can_produce = requirements.can_produce
        line.total_cost = requirements.cost_analysis.total_material_cost
        line.shortages = requirements.shortages
        if not requirements.can_produce:
            products_feasible = False

        total_cost += requirements.cost_analysis.total_material_cost
        merge_requirements(result, requirements)

    for material in result.materials.values():
        if material.shortage > 0:
            result.material_shortages.append(MaterialShortage(
                material_id=material.material_id,
                material_name=material.material_name,
                unit=material.unit,
                required=material.total_required,
                available=material.current_stock,
                shortage=material.shortage,
            ))

    result.total_production_cost = total_cost
    result.overall_feasible = products_feasible and not result.material_shortages
    return result


# =============================================================================
# END OF MULTI-PRODUCT AGGREGATION MODULE
# =============================================================================
