# =============================================================================
# BOMCALC ENGINE - ENTITIES MODULE
# =============================================================================
# Bill of Materials data structures.
# A Recipe defines the materials required to produce one unit of a Product.
#
# FORMULA:
# effective_quantity = quantity_required * (1 + waste_percentage / 100)
#
# All quantities are Decimal so that floor division stays exact
# (22 / 1.1 == 20, not 19.999...).
# =============================================================================

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from .errors import DuplicateComponent, InvalidInput


MATERIAL_UNITS = ("kg", "g", "L", "ml", "pcs", "box", "bottle", "can", "bag")
INVENTORY_TYPES = ("simple", "bom")

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value, name: str = "value") -> Decimal:
    """Convert a number or numeric string to a finite Decimal via its text form."""
    if isinstance(value, Decimal):
        result = value
    else:
        if value is None or isinstance(value, bool):
            raise InvalidInput(f"{name} must be numeric, got {value!r}")
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise InvalidInput(f"{name} must be numeric, got {value!r}") from None
    if not result.is_finite():
        raise InvalidInput(f"{name} must be a finite number, got {value!r}")
    return result


def format_quantity(value: Decimal) -> str:
    """Plain decimal text without exponent or trailing zeros."""
    text = f"{value.normalize():f}"
    return "0" if text in ("-0", "") else text


@dataclass
class Material:
    """Stocked raw material."""
    id: str
    name: str
    sku: str = ""
    unit: str = "pcs"  # kg | g | L | ml | pcs | box | bottle | can | bag
    stock_quantity: Decimal = ZERO
    reorder_level: Decimal = ZERO
    unit_cost: Decimal = ZERO
    category: Optional[str] = None

    def __post_init__(self):
        if self.unit not in MATERIAL_UNITS:
            raise InvalidInput(
                f"Material {self.id} has unknown unit {self.unit!r}; "
                f"expected one of {', '.join(MATERIAL_UNITS)}"
            )
        self.stock_quantity = to_decimal(self.stock_quantity, "stock_quantity")
        self.reorder_level = to_decimal(self.reorder_level, "reorder_level")
        self.unit_cost = to_decimal(self.unit_cost, "unit_cost")

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity < self.reorder_level

    def stock_status(self, critical_ratio: float = 0.5) -> str:
        """Return out_of_stock | critical | low | normal."""
        if self.stock_quantity <= 0:
            return "out_of_stock"
        if self.stock_quantity <= self.reorder_level * to_decimal(critical_ratio):
            return "critical"
        if self.is_low_stock:
            return "low"
        return "normal"


@dataclass
class RecipeComponent:
    """Single material line of a recipe."""
    material: Material
    quantity_required: Decimal
    waste_percentage: Decimal = ZERO
    id: Optional[str] = None

    def __post_init__(self):
        self.quantity_required = to_decimal(self.quantity_required, "quantity_required")
        self.waste_percentage = to_decimal(self.waste_percentage, "waste_percentage")

    @property
    def material_id(self) -> str:
        return self.material.id

    @property
    def effective_quantity(self) -> Decimal:
        """Quantity consumed per unit including waste."""
        return self.quantity_required * (1 + self.waste_percentage / HUNDRED)

    @property
    def waste_amount(self) -> Decimal:
        return self.quantity_required * self.waste_percentage / HUNDRED

    @property
    def unit_cost_total(self) -> Decimal:
        """Material cost of one produced unit for this component."""
        return self.effective_quantity * self.material.unit_cost

    @property
    def is_degenerate(self) -> bool:
        return self.effective_quantity <= 0

    def validate(self) -> List[str]:
        """Authoring constraints for a component (empty list if valid)."""
        errors = []
        if self.quantity_required <= 0:
            errors.append(
                f"quantity_required must be > 0 for material {self.material_id}: "
                f"{self.quantity_required}"
            )
        if self.waste_percentage < 0 or self.waste_percentage > HUNDRED:
            errors.append(
                f"waste_percentage must be within 0-100 for material "
                f"{self.material_id}: {self.waste_percentage}"
            )
        return errors


@dataclass
class Recipe:
    """Recipe producing a Product; component order is definition order."""
    id: str
    product_id: str
    name: str
    yield_quantity: Decimal = Decimal("1")
    yield_unit: str = "pcs"
    is_active: bool = False
    components: List[RecipeComponent] = field(default_factory=list)

    def __post_init__(self):
        self.yield_quantity = to_decimal(self.yield_quantity, "yield_quantity")
        seen = set()
        for component in self.components:
            if component.material_id in seen:
                raise DuplicateComponent(self.id, component.material_id)
            seen.add(component.material_id)

    def has_material(self, material_id: str) -> bool:
        return any(c.material_id == material_id for c in self.components)

    def add_component(self, component: RecipeComponent) -> RecipeComponent:
        """Append a component; a material may appear only once per recipe."""
        if self.has_material(component.material_id):
            raise DuplicateComponent(self.id, component.material_id)
        self.components.append(component)
        return component

    def get_component(self, material_id: str) -> RecipeComponent:
        for component in self.components:
            if component.material_id == material_id:
                return component
        raise KeyError(f"Material {material_id} not found in recipe {self.id}")

    def total_cost(self) -> Decimal:
        """Material cost of one recipe execution, waste included."""
        return sum((c.unit_cost_total for c in self.components), ZERO)

    def cost_per_unit(self) -> Decimal:
        """Material cost per yielded unit."""
        if self.yield_quantity <= 0:
            return ZERO
        return self.total_cost() / self.yield_quantity


@dataclass
class Product:
    """Sellable product; only 'bom' products are exploded."""
    id: str
    name: str
    inventory_management_type: str = "simple"  # simple | bom

    def __post_init__(self):
        if self.inventory_management_type not in INVENTORY_TYPES:
            raise InvalidInput(
                f"Product {self.id} has unknown inventory_management_type "
                f"{self.inventory_management_type!r}; expected simple or bom"
            )

    @property
    def is_bom(self) -> bool:
        return self.inventory_management_type == "bom"


def validate_recipe(recipe: Recipe) -> List[str]:
    """
    Validate recipe constraints.

    Args:
        recipe: Recipe to validate

    Returns:
        List of validation errors (empty if valid)

    Validations:
        - yield_quantity > 0
        - every component has quantity_required > 0 and waste within 0-100
    """
    errors = []

    if recipe.yield_quantity <= 0:
        errors.append(
            f"Recipe {recipe.id} has yield_quantity {recipe.yield_quantity} (must be > 0)"
        )

    for component in recipe.components:
        for error in component.validate():
            errors.append(f"Recipe {recipe.id}: {error}")

    return errors


def get_all_material_ids(recipes: List[Recipe]) -> List[str]:
    """Unique material IDs used across recipes, sorted."""
    material_ids = set()
    for recipe in recipes:
        for component in recipe.components:
            material_ids.add(component.material_id)
    return sorted(material_ids)


# =============================================================================
# END OF ENTITIES MODULE
# =============================================================================
