# =============================================================================
# BOMCALC ENGINE - ERRORS
# =============================================================================
# Error taxonomy for the calculation core.
#
# - NotFound / InvalidProductType / InvalidInput abort a single operation.
# - NoActiveRecipe is raised only where a recipe is mandatory (batch
#   projections); availability reports it as a zero-capacity result.
# - Degenerate data is never raised: it becomes a warning on the result.
# - ProductError is the per-item failure slot used by bulk operations.
# =============================================================================

from dataclasses import dataclass


class BomError(Exception):
    """Base class for all engine errors."""

    kind = "error"


class NotFound(BomError, KeyError):
    kind = "not_found"

    def __str__(self) -> str:
        # KeyError quotes its argument; keep plain messages.
        return str(self.args[0]) if self.args else self.kind


class ProductNotFound(NotFound):
    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found in this scope")
        self.product_id = product_id


class MaterialNotFound(NotFound):
    def __init__(self, material_id: str):
        super().__init__(f"Material {material_id} not found in this scope")
        self.material_id = material_id


class RecipeNotFound(NotFound):
    def __init__(self, recipe_id: str):
        super().__init__(f"Recipe {recipe_id} not found in this scope")
        self.recipe_id = recipe_id


class InvalidProductType(BomError, ValueError):
    kind = "invalid_product_type"

    def __init__(self, product_id: str, product_name: str, current_type: str):
        super().__init__(
            f"Product '{product_name}' does not use BOM inventory management. "
            f"Current type: {current_type}"
        )
        self.product_id = product_id
        self.current_type = current_type


class InvalidInput(BomError, ValueError):
    kind = "invalid_input"


class DuplicateComponent(InvalidInput):
    def __init__(self, recipe_id: str, material_id: str):
        super().__init__(
            f"Material {material_id} is already a component of recipe {recipe_id}"
        )
        self.recipe_id = recipe_id
        self.material_id = material_id


class OperationCancelled(BomError):
    kind = "cancelled"


class NoActiveRecipe(BomError):
    kind = "no_active_recipe"

    def __init__(self, product_id: str):
        super().__init__(f"No active recipe found for product {product_id}")
        self.product_id = product_id


@dataclass
class ProductError:
    """Failure captured in a single slot of a bulk or aggregate result."""
    product_id: str
    kind: str
    message: str

    @classmethod
    def from_exception(cls, product_id: str, exc: Exception) -> "ProductError":
        kind = getattr(exc, "kind", "error")
        return cls(product_id=product_id, kind=kind, message=str(exc))


def require_positive_int(value, name: str = "quantity") -> int:
    """Validate a strictly positive integer (bools are rejected)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidInput(f"{name} must be greater than 0, got {value}")
    return value


# =============================================================================
# END OF ERRORS
# =============================================================================
