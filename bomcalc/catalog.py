# =============================================================================
# BOMCALC ENGINE - CATALOG MODULE
# =============================================================================
# Tenant-scoped in-memory repository for materials, products and recipes.
#
# Every lookup takes the scope it is handed; the calculation core never
# filters by tenant itself. Recipes are returned with their components and
# materials already attached (eager), and batch lookups exist so that
# multi-product operations issue one fetch instead of one per product.
#
# INVARIANT: at most one active recipe per product. Activation swaps the
# active recipe under a lock.
# =============================================================================

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional
import logging
import threading

from .config import EngineSettings, load_settings, load_snapshot
from .entities import Material, Product, Recipe, RecipeComponent
from .errors import (
    InvalidInput,
    MaterialNotFound,
    ProductNotFound,
    RecipeNotFound,
)

logger = logging.getLogger(__name__)


@dataclass
class TenantInventory:
    """Records belonging to one tenant scope (insertion ordered)."""
    materials: Dict[str, Material] = field(default_factory=dict)
    products: Dict[str, Product] = field(default_factory=dict)
    recipes: Dict[str, Recipe] = field(default_factory=dict)


class InventoryCatalog:
    """In-memory repository implementing the lookup contract of the engine."""

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or EngineSettings()
        self._tenants: Dict[str, TenantInventory] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Scope handling
    # ------------------------------------------------------------------

    def _tenant(self, scope: str) -> TenantInventory:
        return self._tenants.get(scope) or TenantInventory()

    def _writable_tenant(self, scope: str) -> TenantInventory:
        return self._tenants.setdefault(scope, TenantInventory())

    def scopes(self) -> List[str]:
        return list(self._tenants.keys())

    # ------------------------------------------------------------------
    # Materials
    # ------------------------------------------------------------------

    def add_material(self, scope: str, material: Material) -> Material:
        self._writable_tenant(scope).materials[material.id] = material
        return material

    def get_material(self, scope: str, material_id: str) -> Material:
        material = self._tenant(scope).materials.get(material_id)
        if material is None:
            raise MaterialNotFound(material_id)
        return material

    def list_materials(self, scope: str) -> List[Material]:
        return list(self._tenant(scope).materials.values())

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def add_product(self, scope: str, product: Product) -> Product:
        self._writable_tenant(scope).products[product.id] = product
        return product

    def get_product(self, scope: str, product_id: str) -> Product:
        product = self._tenant(scope).products.get(product_id)
        if product is None:
            raise ProductNotFound(product_id)
        return product

    def get_products(self, scope: str, product_ids: Iterable[str]) -> Dict[str, Product]:
        """Batch lookup; unknown IDs are simply absent from the result."""
        products = self._tenant(scope).products
        return {pid: products[pid] for pid in product_ids if pid in products}

    def list_products(self, scope: str) -> List[Product]:
        return list(self._tenant(scope).products.values())

    # ------------------------------------------------------------------
    # Recipes
    # ------------------------------------------------------------------

    def add_recipe(self, scope: str, recipe: Recipe) -> Recipe:
        """Register a recipe; an active recipe displaces the current one."""
        tenant = self._writable_tenant(scope)
        if recipe.product_id not in tenant.products:
            raise ProductNotFound(recipe.product_id)
        for component in recipe.components:
            if component.material_id not in tenant.materials:
                raise MaterialNotFound(component.material_id)
        with self._lock:
            if recipe.is_active:
                self._deactivate_others(tenant, recipe)
            tenant.recipes[recipe.id] = recipe
        return recipe

    def add_component(
        self,
        scope: str,
        recipe_id: str,
        material_id: str,
        quantity_required,
        waste_percentage=0,
        component_id: Optional[str] = None,
    ) -> RecipeComponent:
        """Add a validated component to an existing recipe."""
        recipe = self.get_recipe(scope, recipe_id)
        material = self.get_material(scope, material_id)
        component = RecipeComponent(
            material=material,
            quantity_required=quantity_required,
            waste_percentage=waste_percentage,
            id=component_id,
        )
        errors = component.validate()
        if errors:
            raise InvalidInput("; ".join(errors))
        with self._lock:
            return recipe.add_component(component)

    # Readers hold the lock too, so an activation swap is never seen half done.

    def get_recipe(self, scope: str, recipe_id: str) -> Recipe:
        with self._lock:
            recipe = self._tenant(scope).recipes.get(recipe_id)
        if recipe is None:
            raise RecipeNotFound(recipe_id)
        return recipe

    def get_recipes_for_product(self, scope: str, product_id: str) -> List[Recipe]:
        """All recipes of a product, active first, then by name."""
        with self._lock:
            recipes = [
                (not r.is_active, r.name, r) for r in self._tenant(scope).recipes.values()
                if r.product_id == product_id
            ]
        return [r for _, _, r in sorted(recipes, key=lambda item: item[:2])]

    def get_active_recipe_for_product(self, scope: str, product_id: str) -> Optional[Recipe]:
        with self._lock:
            for recipe in self._tenant(scope).recipes.values():
                if recipe.product_id == product_id and recipe.is_active:
                    return recipe
        return None

    def get_recipes_for_products(
        self, scope: str, product_ids: Iterable[str]
    ) -> Dict[str, Optional[Recipe]]:
        """Batch lookup of active recipes; products without one map to None."""
        wanted = list(product_ids)
        result: Dict[str, Optional[Recipe]] = {pid: None for pid in wanted}
        with self._lock:
            for recipe in self._tenant(scope).recipes.values():
                if recipe.is_active and recipe.product_id in result:
                    if result[recipe.product_id] is None:
                        result[recipe.product_id] = recipe
        return result

    def list_active_recipes(self, scope: str) -> List[Recipe]:
        with self._lock:
            return [r for r in self._tenant(scope).recipes.values() if r.is_active]

    def list_recipes(self, scope: str) -> List[Recipe]:
        with self._lock:
            return list(self._tenant(scope).recipes.values())

    def activate_recipe(self, scope: str, recipe_id: str) -> Recipe:
        """Activate a recipe and deactivate every other recipe of its product."""
        recipe = self.get_recipe(scope, recipe_id)
        tenant = self._tenant(scope)
        with self._lock:
            self._deactivate_others(tenant, recipe)
            recipe.is_active = True
        return recipe

    def deactivate_recipe(self, scope: str, recipe_id: str) -> Recipe:
        recipe = self.get_recipe(scope, recipe_id)
        with self._lock:
            recipe.is_active = False
        return recipe

    @staticmethod
    def _deactivate_others(tenant: TenantInventory, recipe: Recipe) -> None:
        for other in tenant.recipes.values():
            if other.product_id == recipe.product_id and other.id != recipe.id:
                other.is_active = False


# =============================================================================
# SNAPSHOT LOADING
# =============================================================================

def _load_tenant(catalog: InventoryCatalog, scope: str, tenant_data: Dict) -> None:
    for material_data in tenant_data.get("materials", []) or []:
        catalog.add_material(scope, Material(
            id=str(material_data["id"]),
            name=material_data.get("name", ""),
            sku=material_data.get("sku", ""),
            unit=material_data.get("unit", "pcs"),
            stock_quantity=material_data.get("stock_quantity", 0),
            reorder_level=material_data.get("reorder_level", 0),
            unit_cost=material_data.get("unit_cost", 0),
            category=material_data.get("category"),
        ))

    for product_data in tenant_data.get("products", []) or []:
        catalog.add_product(scope, Product(
            id=str(product_data["id"]),
            name=product_data.get("name", ""),
            inventory_management_type=product_data.get("inventory_management_type", "simple"),
        ))

    tenant = catalog._writable_tenant(scope)
    for recipe_data in tenant_data.get("recipes", []) or []:
        components = []
        for component_data in recipe_data.get("components", []) or []:
            components.append(RecipeComponent(
                material=catalog.get_material(scope, str(component_data["material_id"])),
                quantity_required=component_data.get("quantity_required", 0),
                waste_percentage=component_data.get("waste_percentage", 0),
                id=component_data.get("id"),
            ))
        recipe = Recipe(
            id=str(recipe_data["id"]),
            product_id=str(recipe_data["product_id"]),
            name=recipe_data.get("name", ""),
            yield_quantity=recipe_data.get("yield_quantity", 1),
            yield_unit=recipe_data.get("yield_unit", "pcs"),
            is_active=bool(recipe_data.get("is_active", False)),
            components=components,
        )
        if recipe.product_id not in tenant.products:
            raise ProductNotFound(recipe.product_id)
        # Stored as given so that data checks can report conflicting actives.
        tenant.recipes[recipe.id] = recipe

    active_counts: Dict[str, int] = {}
    for recipe in tenant.recipes.values():
        if recipe.is_active:
            active_counts[recipe.product_id] = active_counts.get(recipe.product_id, 0) + 1
    for product_id, count in active_counts.items():
        if count > 1:
            logger.warning(
                "Tenant %s: product %s has %d active recipes; lookups use the first loaded",
                scope, product_id, count,
            )


def load_catalog(snapshot: Dict) -> InventoryCatalog:
    """
    Build a catalog from a snapshot dictionary.

    Args:
        snapshot: Parsed YAML with optional 'settings' and a 'tenants' section

    Returns:
        InventoryCatalog holding every tenant of the snapshot

    Expected structure:
        tenants:
          <tenant_id>:
            materials: [{id, name, sku, unit, stock_quantity, ...}]
            products: [{id, name, inventory_management_type}]
            recipes:
              - id, product_id, name, yield_quantity, is_active
                components: [{material_id, quantity_required, waste_percentage}]
    """
    catalog = InventoryCatalog(settings=load_settings(snapshot))
    for scope, tenant_data in (snapshot.get("tenants", {}) or {}).items():
        _load_tenant(catalog, str(scope), tenant_data or {})
    return catalog


def load_catalog_from_dir(scenario_id: str, inventory_dir: Path) -> InventoryCatalog:
    """Load base.yaml (plus scenario override) from an inventory directory."""
    return load_catalog(load_snapshot(scenario_id, inventory_dir))


# =============================================================================
# END OF CATALOG MODULE
# =============================================================================
