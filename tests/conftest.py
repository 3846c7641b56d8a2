# =============================================================================
# BOMCALC ENGINE - PYTEST CONFIGURATION
# =============================================================================
# Shared fixtures and configuration for all tests.
# =============================================================================

import pytest
import sys
import os
from pathlib import Path

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bomcalc.catalog import InventoryCatalog, load_catalog
from bomcalc.entities import Material, Product, Recipe, RecipeComponent


SCOPE = "bistro"


@pytest.fixture
def project_root():
    """Get project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def inventory_dir(project_root):
    """Get sample inventory directory."""
    return project_root / "inventory"


@pytest.fixture
def scope():
    return SCOPE


@pytest.fixture
def burger_snapshot():
    """Snapshot with a Burger (Bun 50, Patty 22 at 10% waste) and friends."""
    return {
        "tenants": {
            SCOPE: {
                "materials": [
                    {"id": "bun", "name": "Bun", "sku": "BUN-1", "unit": "pcs",
                     "stock_quantity": 50, "reorder_level": 20, "unit_cost": 0.35},
                    {"id": "patty", "name": "Patty", "sku": "PAT-1", "unit": "pcs",
                     "stock_quantity": 22, "reorder_level": 30, "unit_cost": 1.20},
                    {"id": "cheese", "name": "Cheese", "sku": "CHS-1", "unit": "pcs",
                     "stock_quantity": 12, "reorder_level": 5, "unit_cost": 0.25},
                ],
                "products": [
                    {"id": "burger", "name": "Burger", "inventory_management_type": "bom"},
                    {"id": "cheeseburger", "name": "Cheeseburger",
                     "inventory_management_type": "bom"},
                    {"id": "salad", "name": "Salad", "inventory_management_type": "bom"},
                    {"id": "soda", "name": "Soda", "inventory_management_type": "simple"},
                ],
                "recipes": [
                    {
                        "id": "r-burger", "product_id": "burger", "name": "Burger Recipe",
                        "is_active": True,
                        "components": [
                            {"material_id": "bun", "quantity_required": 1},
                            {"material_id": "patty", "quantity_required": 1,
                             "waste_percentage": 10},
                        ],
                    },
                    {
                        "id": "r-cheeseburger", "product_id": "cheeseburger",
                        "name": "Cheeseburger Recipe", "is_active": True,
                        "components": [
                            {"material_id": "bun", "quantity_required": 1},
                            {"material_id": "patty", "quantity_required": 1,
                             "waste_percentage": 10},
                            {"material_id": "cheese", "quantity_required": 1},
                        ],
                    },
                ],
            },
            "other-tenant": {
                "materials": [
                    {"id": "bun", "name": "Bun", "stock_quantity": 3, "unit_cost": 0.5},
                ],
                "products": [
                    {"id": "burger", "name": "Burger", "inventory_management_type": "bom"},
                ],
                "recipes": [
                    {
                        "id": "r-burger", "product_id": "burger", "name": "Burger Recipe",
                        "is_active": True,
                        "components": [{"material_id": "bun", "quantity_required": 1}],
                    },
                ],
            },
        }
    }


@pytest.fixture
def catalog(burger_snapshot):
    """Catalog loaded from the burger snapshot."""
    return load_catalog(burger_snapshot)


@pytest.fixture
def make_catalog():
    """
    Build a single-product catalog.

    components: list of (material_id, stock, quantity_required, waste_percentage)
    """
    def _make(components, product_type="bom", active=True, unit_cost=1, settings=None):
        catalog = InventoryCatalog(settings=settings)
        catalog.add_product(SCOPE, Product("widget", "Widget", product_type))
        recipe_components = []
        for material_id, stock, quantity, waste in components:
            material = catalog.add_material(SCOPE, Material(
                id=material_id,
                name=material_id.title(),
                stock_quantity=stock,
                reorder_level=0,
                unit_cost=unit_cost,
            ))
            recipe_components.append(RecipeComponent(material, quantity, waste))
        catalog.add_recipe(SCOPE, Recipe(
            id="r-widget",
            product_id="widget",
            name="Widget Recipe",
            is_active=active,
            components=recipe_components,
        ))
        return catalog

    return _make
