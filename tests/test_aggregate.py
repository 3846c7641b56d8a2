# =============================================================================
# BOMCALC ENGINE - MULTI-PRODUCT AGGREGATION TESTS
# =============================================================================

import pytest
import sys
import os
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bomcalc.aggregate import calculate_multi_product_batch, validate_production_plan
from bomcalc.errors import InvalidInput


class TestValidatePlan:

    @pytest.mark.parametrize("plan", [{}, [("burger", 1)], {"burger": 0}, {"burger": 1.5}])
    def test_rejects_malformed_plans(self, plan):
        with pytest.raises(InvalidInput):
            validate_production_plan(plan)

    def test_returns_plain_dict(self):
        assert validate_production_plan({"burger": 2}) == {"burger": 2}


class TestMultiProductBatch:
    """Tests for shared-material aggregation."""

    def test_shared_material_shortfall_detected(self, catalog, scope):
        # Each fits alone: burger 15 needs 16.5 patties, cheeseburger 10 needs 11.
        result = calculate_multi_product_batch(
            catalog, {"burger": 15, "cheeseburger": 10}, scope
        )
        assert all(line.can_produce for line in result.product_lines)
        assert result.overall_feasible is False

        patty = result.materials["patty"]
        assert patty.total_required == Decimal("27.5")
        assert patty.shortage == Decimal("5.5")
        assert [s.material_id for s in result.material_shortages] == ["patty"]
        assert [c.product_id for c in patty.contributions] == ["burger", "cheeseburger"]

    def test_feasible_plan(self, catalog, scope):
        result = calculate_multi_product_batch(
            catalog, {"burger": 5, "cheeseburger": 5}, scope
        )
        assert result.overall_feasible is True
        assert result.material_shortages == []
        assert result.materials["bun"].total_required == Decimal("10")
        assert result.materials["bun"].remaining_after_production == Decimal("40")

    def test_total_cost_sums_products(self, catalog, scope):
        result = calculate_multi_product_batch(
            catalog, {"burger": 15, "cheeseburger": 2}, scope
        )
        costs = [line.total_cost for line in result.product_lines]
        assert result.total_production_cost == sum(costs)

    def test_per_product_errors_do_not_stop_others(self, catalog, scope):
        result = calculate_multi_product_batch(
            catalog, {"burger": 5, "salad": 2, "pizza": 1, "soda": 3}, scope
        )
        assert result.total_products == 4
        assert result.overall_feasible is False
        kinds = {line.product_id: line.error.kind for line in result.failed_products}
        assert kinds == {
            "salad": "no_active_recipe",
            "pizza": "not_found",
            "soda": "invalid_product_type",
        }
        assert result.materials["bun"].total_required == Decimal("5")

    def test_plan_order_preserved(self, catalog, scope):
        result = calculate_multi_product_batch(
            catalog, {"cheeseburger": 1, "burger": 1}, scope
        )
        assert [line.product_id for line in result.product_lines] == ["cheeseburger", "burger"]

    def test_invalid_plan_raises(self, catalog, scope):
        with pytest.raises(InvalidInput):
            calculate_multi_product_batch(catalog, {"burger": -2}, scope)
