# =============================================================================
# BOMCALC ENGINE - PRODUCTION PLANNER TESTS
# =============================================================================
# Tests for production plans, the partial optimizer, the greedy schedule
# and the capacity / material usage overviews.
# =============================================================================

import pytest
import sys
import os
from datetime import date
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bomcalc.errors import InvalidInput
from bomcalc.explosion import NO_RECIPE_REASON
from bomcalc.planner import (
    ProductionOrder,
    calculate_overall_capacity,
    create_production_plan,
    generate_production_schedule,
    optimize_material_usage,
    parse_orders,
)


class TestCreateProductionPlan:
    """Tests for feasible, infeasible and optimized plans."""

    def test_feasible(self, catalog, scope):
        result = create_production_plan(catalog, scope, {"burger": 5, "cheeseburger": 5})
        assert result.status == "feasible"
        assert result.recommendations == ["Execute production as planned"]
        assert result.optimized_plan is None

    def test_infeasible_without_partial(self, catalog, scope):
        result = create_production_plan(
            catalog, scope, {"burger": 15, "cheeseburger": 10}, allow_partial=False
        )
        assert result.status == "infeasible"
        assert [s.material_id for s in result.shortages] == ["patty"]
        assert result.recommendations == [
            "Restock 1 material(s) to enable production",
            "Order 5.5 pcs of Patty",
        ]

    def test_optimized_partial_plan(self, catalog, scope):
        result = create_production_plan(catalog, scope, {"burger": 25, "cheeseburger": 5})
        assert result.status == "optimized"
        outcomes = {o.product_id: o for o in result.optimized_plan.feasible_products}

        burger = outcomes["burger"]
        assert burger.status == "partially_feasible"
        assert burger.suggested == 20
        assert burger.reduction_percentage == Decimal("20.00")

        cheeseburger = outcomes["cheeseburger"]
        assert cheeseburger.status == "fully_feasible"
        assert cheeseburger.suggested == 5
        assert result.recommendations == ["Produce 2 product(s) with available materials"]

    def test_optimizer_is_per_product(self, catalog, scope):
        # Both fit alone, so neither is reduced even though patty is overdrawn.
        result = create_production_plan(catalog, scope, {"burger": 15, "cheeseburger": 10})
        assert result.status == "optimized"
        statuses = [o.status for o in result.optimized_plan.feasible_products]
        assert statuses == ["fully_feasible", "fully_feasible"]

    def test_infeasible_products_in_optimized_plan(self, catalog, scope):
        catalog.get_material(scope, "cheese").stock_quantity = Decimal("0")
        result = create_production_plan(
            catalog, scope, {"burger": 5, "cheeseburger": 3, "salad": 1, "pizza": 2}
        )
        infeasible = {o.product_id: o for o in result.optimized_plan.infeasible_products}
        assert infeasible["cheeseburger"].status == "infeasible"
        assert infeasible["cheeseburger"].reason == "Insufficient materials"
        assert infeasible["salad"].reason == NO_RECIPE_REASON
        assert infeasible["pizza"].status == "error"
        assert result.recommendations == [
            "Produce 1 product(s) with available materials",
            "Restock materials for 3 product(s)",
        ]

    def test_priority_mode_does_not_change_allocation(self, catalog, scope):
        plan = {"burger": 25, "cheeseburger": 5}
        balanced = create_production_plan(catalog, scope, plan)
        cheapest = create_production_plan(catalog, scope, plan, priority_mode="minimize_cost")
        assert cheapest.priority_mode == "minimize_cost"
        assert cheapest.optimized_plan == balanced.optimized_plan

    def test_invalid_priority_mode(self, catalog, scope):
        with pytest.raises(InvalidInput):
            create_production_plan(catalog, scope, {"burger": 1}, priority_mode="fastest")

    def test_empty_plan_rejected(self, catalog, scope):
        with pytest.raises(InvalidInput):
            create_production_plan(catalog, scope, {})


class TestParseOrders:

    def test_accepts_mappings_and_dataclasses(self):
        orders = parse_orders([
            {"product_id": "burger", "quantity": 2, "due_date": "2026-03-01"},
            ProductionOrder("burger", 1, date(2026, 3, 2), "X-1"),
        ])
        assert orders[0].due_date == date(2026, 3, 1)
        assert orders[1].order_id == "X-1"

    @pytest.mark.parametrize("order", [
        {"quantity": 1, "due_date": "2026-03-01"},
        {"product_id": "burger", "quantity": 0, "due_date": "2026-03-01"},
        {"product_id": "burger", "quantity": 1, "due_date": "next week"},
        {"product_id": "burger", "quantity": 1},
        "burger",
    ])
    def test_rejects_malformed_orders(self, order):
        with pytest.raises(InvalidInput):
            parse_orders([order])


class TestProductionSchedule:
    """Tests for the greedy due-date schedule."""

    def _orders(self, first_due, second_due):
        return [
            {"order_id": "A", "product_id": "burger", "quantity": 15, "due_date": first_due},
            {"order_id": "B", "product_id": "burger", "quantity": 10, "due_date": second_due},
        ]

    def test_earliest_due_date_gets_materials(self, catalog, scope):
        schedule = generate_production_schedule(
            catalog, scope, self._orders("2026-03-02", "2026-03-01")
        )
        statuses = {e.order_id: e.status for e in schedule.entries}
        assert statuses == {"B": "scheduled", "A": "material_shortage"}
        assert [e.order_id for e in schedule.entries] == ["B", "A"]

    def test_swapping_due_dates_swaps_outcome(self, catalog, scope):
        schedule = generate_production_schedule(
            catalog, scope, self._orders("2026-03-01", "2026-03-02")
        )
        statuses = {e.order_id: e.status for e in schedule.entries}
        assert statuses == {"A": "scheduled", "B": "material_shortage"}

    def test_ledger_and_production_date(self, catalog, scope):
        schedule = generate_production_schedule(
            catalog, scope, self._orders("2026-03-02", "2026-03-01")
        )
        scheduled = schedule.entries[0]
        assert scheduled.production_date == date(2026, 2, 28)
        assert scheduled.production_cost == Decimal("16.70")
        assert schedule.ledger["patty"] == Decimal("11.0")
        assert schedule.ledger["bun"] == Decimal("40")

        short = schedule.entries[1]
        assert short.shortages[0].material_id == "patty"
        assert short.shortages[0].available == Decimal("11.0")
        assert short.shortages[0].shortage == Decimal("5.5")

    def test_rejected_order_consumes_nothing(self, catalog, scope):
        orders = [
            {"product_id": "burger", "quantity": 30, "due_date": "2026-03-01"},
            {"product_id": "burger", "quantity": 20, "due_date": "2026-03-02"},
        ]
        schedule = generate_production_schedule(catalog, scope, orders)
        assert [e.status for e in schedule.entries] == ["material_shortage", "scheduled"]

    def test_stock_is_not_mutated(self, catalog, scope):
        generate_production_schedule(catalog, scope, self._orders("2026-03-01", "2026-03-02"))
        assert catalog.get_material(scope, "patty").stock_quantity == Decimal("22")

    def test_same_due_date_keeps_input_order(self, catalog, scope):
        schedule = generate_production_schedule(
            catalog, scope, self._orders("2026-03-01", "2026-03-01")
        )
        assert [e.order_id for e in schedule.entries] == ["A", "B"]

    def test_default_order_ids_and_summary(self, catalog, scope):
        orders = [
            {"product_id": "burger", "quantity": 2, "due_date": date(2026, 3, 3)},
            {"product_id": "soda", "quantity": 1, "due_date": date(2026, 3, 1)},
            {"product_id": "salad", "quantity": 1, "due_date": date(2026, 3, 2)},
        ]
        schedule = generate_production_schedule(catalog, scope, orders)
        assert [e.order_id for e in schedule.entries] == ["ORD-1", "ORD-2", "ORD-3"]
        assert [e.status for e in schedule.entries] == ["error", "error", "scheduled"]
        assert schedule.entries[0].error.kind == "invalid_product_type"
        assert schedule.entries[1].error.kind == "no_active_recipe"
        assert (schedule.total_orders, schedule.scheduled, schedule.errors) == (3, 1, 2)
        assert schedule.planning_horizon_days == 7

    def test_invalid_horizon(self, catalog, scope):
        with pytest.raises(InvalidInput):
            generate_production_schedule(catalog, scope, [], horizon_days=0)

    def test_empty_orders(self, catalog, scope):
        schedule = generate_production_schedule(catalog, scope, [], horizon_days=14)
        assert schedule.entries == []
        assert schedule.planning_horizon_days == 14


class TestOverviews:
    """Tests for capacity and material usage overviews."""

    def test_overall_capacity(self, catalog, scope):
        overview = calculate_overall_capacity(catalog, scope)
        assert overview.total_bom_products == 2
        capacities = {c.product_id: c.current_capacity for c in overview.product_capacities}
        assert capacities == {"burger": 20, "cheeseburger": 12}
        bottlenecks = {b.material_id: b.affects_products for b in overview.critical_bottlenecks}
        assert bottlenecks == {"patty": ["Burger"], "cheese": ["Cheeseburger"]}

    def test_overall_capacity_unit_cost(self, catalog, scope):
        costs = {
            c.product_id: c.unit_cost
            for c in calculate_overall_capacity(catalog, scope).product_capacities
        }
        assert costs == {"burger": Decimal("1.67"), "cheeseburger": Decimal("1.92")}

    def test_unit_cost_divides_by_yield(self, catalog, scope):
        catalog.get_recipe(scope, "r-burger").yield_quantity = Decimal("2")
        overview = calculate_overall_capacity(catalog, scope)
        burger = [c for c in overview.product_capacities if c.product_id == "burger"][0]
        assert burger.unit_cost == Decimal("0.84")

    def test_material_usage(self, catalog, scope):
        insights = {i.material_id: i for i in optimize_material_usage(catalog, scope)}
        assert set(insights) == {"bun", "patty", "cheese"}

        bun = insights["bun"]
        assert [u.max_producible_batches for u in bun.used_in_recipes] == [50, 50]
        assert bun.suggestion == "Material is shared across 2 product(s). Monitor usage patterns."

        patty = insights["patty"]
        assert patty.suggestion.startswith("Low stock - can produce only 20 batch(es)")

    def test_out_of_stock_suggestion(self, catalog, scope):
        catalog.get_material(scope, "bun").stock_quantity = Decimal("0")
        insights = {i.material_id: i for i in optimize_material_usage(catalog, scope)}
        assert insights["bun"].suggestion == (
            "Out of stock - affects 2 product(s). Priority restock required."
        )
