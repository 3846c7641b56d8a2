# =============================================================================
# BOMCALC ENGINE - MAIN ENTRY POINT
# =============================================================================
# Command-line interface over an inventory snapshot directory.
#
# Usage:
#   python main.py availability --tenant demo-bistro
#   python main.py batch --product burger --quantity 15
#   python main.py plan --item burger=10 --item cheeseburger=5
#   python main.py schedule --orders inventory/orders.yaml
#   python main.py validate --scenario restock
# =============================================================================

import argparse
from dataclasses import asdict, is_dataclass
from pathlib import Path
import json
import logging
import sys

import pandas as pd

from bomcalc.batch import (
    calculate_batch_requirements,
    calculate_optimal_batch_size,
    get_production_capacity_forecast,
)
from bomcalc.catalog import load_catalog_from_dir
from bomcalc.config import load_yaml_file
from bomcalc.errors import BomError, InvalidInput
from bomcalc.explosion import (
    bulk_calculate_availability,
    get_low_stock_materials_in_active_recipes,
)
from bomcalc.planner import (
    PRIORITY_MODES,
    calculate_overall_capacity,
    create_production_plan,
    generate_production_schedule,
)
from bomcalc.tables import (
    aggregated_materials_table,
    availability_table,
    capacity_table,
    low_stock_table,
    requirements_table,
    schedule_table,
)
from bomcalc.validation_report import format_report, generate_validation_report

logger = logging.getLogger("bomcalc.cli")


def print_json(result):
    """Print a result dataclass as JSON; Decimal and date become strings."""
    data = asdict(result) if is_dataclass(result) else result
    print(json.dumps(data, indent=2, default=str))


def print_table(title: str, frame: pd.DataFrame):
    print(f"\n{title}")
    print("-" * 40)
    if frame.empty:
        print("  (none)")
    else:
        print(frame.to_string(index=False))


def resolve_scope(catalog, tenant):
    scopes = catalog.scopes()
    if tenant:
        return tenant
    if not scopes:
        raise InvalidInput("Snapshot defines no tenants")
    return scopes[0]


def parse_plan_items(items):
    """Turn ['burger=10', ...] into {'burger': 10}."""
    plan = {}
    for item in items or []:
        product_id, sep, quantity = item.partition("=")
        if not sep:
            raise InvalidInput(f"Plan item must look like PRODUCT=QUANTITY, got {item!r}")
        try:
            plan[product_id.strip()] = int(quantity)
        except ValueError:
            raise InvalidInput(f"Quantity of {product_id} must be an integer: {quantity!r}") from None
    return plan


def run_availability(catalog, scope, args):
    product_ids = args.product or [
        product.id for product in catalog.list_products(scope) if product.is_bom
    ]
    results = bulk_calculate_availability(catalog, product_ids, scope, timeout=args.timeout)
    if args.json:
        print_json({pid: asdict(entry) for pid, entry in results.items()})
        return
    print_table(f"AVAILABILITY ({scope})", availability_table(results))


def run_batch(catalog, scope, args):
    requirements = calculate_batch_requirements(catalog, args.product, scope, args.quantity)
    if args.json:
        print_json(requirements)
        return

    status = "FEASIBLE" if requirements.can_produce else "SHORTAGES"
    print(f"\n{requirements.product_name} x {requirements.requested_quantity}: {status}")
    print(f"  Recipe:        {requirements.recipe_name}")
    print(f"  Material cost: {requirements.cost_analysis.total_material_cost}")
    print(f"  Cost per unit: {requirements.cost_analysis.cost_per_unit}")
    print_table("MATERIALS", requirements_table(requirements))
    for warning in requirements.warnings:
        print(f"  WARNING: {warning}")


def run_optimal(catalog, scope, args):
    result = calculate_optimal_batch_size(catalog, args.product, scope)
    if args.json:
        print_json(result)
        return

    print(f"\n{result.product_name}")
    print(f"  Maximum producible: {result.maximum_producible}")
    if result.bottleneck_material:
        print(f"  Bottleneck:         {result.bottleneck_material.material_name}")
    frame = pd.DataFrame(
        [asdict(option) for option in result.suggested_batches],
        columns=["batch_size", "total_cost", "cost_per_unit", "utilization_percentage"],
    )
    print_table("BATCH OPTIONS", frame)
    print(f"\n{result.recommendation}")


def run_forecast(catalog, scope, args):
    forecast = get_production_capacity_forecast(
        catalog, args.product, scope, args.days, args.usage
    )
    if args.json:
        print_json(forecast)
        return

    print(f"\n{forecast.product_name}: current capacity {forecast.current_capacity}")
    frame = pd.DataFrame(
        [asdict(point) for point in forecast.capacity_forecast],
        columns=["day", "date", "production_capacity", "capacity_percentage"],
    )
    print_table("FORECAST", frame)
    if forecast.days_until_depletion is not None:
        print(f"\nDays until depletion: {forecast.days_until_depletion}")
    for warning in forecast.warnings:
        print(f"  WARNING: {warning}")


def run_plan(catalog, scope, args):
    result = create_production_plan(
        catalog,
        scope,
        parse_plan_items(args.item),
        allow_partial=not args.no_partial,
        priority_mode=args.priority,
    )
    if args.json:
        print_json(result)
        return

    print(f"\nPLAN STATUS: {result.status.upper()}")
    print(f"  {result.message}")
    print_table("MATERIAL DEMAND", aggregated_materials_table(result.analysis))
    if result.optimized_plan:
        rows = [
            asdict(outcome)
            for outcome in result.optimized_plan.feasible_products
            + result.optimized_plan.infeasible_products
        ]
        frame = pd.DataFrame(rows, columns=[
            "product_id", "product_name", "requested", "suggested",
            "status", "reduction_percentage", "reason",
        ])
        print_table("OPTIMIZED PLAN", frame)
    print("\nRECOMMENDATIONS:")
    for recommendation in result.recommendations:
        print(f"  - {recommendation}")


def run_schedule(catalog, scope, args):
    data = load_yaml_file(Path(args.orders))
    orders = data.get("orders", []) if isinstance(data, dict) else data
    schedule = generate_production_schedule(catalog, scope, orders, args.horizon)
    if args.json:
        print_json(schedule)
        return

    print_table(f"SCHEDULE ({schedule.planning_horizon_days} day horizon)", schedule_table(schedule))
    print(
        f"\n{schedule.scheduled} scheduled, {schedule.material_shortages} short, "
        f"{schedule.errors} error(s) of {schedule.total_orders} order(s)"
    )


def run_capacity(catalog, scope, args):
    overview = calculate_overall_capacity(catalog, scope)
    low_stock = get_low_stock_materials_in_active_recipes(catalog, scope)
    if args.json:
        print_json({"capacity": asdict(overview), "low_stock": [asdict(m) for m in low_stock]})
        return

    print_table(f"CAPACITY ({overview.total_bom_products} BOM products)", capacity_table(overview))
    print("\nBOTTLENECKS:")
    for bottleneck in overview.critical_bottlenecks:
        print(f"  - {bottleneck.material_name}: {', '.join(bottleneck.affects_products)}")
    print_table("LOW STOCK", low_stock_table(low_stock))


def run_validation(catalog, scope, args):
    report = generate_validation_report(catalog, scope)
    print(format_report(report))
    return 0 if report.overall_passed else 1


COMMANDS = {
    "availability": run_availability,
    "batch": run_batch,
    "optimal": run_optimal,
    "forecast": run_forecast,
    "plan": run_plan,
    "schedule": run_schedule,
    "capacity": run_capacity,
    "validate": run_validation,
}


def build_parser():
    parser = argparse.ArgumentParser(description="BOM production capacity engine")
    parser.add_argument("--dir", "-d", default="inventory", help="Inventory snapshot directory")
    parser.add_argument("--scenario", "-s", default="base", help="Scenario override to merge")
    parser.add_argument("--tenant", "-t", help="Tenant scope (defaults to the first one)")
    parser.add_argument("--json", action="store_true", help="Print raw JSON results")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    avail_parser = subparsers.add_parser("availability", help="Producible quantity per product")
    avail_parser.add_argument("--product", "-p", action="append",
                              help="Product ID (repeatable, default: all BOM products)")
    avail_parser.add_argument("--timeout", type=float, help="Seconds before giving up")

    batch_parser = subparsers.add_parser("batch", help="Material requirements for a batch")
    batch_parser.add_argument("--product", "-p", required=True)
    batch_parser.add_argument("--quantity", "-q", type=int, required=True)

    optimal_parser = subparsers.add_parser("optimal", help="Cost-optimal batch size")
    optimal_parser.add_argument("--product", "-p", required=True)

    forecast_parser = subparsers.add_parser("forecast", help="Capacity depletion forecast")
    forecast_parser.add_argument("--product", "-p", required=True)
    forecast_parser.add_argument("--days", type=int, default=7)
    forecast_parser.add_argument("--usage", default="0", help="Average units produced per day")

    plan_parser = subparsers.add_parser("plan", help="Multi-product production plan")
    plan_parser.add_argument("--item", "-i", action="append", required=True,
                             help="PRODUCT=QUANTITY (repeatable)")
    plan_parser.add_argument("--no-partial", action="store_true",
                             help="Report infeasible plans instead of optimizing")
    plan_parser.add_argument("--priority", choices=PRIORITY_MODES, default="balanced")

    schedule_parser = subparsers.add_parser("schedule", help="Greedy due-date schedule")
    schedule_parser.add_argument("--orders", "-o", required=True, help="YAML file of orders")
    schedule_parser.add_argument("--horizon", type=int, help="Planning horizon in days")

    subparsers.add_parser("capacity", help="Capacity overview and low-stock materials")
    subparsers.add_parser("validate", help="Run catalog data checks")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 2

    try:
        catalog = load_catalog_from_dir(args.scenario, Path(args.dir))
        scope = resolve_scope(catalog, args.tenant)
        return handler(catalog, scope, args) or 0
    except BomError as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
