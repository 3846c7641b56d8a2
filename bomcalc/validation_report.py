# =============================================================================
# BOMCALC ENGINE - VALIDATION REPORT GENERATOR
# =============================================================================
# Data checks over one tenant's catalog, rendered as a text report.
# =============================================================================

from dataclasses import dataclass, field
from typing import Dict, List
from datetime import datetime

from .config import validate_settings
from .entities import get_all_material_ids, validate_recipe


@dataclass
class CheckResult:
    """Result of a single data check."""
    name: str
    passed: bool
    message: str = ""
    severity: str = "error"  # error | warning


@dataclass
class ValidationReport:
    """Complete validation report for one scope."""
    timestamp: str = ""
    scope: str = ""

    # Check results by category
    checks: Dict[str, List[CheckResult]] = field(default_factory=dict)

    # Summary
    total_passed: int = 0
    total_failed: int = 0
    overall_passed: bool = False

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _result(name: str, problems: List[str], severity: str = "error") -> CheckResult:
    return CheckResult(
        name=name,
        passed=not problems,
        message="; ".join(problems),
        severity=severity,
    )


def validate_materials(materials) -> List[CheckResult]:
    """Stock and cost must not be negative."""
    negative_stock = [
        f"{m.id} ({m.stock_quantity})" for m in materials if m.stock_quantity < 0
    ]
    negative_cost = [
        f"{m.id} ({m.unit_cost})" for m in materials if m.unit_cost < 0
    ]
    return [
        _result("non_negative_stock", negative_stock),
        _result("non_negative_unit_cost", negative_cost),
    ]


def validate_recipes(recipes, material_ids) -> List[CheckResult]:
    """Component references, degenerate lines and recipe definitions."""
    unknown = []
    for material_id in get_all_material_ids(recipes):
        if material_id not in material_ids:
            users = [r.id for r in recipes if r.has_material(material_id)]
            unknown.append(f"{material_id} (used by {', '.join(users)})")

    degenerate = [
        f"{recipe.id} -> {component.material_id}"
        for recipe in recipes
        for component in recipe.components
        if component.is_degenerate
    ]

    definition_errors = []
    for recipe in recipes:
        definition_errors.extend(validate_recipe(recipe))

    return [
        _result("components_reference_known_materials", unknown),
        _result("no_degenerate_components", degenerate),
        _result("valid_recipe_definitions", definition_errors),
    ]


def validate_activation(products, recipes) -> List[CheckResult]:
    """One active recipe per product; BOM products should have one."""
    active_counts: Dict[str, int] = {}
    for recipe in recipes:
        if recipe.is_active:
            active_counts[recipe.product_id] = active_counts.get(recipe.product_id, 0) + 1

    conflicting = [
        f"{product_id} ({count} active)"
        for product_id, count in active_counts.items() if count > 1
    ]
    without_recipe = [
        product.id for product in products
        if product.is_bom and product.id not in active_counts
    ]

    return [
        _result("single_active_recipe", conflicting),
        _result("bom_products_have_active_recipe", without_recipe, severity="warning"),
    ]


def generate_validation_report(catalog, scope: str) -> ValidationReport:
    """
    Generate a data validation report for one scope.

    Args:
        catalog: Repository to inspect
        scope: Tenant scope

    Returns:
        ValidationReport; warning-level checks never fail the report
    """
    report = ValidationReport(
        timestamp=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        scope=scope,
    )

    materials = catalog.list_materials(scope)
    products = catalog.list_products(scope)
    recipes = catalog.list_recipes(scope)

    report.checks["Settings"] = [
        _result("valid_settings", validate_settings(catalog.settings))
    ]
    report.checks["Materials"] = validate_materials(materials)
    report.checks["Recipes"] = validate_recipes(recipes, {m.id for m in materials})
    report.checks["Activation"] = validate_activation(products, recipes)

    for results in report.checks.values():
        for check in results:
            if check.passed:
                report.total_passed += 1
            elif check.severity == "warning":
                report.warnings.append(f"{check.name}: {check.message}")
            else:
                report.total_failed += 1
                report.errors.append(f"{check.name}: {check.message}")

    report.overall_passed = report.total_failed == 0
    return report


def format_report(report: ValidationReport) -> str:
    """Format validation report as text."""
    lines = [
        "=" * 60,
        "VALIDATION REPORT",
        "=" * 60,
        f"Date: {report.timestamp}",
        f"Scope: {report.scope}",
        "",
        "CHECKS",
        "-" * 40
    ]

    for category, results in report.checks.items():
        passed = sum(1 for c in results if c.passed)
        total = len(results)
        status = "PASSED" if passed == total else "FAILED"
        lines.append(f"{category}: {passed}/{total} {status}")
        for check in results:
            if not check.passed:
                lines.append(f"  - {check.name} [{check.severity}]: {check.message}")

    lines.extend([
        "",
        "=" * 60,
        f"OVERALL: {'PASSED' if report.overall_passed else 'FAILED'}",
        f"Total: {report.total_passed} passed, {report.total_failed} failed, "
        f"{len(report.warnings)} warning(s)",
        "=" * 60
    ])

    return "\n".join(lines)


# =============================================================================
# END OF VALIDATION REPORT GENERATOR
# =============================================================================
