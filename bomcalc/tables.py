"""Flatten engine results into pandas tables for display and export."""

from __future__ import annotations

from typing import List, Mapping, Optional

import pandas as pd

from .errors import ProductError


AVAILABILITY_COLUMNS = [
    "product_id", "product_name", "recipe_name", "max_quantity",
    "can_produce", "bottleneck", "degenerate", "error",
]
REQUIREMENT_COLUMNS = [
    "material_id", "material_name", "unit", "effective_per_unit",
    "total_required", "current_stock", "remaining", "shortage", "total_cost",
]
AGGREGATE_COLUMNS = [
    "material_id", "material_name", "unit", "total_required",
    "current_stock", "shortage", "products",
]
SCHEDULE_COLUMNS = [
    "order_id", "product_id", "product_name", "quantity", "due_date",
    "production_date", "status", "production_cost", "short_materials",
]
CAPACITY_COLUMNS = [
    "product_id", "product_name", "recipe_name", "current_capacity", "bottleneck",
    "unit_cost",
]


def _as_float(value) -> Optional[float]:
    return None if value is None else float(value)


def availability_table(results: Mapping) -> pd.DataFrame:
    """One row per product of a bulk availability result."""
    rows = []
    for product_id, entry in results.items():
        if isinstance(entry, ProductError):
            rows.append({
                "product_id": product_id,
                "error": f"{entry.kind}: {entry.message}",
            })
            continue
        bottleneck = entry.bottleneck_material
        rows.append({
            "product_id": entry.product_id,
            "product_name": entry.product_name,
            "recipe_name": entry.recipe_name,
            "max_quantity": entry.max_quantity,
            "can_produce": entry.can_produce,
            "bottleneck": bottleneck.material_name if bottleneck else None,
            "degenerate": entry.degenerate,
            "error": None,
        })
    return pd.DataFrame(rows, columns=AVAILABILITY_COLUMNS)


def requirements_table(requirements) -> pd.DataFrame:
    rows = [
        {
            "material_id": line.material_id,
            "material_name": line.material_name,
            "unit": line.unit,
            "effective_per_unit": _as_float(line.effective_quantity_per_unit),
            "total_required": _as_float(line.total_required),
            "current_stock": _as_float(line.current_stock),
            "remaining": _as_float(line.remaining_after_production),
            "shortage": _as_float(line.shortage),
            "total_cost": _as_float(line.total_cost),
        }
        for line in requirements.lines
    ]
    return pd.DataFrame(rows, columns=REQUIREMENT_COLUMNS)


def aggregated_materials_table(result) -> pd.DataFrame:
    """Merged material demand of a multi-product batch, largest shortage first."""
    rows = []
    for material in result.materials.values():
        rows.append({
            "material_id": material.material_id,
            "material_name": material.material_name,
            "unit": material.unit,
            "total_required": _as_float(material.total_required),
            "current_stock": _as_float(material.current_stock),
            "shortage": _as_float(material.shortage),
            "products": ", ".join(c.product_name for c in material.contributions),
        })
    if not rows:
        return pd.DataFrame(columns=AGGREGATE_COLUMNS)
    return (
        pd.DataFrame(rows, columns=AGGREGATE_COLUMNS)
        .sort_values("shortage", ascending=False, kind="stable")
        .reset_index(drop=True)
    )


def schedule_table(schedule) -> pd.DataFrame:
    rows = []
    for entry in schedule.entries:
        rows.append({
            "order_id": entry.order_id,
            "product_id": entry.product_id,
            "product_name": entry.product_name,
            "quantity": entry.quantity,
            "due_date": entry.due_date,
            "production_date": entry.production_date,
            "status": entry.status,
            "production_cost": _as_float(entry.production_cost),
            "short_materials": ", ".join(s.material_name for s in entry.shortages),
        })
    return pd.DataFrame(rows, columns=SCHEDULE_COLUMNS)


def capacity_table(overview) -> pd.DataFrame:
    rows = [
        {
            "product_id": capacity.product_id,
            "product_name": capacity.product_name,
            "recipe_name": capacity.recipe_name,
            "current_capacity": capacity.current_capacity,
            "bottleneck": capacity.bottleneck_material,
            "unit_cost": _as_float(capacity.unit_cost),
        }
        for capacity in overview.product_capacities
    ]
    return pd.DataFrame(rows, columns=CAPACITY_COLUMNS)


def low_stock_table(materials: List) -> pd.DataFrame:
    rows = []
    for material in materials:
        rows.append({
            "material_id": material.material_id,
            "material_name": material.material_name,
            "current_stock": _as_float(material.current_stock),
            "reorder_level": _as_float(material.reorder_level),
            "stock_status": material.stock_status,
            "priority": material.priority,
            "affected_products": len(material.affected_products),
        })
    return pd.DataFrame(rows, columns=[
        "material_id", "material_name", "current_stock", "reorder_level",
        "stock_status", "priority", "affected_products",
    ])
