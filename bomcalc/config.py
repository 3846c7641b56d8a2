"""Engine settings loading and validation utilities."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List
import copy

import yaml


DEFAULT_BATCH_SIZE_LADDER = [10, 25, 50, 100, 200, 500]


@dataclass
class EngineSettings:
    """Tunable constants of the calculation core."""
    batch_size_ladder: List[int] = field(
        default_factory=lambda: list(DEFAULT_BATCH_SIZE_LADDER)
    )
    limited_capacity_threshold: int = 10
    bulk_max_workers: int = 4
    production_lead_days: int = 1
    default_horizon_days: int = 7
    critical_stock_ratio: float = 0.5
    money_places: int = 2


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base; lists are replaced, not merged."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def load_yaml_file(path: Path) -> dict:
    """Load a YAML file and return an object (empty dict for empty files)."""
    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def load_snapshot(scenario_id: str, inventory_dir: Path) -> dict:
    """Load the base snapshot and merge a scenario override if present."""
    base = load_yaml_file(inventory_dir / "base.yaml")
    if scenario_id == "base":
        return base

    override_path = inventory_dir / f"{scenario_id}.yaml"
    if override_path.exists():
        return deep_merge(base, load_yaml_file(override_path))
    return base


def load_settings(snapshot: Dict) -> EngineSettings:
    """Build EngineSettings from the optional 'settings' section."""
    config = snapshot.get("settings", {}) or {}
    defaults = EngineSettings()
    return EngineSettings(
        batch_size_ladder=[
            int(size) for size in config.get("batch_size_ladder", defaults.batch_size_ladder)
        ],
        limited_capacity_threshold=int(
            config.get("limited_capacity_threshold", defaults.limited_capacity_threshold)
        ),
        bulk_max_workers=int(config.get("bulk_max_workers", defaults.bulk_max_workers)),
        production_lead_days=int(
            config.get("production_lead_days", defaults.production_lead_days)
        ),
        default_horizon_days=int(
            config.get("default_horizon_days", defaults.default_horizon_days)
        ),
        critical_stock_ratio=float(
            config.get("critical_stock_ratio", defaults.critical_stock_ratio)
        ),
        money_places=int(config.get("money_places", defaults.money_places)),
    )


def validate_settings(settings: EngineSettings) -> List[str]:
    """
    Validate engine settings.

    Returns:
        List of validation errors (empty if valid)
    """
    errors: List[str] = []

    if not settings.batch_size_ladder:
        errors.append("batch_size_ladder must contain at least one size")
    for size in settings.batch_size_ladder:
        if size <= 0:
            errors.append(f"batch_size_ladder entries must be > 0: {size}")
    if settings.batch_size_ladder != sorted(settings.batch_size_ladder):
        errors.append("batch_size_ladder must be sorted ascending")

    if settings.bulk_max_workers < 1:
        errors.append(f"bulk_max_workers must be >= 1: {settings.bulk_max_workers}")
    if settings.production_lead_days < 0:
        errors.append(
            f"production_lead_days must be >= 0: {settings.production_lead_days}"
        )
    if settings.default_horizon_days < 1:
        errors.append(
            f"default_horizon_days must be >= 1: {settings.default_horizon_days}"
        )
    if not 0 <= settings.critical_stock_ratio <= 1:
        errors.append(
            f"critical_stock_ratio must be within [0, 1]: {settings.critical_stock_ratio}"
        )
    if settings.money_places < 0:
        errors.append(f"money_places must be >= 0: {settings.money_places}")

    return errors
