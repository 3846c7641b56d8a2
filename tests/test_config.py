# =============================================================================
# BOMCALC ENGINE - CONFIGURATION TESTS
# =============================================================================

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bomcalc.config import (
    EngineSettings,
    deep_merge,
    load_settings,
    load_snapshot,
    validate_settings,
)


class TestDeepMerge:
    """Tests for scenario override merging."""

    def test_nested_dicts_merge(self):
        base = {"a": {"b": 1, "c": 2}, "d": 3}
        merged = deep_merge(base, {"a": {"b": 10}})
        assert merged == {"a": {"b": 10, "c": 2}, "d": 3}

    def test_lists_are_replaced(self):
        merged = deep_merge({"a": [1, 2, 3]}, {"a": [4]})
        assert merged["a"] == [4]

    def test_base_is_not_mutated(self):
        base = {"a": {"b": 1}}
        deep_merge(base, {"a": {"b": 2}})
        assert base["a"]["b"] == 1


class TestSettings:
    """Tests for engine settings loading and validation."""

    def test_defaults(self):
        settings = load_settings({})
        assert settings == EngineSettings()
        assert settings.batch_size_ladder == [10, 25, 50, 100, 200, 500]

    def test_overrides(self):
        settings = load_settings({"settings": {
            "batch_size_ladder": [5, 15],
            "limited_capacity_threshold": 3,
        }})
        assert settings.batch_size_ladder == [5, 15]
        assert settings.limited_capacity_threshold == 3
        assert settings.default_horizon_days == 7

    def test_valid_settings(self):
        assert validate_settings(EngineSettings()) == []

    def test_invalid_settings(self):
        settings = EngineSettings(
            batch_size_ladder=[50, 10, 0],
            bulk_max_workers=0,
            critical_stock_ratio=2.0,
        )
        errors = validate_settings(settings)
        assert any("sorted" in e for e in errors)
        assert any("> 0" in e for e in errors)
        assert any("bulk_max_workers" in e for e in errors)
        assert any("critical_stock_ratio" in e for e in errors)


class TestLoadSnapshot:

    def test_base_only(self, inventory_dir):
        snapshot = load_snapshot("base", inventory_dir)
        assert "demo-bistro" in snapshot["tenants"]

    def test_unknown_scenario_falls_back_to_base(self, inventory_dir):
        assert load_snapshot("missing", inventory_dir) == load_snapshot("base", inventory_dir)

    def test_override_merges(self, inventory_dir):
        snapshot = load_snapshot("restock", inventory_dir)
        tenant = snapshot["tenants"]["demo-bistro"]
        assert tenant["materials"][0]["stock_quantity"] == 200
        assert len(tenant["recipes"]) == 3
