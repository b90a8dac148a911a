import json
from decimal import Decimal
from importlib import resources

import jsonschema
import pytest

from detailbooking.catalog import loader as loader_module
from detailbooking.catalog import (
    available_makes,
    load_catalog,
    load_price_table,
    models_for_make,
    trims_for_model,
)
from detailbooking.exceptions import ConfigError


def _read(filename: str) -> object:
    root = resources.files("detailbooking.catalog")
    return json.loads((root / filename).read_text(encoding="utf-8"))


def test_vehicle_catalog_schema_validation() -> None:
    schema = loader_module.load_schema("vehicles.schema.json")
    jsonschema.validate(instance=_read("vehicles.json"), schema=schema)


def test_price_table_schema_validation() -> None:
    schema = loader_module.load_schema("pricing.schema.json")
    jsonschema.validate(instance=_read("pricing.json"), schema=schema)


def test_load_catalog_uses_cache(monkeypatch: pytest.MonkeyPatch) -> None:
    loader_module.clear_catalog_cache()
    calls = {"count": 0}
    original = loader_module._read_json

    def wrapped(filename: str):
        calls["count"] += 1
        return original(filename)

    monkeypatch.setattr(loader_module, "_read_json", wrapped)

    first = load_catalog()
    second = load_catalog()

    assert calls["count"] == 1
    assert first == second


def test_clear_catalog_cache_forces_reload(monkeypatch: pytest.MonkeyPatch) -> None:
    loader_module.clear_catalog_cache()
    calls = {"count": 0}
    original = loader_module._read_json

    def wrapped(filename: str):
        calls["count"] += 1
        return original(filename)

    monkeypatch.setattr(loader_module, "_read_json", wrapped)

    load_catalog()
    loader_module.clear_catalog_cache()
    load_catalog()

    assert calls["count"] == 2


def test_price_table_prices_are_decimals() -> None:
    table = load_price_table()
    essential = table.tiers["essential-clean"]
    assert essential.prices["S"] == Decimal("55")
    assert table.tiers["premium-detail"].multiplier == Decimal("2.5")
    assert table.add_ons["air-freshener"].price == Decimal("5")


def test_catalog_browsing_helpers() -> None:
    assert "Ford" in available_makes()
    assert models_for_make(" ford ") == sorted(
        {"Ka", "Fiesta", "Puma", "Focus", "Kuga", "Mondeo", "Galaxy", "Transit", "Ranger"}
    )
    assert trims_for_model("Ford", "Fiesta") == ["ST-Line", "Zetec"]


def test_invalid_catalog_entry_is_config_error(monkeypatch: pytest.MonkeyPatch) -> None:
    loader_module.clear_catalog_cache()
    monkeypatch.setattr(
        loader_module,
        "_read_json",
        lambda filename: [{"make": "Ford", "model": "Ka", "trim": "", "size": "XXL"}],
    )
    with pytest.raises(ConfigError):
        load_catalog()
    loader_module.clear_catalog_cache()
