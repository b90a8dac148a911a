"""Vehicle catalog and price table loading."""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from importlib import resources
from importlib.resources.abc import Traversable
from types import MappingProxyType
from typing import Any

from ..exceptions import ConfigError
from ..models import SIZE_CLASSES, CatalogEntry

CATALOG_FILENAME = "vehicles.json"
PRICING_FILENAME = "pricing.json"
_CATALOG_CACHE: tuple[CatalogEntry, ...] | None = None
_PRICE_TABLE_CACHE: PriceTable | None = None


@dataclass(frozen=True, slots=True)
class ServiceTier:
    id: str
    name: str
    prices: MappingProxyType[str, Decimal]
    multiplier: Decimal | None = None


@dataclass(frozen=True, slots=True)
class AddOn:
    id: str
    name: str
    price: Decimal


@dataclass(frozen=True, slots=True)
class PriceTable:
    tiers: MappingProxyType[str, ServiceTier]
    add_ons: MappingProxyType[str, AddOn]


def _catalog_root() -> Traversable:
    return resources.files("detailbooking.catalog")


def load_schema(filename: str) -> dict:
    schema_path = _catalog_root() / filename
    return json.loads(schema_path.read_text(encoding="utf-8"))


def _read_json(filename: str) -> Any:
    path = _catalog_root() / filename
    try:
        return json.loads(path.read_text(encoding="utf-8"), parse_float=Decimal)
    except FileNotFoundError as exc:
        raise ConfigError(f"Reference data {filename} was not found.") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Reference data {filename} is not valid JSON.") from exc


def _build_entry(data: Any) -> CatalogEntry:
    if not isinstance(data, dict):
        raise ConfigError("Catalog entry must be a JSON object.")
    missing = [key for key in ("make", "model", "trim", "size") if key not in data]
    if missing:
        raise ConfigError(f"Catalog entry missing keys: {', '.join(missing)}.")
    make = data["make"]
    model = data["model"]
    trim = data["trim"]
    size = data["size"]
    if not isinstance(make, str) or not make.strip():
        raise ConfigError("Catalog entry make must be a non-empty string.")
    if not isinstance(model, str) or not model.strip():
        raise ConfigError("Catalog entry model must be a non-empty string.")
    if not isinstance(trim, str):
        raise ConfigError("Catalog entry trim must be a string.")
    if size not in SIZE_CLASSES:
        raise ConfigError(f"Catalog entry size {size!r} is not a known size class.")
    return CatalogEntry(make=make.strip(), model=model.strip(), trim=trim.strip(), size_class=size)


def _to_price(value: Any, field: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, int | Decimal):
        raise ConfigError(f"{field} must be a number.")
    price = Decimal(value)
    if price < 0:
        raise ConfigError(f"{field} must not be negative.")
    return price


def _build_tier(tier_id: str, data: Any) -> ServiceTier:
    if not isinstance(data, dict):
        raise ConfigError(f"Service tier {tier_id} must be a JSON object.")
    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise ConfigError(f"Service tier {tier_id} name must be a non-empty string.")
    raw_prices = data.get("prices")
    if not isinstance(raw_prices, dict):
        raise ConfigError(f"Service tier {tier_id} prices must be a JSON object.")
    prices: dict[str, Decimal] = {}
    for size in SIZE_CLASSES:
        if size not in raw_prices:
            raise ConfigError(f"Service tier {tier_id} has no price for size {size}.")
        prices[size] = _to_price(raw_prices[size], f"{tier_id} price for {size}")
    multiplier = None
    if data.get("multiplier") is not None:
        multiplier = _to_price(data["multiplier"], f"{tier_id} multiplier")
        if multiplier == 0:
            raise ConfigError(f"{tier_id} multiplier must be positive.")
    return ServiceTier(
        id=tier_id,
        name=name,
        prices=MappingProxyType(prices),
        multiplier=multiplier,
    )


def _build_add_on(add_on_id: str, data: Any) -> AddOn:
    if not isinstance(data, dict):
        raise ConfigError(f"Add-on {add_on_id} must be a JSON object.")
    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise ConfigError(f"Add-on {add_on_id} name must be a non-empty string.")
    return AddOn(id=add_on_id, name=name, price=_to_price(data.get("price"), f"{add_on_id} price"))


def load_catalog() -> list[CatalogEntry]:
    global _CATALOG_CACHE
    if _CATALOG_CACHE is not None:
        return list(_CATALOG_CACHE)
    data = _read_json(CATALOG_FILENAME)
    if not isinstance(data, list):
        raise ConfigError("Vehicle catalog must be a JSON array.")
    _CATALOG_CACHE = tuple(_build_entry(item) for item in data)
    return list(_CATALOG_CACHE)


def load_price_table() -> PriceTable:
    global _PRICE_TABLE_CACHE
    if _PRICE_TABLE_CACHE is not None:
        return _PRICE_TABLE_CACHE
    data = _read_json(PRICING_FILENAME)
    if not isinstance(data, dict):
        raise ConfigError("Price table must be a JSON object.")
    raw_tiers = data.get("tiers")
    raw_add_ons = data.get("add_ons", {})
    if not isinstance(raw_tiers, dict) or not raw_tiers:
        raise ConfigError("Price table must define at least one service tier.")
    if not isinstance(raw_add_ons, dict):
        raise ConfigError("Price table add_ons must be a JSON object.")
    tiers = {tier_id: _build_tier(tier_id, item) for tier_id, item in raw_tiers.items()}
    add_ons = {add_on_id: _build_add_on(add_on_id, item) for add_on_id, item in raw_add_ons.items()}
    _PRICE_TABLE_CACHE = PriceTable(
        tiers=MappingProxyType(tiers),
        add_ons=MappingProxyType(add_ons),
    )
    return _PRICE_TABLE_CACHE


def clear_catalog_cache() -> None:
    """Clear cached reference data (used in tests)."""
    global _CATALOG_CACHE, _PRICE_TABLE_CACHE
    _CATALOG_CACHE = None
    _PRICE_TABLE_CACHE = None


def available_makes(entries: Iterable[CatalogEntry] | None = None) -> list[str]:
    source = load_catalog() if entries is None else entries
    return sorted({entry.make for entry in source})


def models_for_make(make: str, entries: Iterable[CatalogEntry] | None = None) -> list[str]:
    source = load_catalog() if entries is None else entries
    wanted = make.strip().lower()
    return sorted({entry.model for entry in source if entry.make.lower() == wanted})


def trims_for_model(
    make: str,
    model: str,
    entries: Iterable[CatalogEntry] | None = None,
) -> list[str]:
    source = load_catalog() if entries is None else entries
    wanted_make = make.strip().lower()
    wanted_model = model.strip().lower()
    return sorted(
        {
            entry.trim
            for entry in source
            if entry.make.lower() == wanted_make and entry.model.lower() == wanted_model
        }
    )
