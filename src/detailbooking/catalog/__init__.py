"""Static vehicle and price reference data."""

from .loader import (
    AddOn,
    PriceTable,
    ServiceTier,
    available_makes,
    clear_catalog_cache,
    load_catalog,
    load_price_table,
    models_for_make,
    trims_for_model,
)

__all__ = [
    "AddOn",
    "PriceTable",
    "ServiceTier",
    "available_makes",
    "clear_catalog_cache",
    "load_catalog",
    "load_price_table",
    "models_for_make",
    "trims_for_model",
]
