"""Registration number resolution with caching and size inference."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from .cache import InMemoryTTLCache, TTLCache
from .matcher import MEDIUM_CONFIDENCE_SCORE, VehicleMatcher
from .models import RegistrationLookupResult, RegistryRecord, SizeClass
from .registry.base import VehicleRegistry
from .util import is_registration, mask_registration, normalize_registration, utc_now

_LOGGER = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "reg:"

# Evaluated in order; the first rule whose make and model keywords both match wins.
_KEYWORD_RULES: tuple[tuple[tuple[str, ...], tuple[str, ...], SizeClass], ...] = (
    (("bmw",), ("x5", "x6", "x7"), "XL"),
    (("audi",), ("q7", "q8"), "XL"),
    (("land rover",), ("range rover",), "XL"),
    (("mercedes",), ("gle", "gls", "g-class"), "XL"),
    (("bmw",), ("5 series", "x3", "x4"), "L"),
    (("audi",), ("a6", "q5"), "L"),
    (("mercedes",), ("c-class", "e-class", "glc"), "L"),
)


def infer_size_from_registry_data(record: RegistryRecord) -> SizeClass:
    """Estimate a size class from make/model keywords, then engine size and CO2."""
    make = record.make.casefold() if record.make else ""
    model = record.model.casefold() if record.model else ""
    if "range rover" in make:
        return "XL"
    for make_keywords, model_keywords, size in _KEYWORD_RULES:
        if any(keyword in make for keyword in make_keywords) and any(
            keyword in model for keyword in model_keywords
        ):
            return size
    engine_capacity = record.engine_capacity or 0
    co2_emissions = record.co2_emissions or 0
    if engine_capacity > 3000 or co2_emissions > 200:
        return "XL"
    if engine_capacity > 2000 or co2_emissions > 150:
        return "L"
    if engine_capacity > 1400 or co2_emissions > 120:
        return "M"
    return "S"


class RegistrationResolver:
    """Resolves registration numbers to vehicles and size classes."""

    def __init__(
        self,
        registry: VehicleRegistry,
        matcher: VehicleMatcher | None = None,
        *,
        cache: TTLCache[RegistrationLookupResult] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._registry = registry
        self._matcher = matcher or VehicleMatcher()
        self._clock = clock
        self._cache = cache if cache is not None else InMemoryTTLCache(clock=clock)

    async def resolve(self, registration: str) -> RegistrationLookupResult | None:
        if not is_registration(registration):
            _LOGGER.debug("Rejected registration with unknown format")
            return None
        normalized = normalize_registration(registration)
        masked = mask_registration(normalized)
        cache_key = f"{CACHE_KEY_PREFIX}{normalized}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            _LOGGER.debug("Using cached vehicle data for %s", masked)
            return cached

        record = await self._registry.lookup(normalized)
        if record is None:
            _LOGGER.info("Registry has no record for %s", masked)
            return None

        query = f"{record.make} {record.model or ''}".strip()
        matches = self._matcher.search(query, 1)
        if matches and matches[0].match_score >= MEDIUM_CONFIDENCE_SCORE:
            size_class = matches[0].size_class
            confidence = "high"
        else:
            size_class = infer_size_from_registry_data(record)
            confidence = "medium"

        result = RegistrationLookupResult(
            registration_number=normalized,
            make=record.make,
            model=record.model,
            year_of_manufacture=record.year_of_manufacture,
            month_of_first_registration=record.month_of_first_registration,
            fuel_type=record.fuel_type,
            engine_capacity=record.engine_capacity,
            co2_emissions=record.co2_emissions,
            colour=record.colour,
            mot_status=record.mot_status,
            tax_status=record.tax_status,
            size_class=size_class,
            confidence=confidence,
            cached_at=self._clock(),
            display_name=f"{record.make} {record.model}" if record.model else record.make,
        )
        self._cache.set(cache_key, result)
        _LOGGER.debug(
            "Resolved %s to size %s with %s confidence",
            masked,
            size_class,
            confidence,
        )
        return result
