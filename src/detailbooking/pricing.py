"""Price quotes and travel-fee collaborators."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from .catalog import PriceTable, load_price_table
from .exceptions import ValidationError
from .models import SIZE_CLASSES, PriceQuote
from .util import outward_code, to_amount

_LOGGER = logging.getLogger(__name__)


class PricingCalculator:
    """Turns a size class, tier and add-ons into a price quote."""

    def __init__(self, price_table: PriceTable | None = None) -> None:
        self._table = price_table or load_price_table()

    def base_price(self, size_class: str, service_tier: str) -> Decimal:
        if size_class not in SIZE_CLASSES:
            raise ValidationError(
                f"Unknown size class {size_class!r}.",
                error_code="unknown_size_class",
            )
        tier = self._table.tiers.get(service_tier)
        if tier is None:
            raise ValidationError(
                f"Unknown service tier {service_tier!r}.",
                error_code="unknown_service_tier",
            )
        price = tier.prices[size_class]
        if tier.multiplier is not None:
            price = (price * tier.multiplier).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return price

    def add_ons_price(self, add_on_ids: Iterable[str]) -> Decimal:
        """Sum catalog prices; ids missing from the catalog add nothing."""
        total = Decimal("0")
        for add_on_id in set(add_on_ids):
            add_on = self._table.add_ons.get(add_on_id)
            if add_on is None:
                _LOGGER.debug("Ignoring unknown add-on %s", add_on_id)
                continue
            total += add_on.price
        return total

    def quote(
        self,
        size_class: str,
        service_tier: str,
        add_on_ids: Iterable[str] = (),
        travel_fee: Decimal | int | str = Decimal("0"),
    ) -> PriceQuote:
        fee = to_amount(travel_fee, "travel_fee")
        if fee < 0:
            raise ValidationError("travel_fee must not be negative.", error_code="invalid_amount")
        return PriceQuote(
            base_price=self.base_price(size_class, service_tier),
            add_ons_price=self.add_ons_price(add_on_ids),
            travel_fee=fee,
        )


class TravelFeeSource(ABC):
    """Collaborator that prices the trip to a customer's postcode."""

    @abstractmethod
    async def fee_for(self, postcode: str) -> Decimal:
        """Travel fee for a postcode; the same postcode always gives the same fee."""


class FixedTravelFee(TravelFeeSource):
    def __init__(self, fee: Decimal | int | str = Decimal("0")) -> None:
        self._fee = to_amount(fee, "fee")

    async def fee_for(self, postcode: str) -> Decimal:
        outward_code(postcode)
        return self._fee


@dataclass(frozen=True, slots=True)
class TravelZone:
    name: str
    fee: Decimal
    outward_codes: frozenset[str]


DEFAULT_TRAVEL_ZONES = (
    TravelZone(
        name="Zone 1",
        fee=Decimal("0"),
        outward_codes=frozenset({"SW2", "SW4", "SW8", "SW9", "SE5", "SE11"}),
    ),
    TravelZone(
        name="Zone 2",
        fee=Decimal("5"),
        outward_codes=frozenset({"SW11", "SW12", "SW16", "SE1", "SE17", "SE24", "SE27"}),
    ),
    TravelZone(
        name="Zone 3",
        fee=Decimal("10"),
        outward_codes=frozenset({"SW15", "SW17", "SW18", "SW19", "SE21", "SE22", "SE23"}),
    ),
)


class PostcodeZoneTravelFee(TravelFeeSource):
    """Looks the outward code up in a zone table; unknown areas pay the highest fee."""

    def __init__(self, zones: Sequence[TravelZone] = DEFAULT_TRAVEL_ZONES) -> None:
        if not zones:
            raise ValidationError("At least one travel zone is required.")
        self._zones = tuple(zones)
        self._max_fee = max(zone.fee for zone in self._zones)

    async def fee_for(self, postcode: str) -> Decimal:
        code = outward_code(postcode)
        for zone in self._zones:
            if code in zone.outward_codes:
                return zone.fee
        _LOGGER.debug("Outward code %s is outside known zones", code)
        return self._max_fee
