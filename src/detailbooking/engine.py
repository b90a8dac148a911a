"""Booking orchestration: vehicle, availability, quote and payment."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import date, datetime
from decimal import Decimal

import aiohttp

from .availability import (
    AvailabilityCalculator,
    InMemoryReservationStore,
    ReservationStore,
    WorkingHoursSchedule,
    validate_booking_date,
)
from .config import Settings
from .exceptions import ValidationError
from .matcher import MEDIUM_CONFIDENCE_SCORE, VehicleMatcher, get_fallback_size, match_confidence
from .models import PaymentResult, PriceQuote, TimeSlot, VehicleResolution
from .payment import PaymentTransactionManager
from .pricing import PostcodeZoneTravelFee, PricingCalculator, TravelFeeSource
from .registration import RegistrationResolver
from .registry import DvlaRegistry
from .util import is_registration, mask_registration, utc_now

_LOGGER = logging.getLogger(__name__)

VehicleInput = str | tuple[str, str]


class BookingResolutionEngine:
    """Turns a booking request into a size class, open slots, a quote and a payment."""

    def __init__(
        self,
        payments: PaymentTransactionManager,
        *,
        registration_resolver: RegistrationResolver | None = None,
        matcher: VehicleMatcher | None = None,
        schedule: WorkingHoursSchedule | None = None,
        reservations: ReservationStore | None = None,
        pricing: PricingCalculator | None = None,
        travel_fees: TravelFeeSource | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._payments = payments
        self._registrations = registration_resolver
        self._matcher = matcher or VehicleMatcher()
        self._schedule = schedule or WorkingHoursSchedule.default()
        self._reservations = reservations or InMemoryReservationStore(self._schedule)
        self._pricing = pricing or PricingCalculator()
        self._travel_fees = travel_fees or PostcodeZoneTravelFee()
        self._settings = settings or Settings()
        self._clock = clock
        self._slots = AvailabilityCalculator()

    @classmethod
    def from_settings(
        cls,
        session: aiohttp.ClientSession,
        settings: Settings | None = None,
        *,
        reservations: ReservationStore | None = None,
    ) -> BookingResolutionEngine:
        """Wire the default collaborators from environment settings."""
        settings = settings or Settings.from_env()
        matcher = VehicleMatcher()
        resolver = None
        if settings.dvla_api_key:
            registry = DvlaRegistry(
                session,
                settings.dvla_api_key,
                timeout=settings.timeout,
                retry_count=settings.retry_count,
            )
            resolver = RegistrationResolver(registry, matcher)
        else:
            _LOGGER.info("DVLA_API_KEY is not set; registration lookups are disabled")
        return cls(
            PaymentTransactionManager(session=session, settings=settings),
            registration_resolver=resolver,
            matcher=matcher,
            reservations=reservations,
            settings=settings,
        )

    async def resolve_vehicle(self, vehicle: VehicleInput) -> VehicleResolution:
        """Resolve a registration, free-text description or (make, model) pair.

        Registrations go to the registry first. Anything the registry does not
        know falls through to the catalog, and from there to keyword-based
        size guessing with low confidence.
        """
        if isinstance(vehicle, tuple):
            make, model = vehicle
            exact = self._matcher.match_exact(make, model)
            if exact is not None:
                return VehicleResolution(
                    size_class=exact.size_class,
                    confidence="high",
                    source="catalog",
                    match=exact,
                )
            return self._resolve_text(f"{make} {model}".strip(), make, model)

        if not isinstance(vehicle, str) or not vehicle.strip():
            raise ValidationError("A vehicle description is required.", error_code="invalid_vehicle")
        text = vehicle.strip()
        if self._registrations is not None and is_registration(text):
            lookup = await self._registrations.resolve(text)
            if lookup is not None:
                return VehicleResolution(
                    size_class=lookup.size_class,
                    confidence=lookup.confidence,
                    source="registration",
                    lookup=lookup,
                )
            _LOGGER.debug("No registry record for %s; trying catalog", mask_registration(text))
        make, _, model = text.partition(" ")
        return self._resolve_text(text, make, model)

    def _resolve_text(self, query: str, make: str, model: str) -> VehicleResolution:
        matches = self._matcher.search(query, 1)
        if matches and matches[0].match_score >= MEDIUM_CONFIDENCE_SCORE:
            best = matches[0]
            return VehicleResolution(
                size_class=best.size_class,
                confidence=match_confidence(best.match_score),
                source="catalog",
                match=best,
            )
        return VehicleResolution(
            size_class=get_fallback_size(make, model),
            confidence="low",
            source="fallback",
        )

    async def get_availability(self, day: date) -> list[TimeSlot]:
        """Slots for a bookable day with their remaining capacity."""
        validate_booking_date(
            day,
            now=self._clock(),
            min_lead_hours=self._settings.min_lead_hours,
            max_days_ahead=self._settings.max_days_ahead,
        )
        rule = self._schedule.rule_for(day)
        if rule is None or not rule.is_active:
            raise ValidationError(
                f"{day.isoformat()} is not a working day.",
                error_code="non_working_day",
                user_message="We are closed on that day. Please choose another date.",
            )
        counts = await self._reservations.booking_counts(day)
        return self._slots.compute_slots(day, rule, counts)

    async def get_quote(
        self,
        size_class: str,
        service_tier: str,
        add_on_ids: Iterable[str] = (),
        postcode: str | None = None,
    ) -> PriceQuote:
        travel_fee = Decimal("0")
        if postcode:
            travel_fee = await self._travel_fees.fee_for(postcode)
        return self._pricing.quote(size_class, service_tier, add_on_ids, travel_fee)

    async def pay(
        self,
        booking_id: str,
        quote: PriceQuote,
        customer_email: str,
        customer_name: str,
        description: str,
    ) -> PaymentResult:
        """Open a payment for exactly the quoted total."""
        return await self._payments.create_payment(
            quote.total_price,
            self._settings.currency,
            booking_id,
            customer_email,
            customer_name,
            description,
        )
