import logging
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from detailbooking.availability import InMemoryReservationStore, WorkingHoursSchedule
from detailbooking.config import Settings
from detailbooking.engine import BookingResolutionEngine
from detailbooking.exceptions import CapacityError, ValidationError
from detailbooking.matcher import VehicleMatcher
from detailbooking.models import PaymentResult, RegistryRecord, WorkingHoursRule
from detailbooking.pricing import FixedTravelFee
from detailbooking.registration import RegistrationResolver
from detailbooking.registry import StaticRegistry

NOW = datetime(2025, 3, 4, 10, 0, tzinfo=UTC)


class _RecordingPayments:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    async def create_payment(self, *args) -> PaymentResult:
        self.calls.append(args)
        return PaymentResult(payment_id="pay-1", provider="dummy", status="pending")


class _FakeSession:
    async def close(self) -> None:
        return None


def _engine(**kwargs) -> BookingResolutionEngine:
    matcher = kwargs.pop("matcher", VehicleMatcher())
    kwargs.setdefault("payments", _RecordingPayments())
    return BookingResolutionEngine(
        kwargs.pop("payments"),
        matcher=matcher,
        clock=lambda: NOW,
        **kwargs,
    )


def _resolver(matcher: VehicleMatcher) -> RegistrationResolver:
    registry = StaticRegistry(
        {
            "AB12CDE": RegistryRecord(make="FORD", model="FIESTA", engine_capacity=998),
            "CD34EFG": RegistryRecord(make="BENTLEY", model="BENTAYGA", engine_capacity=5950),
        }
    )
    return RegistrationResolver(registry, matcher, clock=lambda: NOW)


@pytest.mark.asyncio
async def test_resolve_vehicle_by_registration():
    matcher = VehicleMatcher()
    engine = _engine(matcher=matcher, registration_resolver=_resolver(matcher))

    resolution = await engine.resolve_vehicle("ab12 cde")

    assert resolution.source == "registration"
    assert resolution.size_class == "S"
    assert resolution.confidence == "high"
    assert resolution.lookup is not None
    assert resolution.lookup.registration_number == "AB12CDE"


@pytest.mark.asyncio
async def test_registration_without_catalog_match_uses_registry_data():
    matcher = VehicleMatcher()
    engine = _engine(matcher=matcher, registration_resolver=_resolver(matcher))

    resolution = await engine.resolve_vehicle("CD34EFG")

    assert resolution.source == "registration"
    assert resolution.confidence == "medium"
    assert resolution.size_class == "XL"


@pytest.mark.asyncio
async def test_unknown_registration_falls_back():
    matcher = VehicleMatcher()
    engine = _engine(matcher=matcher, registration_resolver=_resolver(matcher))

    resolution = await engine.resolve_vehicle("XY99ZZZ")

    assert resolution.source == "fallback"
    assert resolution.confidence == "low"
    assert resolution.size_class == "M"


@pytest.mark.asyncio
async def test_resolve_vehicle_from_catalog_text():
    engine = _engine()

    resolution = await engine.resolve_vehicle("Volkswagen Golf")

    assert resolution.source == "catalog"
    assert resolution.size_class == "M"
    assert resolution.confidence == "high"
    assert resolution.match.make == "Volkswagen"
    assert resolution.match.trim == "Life"


@pytest.mark.asyncio
async def test_resolve_vehicle_from_make_model_pair():
    engine = _engine()

    resolution = await engine.resolve_vehicle(("ford", "transit"))

    assert resolution.source == "catalog"
    assert resolution.size_class == "XL"
    assert resolution.confidence == "high"
    assert resolution.match.match_score == 100


@pytest.mark.asyncio
async def test_unknown_vehicle_uses_keyword_fallback():
    engine = _engine()

    resolution = await engine.resolve_vehicle(("Zorblax", "Cruiser Van"))

    assert resolution.source == "fallback"
    assert resolution.confidence == "low"
    assert resolution.size_class == "XL"
    assert resolution.match is None


@pytest.mark.asyncio
@pytest.mark.parametrize("vehicle", ["", "   "])
async def test_resolve_vehicle_requires_input(vehicle: str):
    engine = _engine()
    with pytest.raises(ValidationError) as excinfo:
        await engine.resolve_vehicle(vehicle)
    assert excinfo.value.error_code == "invalid_vehicle"


@pytest.mark.asyncio
async def test_get_availability_marks_reserved_slots():
    reservations = InMemoryReservationStore()
    await reservations.reserve(date(2025, 3, 5), "11:30")
    engine = _engine(reservations=reservations)

    slots = await engine.get_availability(date(2025, 3, 5))

    assert [slot.start_time for slot in slots] == ["10:00", "11:30", "13:00", "14:30", "16:00"]
    assert [slot.is_available for slot in slots] == [True, False, True, True, True]
    assert slots[0].label == "10:00 AM"


@pytest.mark.asyncio
@pytest.mark.parametrize("day", [date(2025, 3, 4), date(2025, 3, 3), date(2025, 6, 3)])
async def test_get_availability_outside_window(day: date):
    engine = _engine()
    with pytest.raises(ValidationError) as excinfo:
        await engine.get_availability(day)
    assert excinfo.value.error_code == "date_outside_window"


@pytest.mark.asyncio
async def test_get_availability_on_closed_day():
    schedule = WorkingHoursSchedule(
        [
            WorkingHoursRule(
                day_of_week=3,
                start_time="09:00",
                end_time="12:00",
                slot_duration_minutes=60,
                max_bookings_per_slot=2,
            ),
            WorkingHoursRule(
                day_of_week=4,
                start_time="09:00",
                end_time="12:00",
                slot_duration_minutes=60,
                max_bookings_per_slot=2,
                is_active=False,
            ),
        ]
    )
    engine = _engine(schedule=schedule)

    slots = await engine.get_availability(date(2025, 3, 5))
    assert [slot.capacity for slot in slots] == [2, 2, 2]

    for closed in (date(2025, 3, 6), date(2025, 3, 9)):
        with pytest.raises(ValidationError) as excinfo:
            await engine.get_availability(closed)
        assert excinfo.value.error_code == "non_working_day"


@pytest.mark.asyncio
async def test_get_quote_adds_travel_fee_for_postcode():
    engine = _engine()

    quote = await engine.get_quote("M", "full-valet", ["wheel-shine"], "SW11 1AA")

    assert quote.base_price == Decimal("120")
    assert quote.add_ons_price == Decimal("10")
    assert quote.travel_fee == Decimal("5")
    assert quote.total_price == Decimal("135")


@pytest.mark.asyncio
async def test_get_quote_without_postcode_has_no_travel_fee():
    engine = _engine(travel_fees=FixedTravelFee("25"))

    quote = await engine.get_quote("S", "essential-clean")

    assert quote.travel_fee == Decimal("0")
    assert quote.total_price == Decimal("55")


@pytest.mark.asyncio
async def test_pay_charges_quoted_total():
    payments = _RecordingPayments()
    engine = _engine(payments=payments, settings=Settings(currency="GBP"))
    quote = await engine.get_quote("L", "premium-detail", ["engine-bay"], "SE22 8AA")

    result = await engine.pay("booking-1", quote, "jo@example.com", "Jo Bloggs", "Premium Detail")

    assert result.payment_id == "pay-1"
    assert payments.calls == [
        (
            quote.total_price,
            "GBP",
            "booking-1",
            "jo@example.com",
            "Jo Bloggs",
            "Premium Detail",
        )
    ]
    assert quote.total_price == Decimal("193")


def test_from_settings_wires_registry_when_key_is_set():
    engine = BookingResolutionEngine.from_settings(
        _FakeSession(),
        Settings(dvla_api_key="key"),
    )
    assert engine._registrations is not None


def test_from_settings_without_registry_key(caplog):
    caplog.set_level(logging.INFO)
    engine = BookingResolutionEngine.from_settings(_FakeSession(), Settings())
    assert engine._registrations is None
    assert "DVLA_API_KEY is not set" in caplog.text


@pytest.mark.asyncio
async def test_schedule_capacity_shows_in_availability():
    schedule = WorkingHoursSchedule(
        [
            WorkingHoursRule(
                day_of_week=3,
                start_time="09:00",
                end_time="12:00",
                slot_duration_minutes=60,
                max_bookings_per_slot=2,
            )
        ]
    )
    reservations = InMemoryReservationStore(schedule)
    engine = _engine(schedule=schedule, reservations=reservations)

    await reservations.reserve(date(2025, 3, 5), "10:00")
    await reservations.reserve(date(2025, 3, 5), "10:00")
    with pytest.raises(CapacityError):
        await reservations.reserve(date(2025, 3, 5), "10:00")

    slots = await engine.get_availability(date(2025, 3, 5))
    assert [slot.booked_count for slot in slots] == [0, 2, 0]
    assert [slot.is_available for slot in slots] == [True, False, True]
