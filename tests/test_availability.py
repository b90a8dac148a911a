import asyncio
from datetime import UTC, date, datetime

import pytest

from detailbooking.availability import (
    AvailabilityCalculator,
    InMemoryReservationStore,
    WorkingHoursSchedule,
    validate_booking_date,
    validate_rule,
)
from detailbooking.exceptions import CapacityError, ValidationError
from detailbooking.models import WorkingHoursRule

TUESDAY = date(2025, 3, 4)


def _rule(**overrides) -> WorkingHoursRule:
    values = {
        "day_of_week": 2,
        "start_time": "09:00",
        "end_time": "17:00",
        "slot_duration_minutes": 90,
        "max_bookings_per_slot": 1,
    }
    values.update(overrides)
    return WorkingHoursRule(**values)


def test_compute_slots_for_working_day() -> None:
    slots = AvailabilityCalculator().compute_slots(TUESDAY, _rule())

    assert [slot.start_time for slot in slots] == [
        "09:00",
        "10:30",
        "12:00",
        "13:30",
        "15:00",
        "16:30",
    ]
    assert [slot.label for slot in slots] == [
        "9:00 AM",
        "10:30 AM",
        "12:00 PM",
        "1:30 PM",
        "3:00 PM",
        "4:30 PM",
    ]
    assert all(slot.is_available for slot in slots)


def test_booked_slot_is_unavailable() -> None:
    slots = AvailabilityCalculator().compute_slots(TUESDAY, _rule(), {"10:30": 1})

    by_time = {slot.start_time: slot for slot in slots}
    assert by_time["10:30"].is_available is False
    assert by_time["10:30"].remaining == 0
    assert all(slot.is_available for time, slot in by_time.items() if time != "10:30")


def test_capacity_comes_from_rule() -> None:
    slots = AvailabilityCalculator().compute_slots(
        TUESDAY,
        _rule(max_bookings_per_slot=3),
        {"09:00": 2, "12:00": 3},
    )
    by_time = {slot.start_time: slot for slot in slots}
    assert by_time["09:00"].capacity == 3
    assert by_time["09:00"].remaining == 1
    assert by_time["09:00"].is_available is True
    assert by_time["12:00"].is_available is False


def test_inactive_or_missing_rule_has_no_slots() -> None:
    calculator = AvailabilityCalculator()
    assert calculator.compute_slots(TUESDAY, None) == []
    assert calculator.compute_slots(TUESDAY, _rule(is_active=False)) == []


def test_zero_capacity_slots_are_never_available() -> None:
    slots = AvailabilityCalculator().compute_slots(TUESDAY, _rule(max_bookings_per_slot=0))
    assert slots
    assert not any(slot.is_available for slot in slots)


@pytest.mark.parametrize(
    "overrides",
    [
        {"day_of_week": 7},
        {"slot_duration_minutes": 0},
        {"max_bookings_per_slot": -1},
        {"start_time": "17:00", "end_time": "09:00"},
        {"start_time": "9am"},
    ],
)
def test_validate_rule_rejects_bad_rules(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        validate_rule(_rule(**overrides))


def test_is_working_day() -> None:
    calculator = AvailabilityCalculator()
    assert calculator.is_working_day(TUESDAY, [1, 2, 3, 4, 5]) is True
    assert calculator.is_working_day(date(2025, 3, 2), [1, 2, 3, 4, 5]) is False


def test_default_schedule() -> None:
    schedule = WorkingHoursSchedule.default()
    assert schedule.active_days() == frozenset({1, 2, 3, 4, 5})
    rule = schedule.rule_for(TUESDAY)
    assert rule is not None
    assert (rule.start_time, rule.end_time, rule.slot_duration_minutes) == ("10:00", "17:00", 90)
    assert schedule.rule_for(date(2025, 3, 8)) is None
    assert schedule.capacity_for(TUESDAY) == 1
    assert schedule.capacity_for(date(2025, 3, 8)) == 0


def test_schedule_rejects_duplicate_days() -> None:
    with pytest.raises(ValidationError):
        WorkingHoursSchedule([_rule(), _rule()])


def test_validate_booking_date_window() -> None:
    now = datetime(2025, 3, 3, 15, 0, tzinfo=UTC)
    validate_booking_date(TUESDAY, now=now, min_lead_hours=24, max_days_ahead=90)
    with pytest.raises(ValidationError) as excinfo:
        validate_booking_date(date(2025, 3, 3), now=now, min_lead_hours=24, max_days_ahead=90)
    assert excinfo.value.error_code == "date_outside_window"
    with pytest.raises(ValidationError):
        validate_booking_date(date(2025, 6, 2), now=now, min_lead_hours=24, max_days_ahead=90)


def _store(**overrides) -> InMemoryReservationStore:
    return InMemoryReservationStore(
        WorkingHoursSchedule([_rule(**overrides), _rule(day_of_week=3, **overrides)])
    )


@pytest.mark.asyncio
async def test_concurrent_reservations_for_last_place() -> None:
    store = _store()

    results = await asyncio.gather(
        store.reserve(TUESDAY, "10:30"),
        store.reserve(TUESDAY, "10:30"),
        return_exceptions=True,
    )

    assert results.count(None) == 1
    errors = [result for result in results if isinstance(result, Exception)]
    assert len(errors) == 1
    assert isinstance(errors[0], CapacityError)
    assert await store.count_bookings(TUESDAY, "10:30") == 1


@pytest.mark.asyncio
async def test_capacity_comes_from_the_schedule() -> None:
    store = _store(max_bookings_per_slot=2)
    await store.reserve(TUESDAY, "12:00")
    await store.reserve(TUESDAY, "12:00")

    with pytest.raises(CapacityError) as excinfo:
        await store.reserve(TUESDAY, "12:00")

    assert excinfo.value.error_code == "slot_full"
    assert await store.count_bookings(TUESDAY, "12:00") == 2


@pytest.mark.asyncio
async def test_default_store_uses_default_schedule() -> None:
    store = InMemoryReservationStore()
    await store.reserve(TUESDAY, "11:30")
    with pytest.raises(CapacityError):
        await store.reserve(TUESDAY, "11:30")


@pytest.mark.asyncio
@pytest.mark.parametrize("day", [date(2025, 3, 2), date(2025, 3, 7)])
async def test_reserve_on_closed_day(day: date) -> None:
    store = _store(max_bookings_per_slot=5)
    with pytest.raises(CapacityError) as excinfo:
        await store.reserve(day, "10:30")
    assert excinfo.value.error_code == "non_working_day"
    assert await store.booking_counts(day) == {}


@pytest.mark.asyncio
async def test_zero_capacity_rule_takes_no_reservations() -> None:
    store = _store(max_bookings_per_slot=0)
    with pytest.raises(CapacityError):
        await store.reserve(TUESDAY, "09:00")


@pytest.mark.asyncio
@pytest.mark.parametrize("start_time", ["08:30", "09:30", "17:00"])
async def test_reserve_rejects_times_off_the_slot_grid(start_time: str) -> None:
    store = _store()
    with pytest.raises(ValidationError) as excinfo:
        await store.reserve(TUESDAY, start_time)
    assert excinfo.value.error_code == "invalid_slot"


@pytest.mark.asyncio
async def test_store_counts_feed_slot_computation() -> None:
    store = _store(max_bookings_per_slot=2)
    await store.reserve(TUESDAY, "10:30")
    await store.reserve(TUESDAY, "10:30")
    await store.reserve(TUESDAY, "9:00")
    await store.reserve(date(2025, 3, 5), "12:00")

    counts = await store.booking_counts(TUESDAY)
    assert counts == {"10:30": 2, "09:00": 1}

    slots = AvailabilityCalculator().compute_slots(
        TUESDAY,
        _rule(max_bookings_per_slot=2),
        counts,
    )
    by_time = {slot.start_time: slot for slot in slots}
    assert by_time["10:30"].is_available is False
    assert by_time["09:00"].remaining == 1


@pytest.mark.asyncio
async def test_reserve_rejects_malformed_time() -> None:
    store = _store()
    with pytest.raises(ValidationError):
        await store.reserve(TUESDAY, "half ten")
