"""Working-hours calendar, slot computation and reservation stores."""

from __future__ import annotations

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timedelta

from .exceptions import CapacityError, ValidationError
from .models import TimeSlot, WorkingHoursRule
from .util import format_clock_time, format_slot_label, parse_clock_time, weekday_index

_LOGGER = logging.getLogger(__name__)

# Sunday is 0, matching WorkingHoursRule.day_of_week.
DEFAULT_ACTIVE_DAYS = (1, 2, 3, 4, 5)
DEFAULT_START_TIME = "10:00"
DEFAULT_END_TIME = "17:00"
DEFAULT_SLOT_DURATION_MINUTES = 90
DEFAULT_MAX_BOOKINGS_PER_SLOT = 1


def validate_rule(rule: WorkingHoursRule) -> None:
    if not 0 <= rule.day_of_week <= 6:
        raise ValidationError("day_of_week must be between 0 and 6.", error_code="invalid_rule")
    if rule.slot_duration_minutes <= 0:
        raise ValidationError(
            "slot_duration_minutes must be positive.",
            error_code="invalid_rule",
        )
    if rule.max_bookings_per_slot < 0:
        raise ValidationError(
            "max_bookings_per_slot must not be negative.",
            error_code="invalid_rule",
        )
    if parse_clock_time(rule.end_time) <= parse_clock_time(rule.start_time):
        raise ValidationError("end_time must be after start_time.", error_code="invalid_rule")


def is_working_day(day: date, active_days: Iterable[int]) -> bool:
    return weekday_index(day) in set(active_days)


def validate_booking_date(
    day: date,
    *,
    now: datetime,
    min_lead_hours: int,
    max_days_ahead: int,
) -> None:
    """Reject dates before the minimum lead time or beyond the booking horizon."""
    today = now.date()
    earliest = today + timedelta(days=math.ceil(min_lead_hours / 24))
    latest = today + timedelta(days=max_days_ahead)
    if day < earliest or day > latest:
        raise ValidationError(
            f"{day.isoformat()} is outside the bookable window "
            f"{earliest.isoformat()} to {latest.isoformat()}.",
            error_code="date_outside_window",
            user_message="Please choose another date.",
        )


class AvailabilityCalculator:
    """Builds the slot grid for a day from its working-hours rule."""

    def compute_slots(
        self,
        day: date,
        rule: WorkingHoursRule | None,
        existing_booking_counts: Mapping[str, int] | None = None,
    ) -> list[TimeSlot]:
        if rule is None or not rule.is_active:
            return []
        validate_rule(rule)
        counts = existing_booking_counts or {}
        start = parse_clock_time(rule.start_time)
        end = parse_clock_time(rule.end_time)
        slots: list[TimeSlot] = []
        minute = start
        while minute < end:
            start_time = format_clock_time(minute)
            slots.append(
                TimeSlot(
                    start_time=start_time,
                    label=format_slot_label(minute),
                    capacity=rule.max_bookings_per_slot,
                    booked_count=counts.get(start_time, 0),
                )
            )
            minute += rule.slot_duration_minutes
        _LOGGER.debug(
            "Computed %s slots for %s (%s available)",
            len(slots),
            day.isoformat(),
            sum(1 for slot in slots if slot.is_available),
        )
        return slots

    def is_working_day(self, day: date, active_days: Iterable[int]) -> bool:
        return is_working_day(day, active_days)


class WorkingHoursSchedule:
    """One working-hours rule per weekday."""

    def __init__(self, rules: Iterable[WorkingHoursRule]) -> None:
        by_day: dict[int, WorkingHoursRule] = {}
        for rule in rules:
            validate_rule(rule)
            if rule.day_of_week in by_day:
                raise ValidationError(
                    f"Duplicate working-hours rule for day {rule.day_of_week}.",
                    error_code="invalid_rule",
                )
            by_day[rule.day_of_week] = rule
        self._rules = by_day

    @classmethod
    def default(cls) -> WorkingHoursSchedule:
        return cls(
            WorkingHoursRule(
                day_of_week=day,
                start_time=DEFAULT_START_TIME,
                end_time=DEFAULT_END_TIME,
                slot_duration_minutes=DEFAULT_SLOT_DURATION_MINUTES,
                max_bookings_per_slot=DEFAULT_MAX_BOOKINGS_PER_SLOT,
            )
            for day in DEFAULT_ACTIVE_DAYS
        )

    def rule_for(self, day: date) -> WorkingHoursRule | None:
        return self._rules.get(weekday_index(day))

    def active_days(self) -> frozenset[int]:
        return frozenset(day for day, rule in self._rules.items() if rule.is_active)

    def capacity_for(self, day: date) -> int:
        rule = self.rule_for(day)
        if rule is None or not rule.is_active:
            return 0
        return rule.max_bookings_per_slot


class ReservationStore(ABC):
    """Persistence collaborator that owns slot reservations."""

    @abstractmethod
    async def count_bookings(self, day: date, start_time: str) -> int:
        """Number of live reservations in one slot."""

    @abstractmethod
    async def booking_counts(self, day: date) -> dict[str, int]:
        """Live reservation counts for every booked slot on a day."""

    @abstractmethod
    async def reserve(self, day: date, start_time: str) -> None:
        """Atomically claim one place in a slot or raise CapacityError."""


class InMemoryReservationStore(ReservationStore):
    """Reservation store whose check-and-increment runs under one lock.

    Slot capacity is read from the schedule at reservation time, so callers
    cannot book past the rule's ``max_bookings_per_slot``.
    """

    def __init__(self, schedule: WorkingHoursSchedule | None = None) -> None:
        self._schedule = schedule or WorkingHoursSchedule.default()
        self._counts: dict[tuple[date, str], int] = {}
        self._lock = asyncio.Lock()

    async def count_bookings(self, day: date, start_time: str) -> int:
        return self._counts.get((day, start_time), 0)

    async def booking_counts(self, day: date) -> dict[str, int]:
        return {slot: count for (slot_day, slot), count in self._counts.items() if slot_day == day}

    async def reserve(self, day: date, start_time: str) -> None:
        minute = parse_clock_time(start_time)
        rule = self._schedule.rule_for(day)
        if rule is None or not rule.is_active:
            raise CapacityError(
                f"{day.isoformat()} is not a working day.",
                error_code="non_working_day",
                user_message="We are closed on that day. Please choose another date.",
            )
        first = parse_clock_time(rule.start_time)
        if (
            minute < first
            or minute >= parse_clock_time(rule.end_time)
            or (minute - first) % rule.slot_duration_minutes
        ):
            raise ValidationError(
                f"{start_time} is not a slot start on {day.isoformat()}.",
                error_code="invalid_slot",
            )
        slot = format_clock_time(minute)
        async with self._lock:
            key = (day, slot)
            current = self._counts.get(key, 0)
            if current >= self._schedule.capacity_for(day):
                raise CapacityError(
                    f"Slot {slot} on {day.isoformat()} is full.",
                    user_message="That time is no longer available. Please pick another slot.",
                )
            self._counts[key] = current + 1
