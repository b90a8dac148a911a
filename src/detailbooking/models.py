"""Public data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

SizeClass = Literal["S", "M", "L", "XL"]
Confidence = Literal["high", "medium", "low"]
MatchConfidence = Literal["exact", "partial", "fallback"]
PaymentState = Literal["pending", "completed", "failed", "cancelled", "refund_pending"]
RefundState = Literal["pending", "completed", "failed"]

SIZE_CLASSES: tuple[SizeClass, ...] = ("S", "M", "L", "XL")


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    make: str
    model: str
    trim: str
    size_class: SizeClass


@dataclass(frozen=True, slots=True)
class VehicleMatch:
    make: str
    model: str
    trim: str
    size_class: SizeClass
    match_score: int
    display_name: str


@dataclass(frozen=True, slots=True)
class RegistryRecord:
    """Vehicle details returned by an external registry."""

    make: str
    model: str | None = None
    year_of_manufacture: int | None = None
    month_of_first_registration: str | None = None
    fuel_type: str | None = None
    engine_capacity: int | None = None
    co2_emissions: int | None = None
    colour: str | None = None
    mot_status: str | None = None
    tax_status: str | None = None


@dataclass(frozen=True, slots=True)
class RegistrationLookupResult:
    registration_number: str
    make: str
    size_class: SizeClass
    confidence: Confidence
    cached_at: datetime
    display_name: str
    model: str | None = None
    year_of_manufacture: int | None = None
    month_of_first_registration: str | None = None
    fuel_type: str | None = None
    engine_capacity: int | None = None
    co2_emissions: int | None = None
    colour: str | None = None
    mot_status: str | None = None
    tax_status: str | None = None


@dataclass(frozen=True, slots=True)
class VehicleResolution:
    size_class: SizeClass
    confidence: Confidence
    source: Literal["registration", "catalog", "fallback"]
    match: VehicleMatch | None = None
    lookup: RegistrationLookupResult | None = None


@dataclass(frozen=True, slots=True)
class WorkingHoursRule:
    day_of_week: int
    start_time: str
    end_time: str
    slot_duration_minutes: int
    max_bookings_per_slot: int
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class TimeSlot:
    start_time: str
    label: str
    capacity: int
    booked_count: int

    @property
    def is_available(self) -> bool:
        return self.booked_count < self.capacity

    @property
    def remaining(self) -> int:
        return max(0, self.capacity - self.booked_count)


@dataclass(frozen=True, slots=True)
class PriceQuote:
    base_price: Decimal
    add_ons_price: Decimal
    travel_fee: Decimal

    @property
    def total_price(self) -> Decimal:
        return self.base_price + self.add_ons_price + self.travel_fee


@dataclass(frozen=True, slots=True)
class PaymentRequest:
    amount: Decimal
    currency: str
    booking_id: str
    customer_email: str
    customer_name: str
    description: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class PaymentResult:
    payment_id: str
    provider: str
    status: PaymentState
    approval_url: str | None = None
    client_secret: str | None = None


@dataclass(frozen=True, slots=True)
class PaymentConfirmation:
    payment_id: str
    transaction_id: str
    amount: Decimal
    currency: str
    status: Literal["completed", "failed"]
    paid_at: datetime
    fees: Decimal | None = None


@dataclass(frozen=True, slots=True)
class RefundResult:
    refund_id: str
    payment_id: str
    amount: Decimal
    status: RefundState
    refunded_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class PaymentStatus:
    payment_id: str
    status: PaymentState
    amount: Decimal
    currency: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class PaymentTransaction:
    payment_id: str
    provider: str
    status: PaymentState
    amount: Decimal
    currency: str
    booking_id: str
    created_at: datetime
    updated_at: datetime
    transaction_id: str | None = None
    fees: Decimal | None = None
    refunded_amount: Decimal = Decimal("0")


@dataclass(frozen=True, slots=True)
class ProviderInfo:
    id: str
    partial_refund_possible: bool
