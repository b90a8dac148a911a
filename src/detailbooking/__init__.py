"""detailbooking package."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from .config import Settings
from .engine import BookingResolutionEngine
from .exceptions import (
    AuthError,
    CapacityError,
    ConfigError,
    DetailBookingError,
    NetworkError,
    NotFoundError,
    ProviderError,
    StateError,
    ValidationError,
)
from .models import (
    PaymentConfirmation,
    PaymentResult,
    PaymentStatus,
    PaymentTransaction,
    PriceQuote,
    ProviderInfo,
    RefundResult,
    RegistrationLookupResult,
    TimeSlot,
    VehicleMatch,
    VehicleResolution,
    WorkingHoursRule,
)
from .payment import PaymentTransactionManager

try:
    __version__ = version("detailbooking")
except PackageNotFoundError:  # pragma: no cover - not installed
    __version__ = "0.0.0"

__all__ = [
    "AuthError",
    "BookingResolutionEngine",
    "CapacityError",
    "ConfigError",
    "DetailBookingError",
    "NetworkError",
    "NotFoundError",
    "PaymentConfirmation",
    "PaymentResult",
    "PaymentStatus",
    "PaymentTransaction",
    "PaymentTransactionManager",
    "PriceQuote",
    "ProviderError",
    "ProviderInfo",
    "RefundResult",
    "RegistrationLookupResult",
    "Settings",
    "StateError",
    "TimeSlot",
    "ValidationError",
    "VehicleMatch",
    "VehicleResolution",
    "WorkingHoursRule",
    "__version__",
]
