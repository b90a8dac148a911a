"""Library exceptions."""

from __future__ import annotations


class DetailBookingError(Exception):
    """Base exception for the library."""

    error_type = "unknown"
    default_error_code: str | None = None

    def __init__(
        self,
        message: str | None = None,
        *,
        error_code: str | None = None,
        detail: str | None = None,
        user_message: str | None = None,
    ) -> None:
        text = message or detail or ""
        super().__init__(text)
        self.error_code = error_code or self.default_error_code
        self.detail = detail or text
        self.user_message = user_message


class ConfigError(DetailBookingError):
    """Raised when the library or its reference data is misconfigured."""

    error_type = "config"
    default_error_code = "config_error"


class ValidationError(DetailBookingError):
    """Raised when inputs fail validation."""

    error_type = "validation"
    default_error_code = "validation_error"


class NotFoundError(DetailBookingError):
    """Raised when a referenced record does not exist."""

    error_type = "not_found"
    default_error_code = "not_found"


class CapacityError(DetailBookingError):
    """Raised when a slot has no remaining capacity."""

    error_type = "capacity"
    default_error_code = "slot_full"


class StateError(DetailBookingError):
    """Raised when an operation violates the payment lifecycle."""

    error_type = "state"
    default_error_code = "invalid_transition"


class ProviderError(DetailBookingError):
    """Raised when a provider returns an error or is misconfigured."""

    error_type = "provider"
    default_error_code = "provider_error"

    def __init__(
        self,
        message: str | None = None,
        *,
        provider: str | None = None,
        error_code: str | None = None,
        detail: str | None = None,
        user_message: str | None = None,
    ) -> None:
        if provider and message:
            message = f"{provider}: {message}"
        super().__init__(
            message,
            error_code=error_code,
            detail=detail,
            user_message=user_message,
        )
        self.provider = provider


class AuthError(ProviderError):
    """Raised when authentication against a provider fails."""

    error_type = "auth"
    default_error_code = "auth_error"


class NetworkError(ProviderError):
    """Raised when network communication fails."""

    error_type = "network"
    default_error_code = "network_error"
