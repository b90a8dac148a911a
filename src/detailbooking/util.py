"""Shared utilities for validation and normalization."""

from __future__ import annotations

import re
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .exceptions import ValidationError

_WHITESPACE_RE = re.compile(r"\s+")
_CLOCK_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")
_CENT = Decimal("0.01")

# Currencies charged in whole units rather than hundredths.
ZERO_DECIMAL_CURRENCIES = frozenset(
    {
        "BIF",
        "CLP",
        "DJF",
        "GNF",
        "JPY",
        "KMF",
        "KRW",
        "MGA",
        "PYG",
        "RWF",
        "UGX",
        "VND",
        "VUV",
        "XAF",
        "XOF",
        "XPF",
    }
)

# Current, prefix, suffix, dateless numeric-first and dateless letter-first plates.
REGISTRATION_PATTERNS = (
    re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z]{3}$"),
    re.compile(r"^[A-Z][0-9]{1,3}[A-Z]{3}$"),
    re.compile(r"^[A-Z]{3}[0-9]{1,3}[A-Z]$"),
    re.compile(r"^[0-9]{1,4}[A-Z]{1,3}$"),
    re.compile(r"^[A-Z]{1,3}[0-9]{1,4}$"),
)


def normalize_registration(registration: str) -> str:
    if not isinstance(registration, str):
        raise ValidationError(
            "Registration must be a string.",
            error_code="invalid_registration",
        )
    normalized = _WHITESPACE_RE.sub("", registration).upper()
    if not normalized:
        raise ValidationError(
            "Registration is empty after normalization.",
            error_code="invalid_registration",
        )
    return normalized


def is_registration(value: str) -> bool:
    if not isinstance(value, str):
        return False
    cleaned = _WHITESPACE_RE.sub("", value).upper()
    return any(pattern.match(cleaned) for pattern in REGISTRATION_PATTERNS)


def mask_registration(registration: str) -> str:
    if not isinstance(registration, str):
        return "***"
    normalized = _WHITESPACE_RE.sub("", registration).upper()
    if not normalized:
        return "***"
    if len(normalized) <= 2:
        return "*" * len(normalized)
    if len(normalized) <= 4:
        return f"{normalized[:1]}{'*' * (len(normalized) - 2)}{normalized[-1:]}"
    masked = "*" * (len(normalized) - 4)
    return f"{normalized[:2]}{masked}{normalized[-2:]}"


def normalize_postcode(postcode: str) -> str:
    if not isinstance(postcode, str):
        raise ValidationError("Postcode must be a string.", error_code="invalid_postcode")
    normalized = _WHITESPACE_RE.sub("", postcode).upper()
    if not normalized:
        raise ValidationError("Postcode is empty.", error_code="invalid_postcode")
    return normalized


def outward_code(postcode: str) -> str:
    """Return the outward part of a UK postcode (``"BN41 1AA"`` -> ``"BN41"``)."""
    normalized = normalize_postcode(postcode)
    if len(normalized) > 4:
        # The inward code is always one digit followed by two letters.
        return normalized[:-3]
    return normalized


def parse_clock_time(value: str) -> int:
    """Parse ``HH:MM`` into minutes after midnight."""
    if not isinstance(value, str):
        raise ValidationError("Time must be an HH:MM string.", error_code="invalid_time")
    match = _CLOCK_RE.match(value.strip())
    if match is None:
        raise ValidationError(f"Time {value!r} is not HH:MM.", error_code="invalid_time")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_clock_time(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"


def format_slot_label(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    period = "PM" if hours >= 12 else "AM"
    if hours > 12:
        display_hours = hours - 12
    elif hours == 0:
        display_hours = 12
    else:
        display_hours = hours
    return f"{display_hours}:{mins:02d} {period}"


def weekday_index(day: date) -> int:
    """Weekday index with Sunday as 0 and Saturday as 6."""
    return (day.weekday() + 1) % 7


def to_amount(value: object, field: str = "amount") -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be numeric.", error_code="invalid_amount")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int | str):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValidationError(
                f"{field} must be numeric.",
                error_code="invalid_amount",
            ) from exc
    elif isinstance(value, float):
        amount = Decimal(repr(value))
    else:
        raise ValidationError(f"{field} must be numeric.", error_code="invalid_amount")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be finite.", error_code="invalid_amount")
    return amount


def currency_places(currency: str) -> int:
    return 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2


def check_amount_places(value: Decimal, currency: str, field: str = "amount") -> Decimal:
    """Reject amounts with more decimal places than the currency can charge."""
    places = currency_places(currency)
    if value != value.quantize(Decimal(1).scaleb(-places)):
        raise ValidationError(
            f"{field} {value} has more than {places} decimal places for {currency.upper()}.",
            error_code="invalid_amount",
        )
    return value


def format_amount(value: Decimal) -> str:
    """Format an amount with two decimal places for gateway payloads."""
    return str(value.quantize(_CENT, rounding=ROUND_HALF_UP))


def to_minor_units(value: Decimal) -> int:
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(value: int) -> Decimal:
    return (Decimal(value) / 100).quantize(_CENT)


def parse_timestamp(value: str) -> datetime:
    if not isinstance(value, str) or not value:
        raise ValidationError("Timestamp must be a non-empty string.")
    raw = value.strip()
    if raw.endswith("Z"):
        raw = f"{raw[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError("Timestamp is not a valid ISO 8601 value.") from exc
    if parsed.tzinfo is None:
        raise ValidationError("Timestamp must include timezone information.")
    return parsed.astimezone(UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)
