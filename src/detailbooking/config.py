"""Runtime settings loaded from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

import aiohttp

from .exceptions import ConfigError

DEFAULT_PAYMENT_PROVIDER = "paypal"
DEFAULT_CURRENCY = "GBP"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MIN_LEAD_HOURS = 24
DEFAULT_MAX_DAYS_AHEAD = 90
DEFAULT_BRAND_NAME = "Love4Detailing"
CHECKOUT_SUCCESS_PATH = "/booking/success"
CHECKOUT_CANCEL_PATH = "/booking/cancelled"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _get_bool(environ: Mapping[str, str], key: str, default: bool) -> bool:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f"{key} must be a boolean.")


def _get_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer.") from exc
    if value < 0:
        raise ConfigError(f"{key} must not be negative.")
    return value


def _get_float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number.") from exc
    if value <= 0:
        raise ConfigError(f"{key} must be positive.")
    return value


def _get_str(environ: Mapping[str, str], key: str) -> str | None:
    raw = environ.get(key)
    if raw is None:
        return None
    value = raw.strip()
    return value or None


@dataclass(frozen=True, slots=True)
class Settings:
    payment_provider: str = DEFAULT_PAYMENT_PROVIDER
    sandbox: bool = True
    paypal_client_id: str | None = None
    paypal_client_secret: str | None = None
    stripe_secret_key: str | None = None
    dvla_api_key: str | None = None
    app_url: str | None = None
    currency: str = DEFAULT_CURRENCY
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retry_count: int = 0
    min_lead_hours: int = DEFAULT_MIN_LEAD_HOURS
    max_days_ahead: int = DEFAULT_MAX_DAYS_AHEAD

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        return cls(
            payment_provider=_get_str(env, "PAYMENT_PROVIDER") or DEFAULT_PAYMENT_PROVIDER,
            sandbox=_get_bool(env, "PAYMENT_SANDBOX", True),
            paypal_client_id=_get_str(env, "PAYPAL_CLIENT_ID"),
            paypal_client_secret=_get_str(env, "PAYPAL_CLIENT_SECRET"),
            stripe_secret_key=_get_str(env, "STRIPE_SECRET_KEY"),
            dvla_api_key=_get_str(env, "DVLA_API_KEY"),
            app_url=_get_str(env, "APP_URL"),
            currency=(_get_str(env, "BOOKING_CURRENCY") or DEFAULT_CURRENCY).upper(),
            timeout_seconds=_get_float(env, "HTTP_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
            retry_count=_get_int(env, "HTTP_RETRY_COUNT", 0),
            min_lead_hours=_get_int(env, "BOOKING_MIN_LEAD_HOURS", DEFAULT_MIN_LEAD_HOURS),
            max_days_ahead=_get_int(env, "BOOKING_MAX_DAYS_AHEAD", DEFAULT_MAX_DAYS_AHEAD),
        )

    @property
    def timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.timeout_seconds)

    def checkout_urls(self) -> tuple[str | None, str | None]:
        """Return and cancel URLs under APP_URL, or None when it is unset."""
        if not self.app_url:
            return None, None
        root = self.app_url.rstrip("/")
        return f"{root}{CHECKOUT_SUCCESS_PATH}", f"{root}{CHECKOUT_CANCEL_PATH}"

    def provider_credentials(self, provider_id: str) -> dict[str, str]:
        """Credentials for a payment provider, omitting unset values."""
        if provider_id == "paypal":
            raw = {
                "client_id": self.paypal_client_id,
                "client_secret": self.paypal_client_secret,
            }
        elif provider_id == "stripe":
            raw = {"secret_key": self.stripe_secret_key}
        else:
            raw = {}
        return {key: value for key, value in raw.items() if value is not None}
