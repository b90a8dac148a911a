"""Stripe PaymentIntents provider implementation."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import aiohttp

from ....exceptions import ConfigError, ProviderError
from ....models import (
    PaymentConfirmation,
    PaymentRequest,
    PaymentResult,
    PaymentStatus,
    RefundResult,
)
from ....util import ZERO_DECIMAL_CURRENCIES, from_minor_units, to_minor_units, utc_now
from ..base import BasePaymentProvider
from ..loader import ProviderManifest
from .const import (
    AUTH_HEADER,
    AUTH_PREFIX,
    CAPTURE_EXPAND,
    DEFAULT_API_URI,
    DEFAULT_BASE_URL,
    DEFAULT_HEADERS,
    INTENT_STATUS_MAP,
    PAYMENT_INTENTS_ENDPOINT,
    REFUND_STATUS_MAP,
    REFUNDS_ENDPOINT,
)

_LOGGER = logging.getLogger(__name__)


class Provider(BasePaymentProvider):
    """Provider for Stripe payment intents with manual capture."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        manifest: ProviderManifest,
        *,
        credentials: Mapping[str, str] | None = None,
        sandbox: bool = True,
        return_url: str | None = None,
        cancel_url: str | None = None,
        brand_name: str | None = None,
        base_url: str | None = None,
        api_uri: str | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        retry_count: int = 0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the provider."""
        super().__init__(
            session,
            manifest,
            credentials=credentials,
            sandbox=sandbox,
            return_url=return_url,
            cancel_url=cancel_url,
            brand_name=brand_name,
            base_url=base_url or DEFAULT_BASE_URL,
            api_uri=DEFAULT_API_URI if api_uri is None else api_uri,
            timeout=timeout,
            retry_count=retry_count,
        )
        secret_key = self._credentials.get("secret_key")
        if not secret_key:
            raise ConfigError("Stripe secret_key is required.")
        if sandbox and not secret_key.startswith("sk_test_"):
            _LOGGER.warning("Stripe sandbox mode is enabled but the secret key is not a test key")
        self._clock = clock

    async def create_payment(self, request: PaymentRequest) -> PaymentResult:
        """Create a payment intent that is captured on confirmation."""
        self._validate_request(request)
        currency = request.currency.upper()
        form: dict[str, str] = {
            "amount": str(self._to_gateway_amount(request.amount, currency)),
            "currency": currency.lower(),
            "capture_method": "manual",
            "description": request.description,
            "receipt_email": request.customer_email,
            "metadata[booking_id]": request.booking_id,
            "metadata[customer_name]": request.customer_name,
        }
        for key, value in request.metadata.items():
            form[f"metadata[{key}]"] = str(value)
        _LOGGER.debug("Stripe create intent started for booking %s", request.booking_id)
        data = await self._authorized_request("POST", PAYMENT_INTENTS_ENDPOINT, data=form)
        intent = self._require_object(data, "payment intent")
        intent_id = self._coerce_response_id(intent.get("id"), "id")
        client_secret = intent.get("client_secret")
        _LOGGER.debug("Stripe create intent completed: %s", intent_id)
        return PaymentResult(
            payment_id=intent_id,
            provider=self.provider_id,
            status="pending",
            client_secret=client_secret if isinstance(client_secret, str) else None,
        )

    async def confirm_payment(self, payment_id: str) -> PaymentConfirmation:
        """Capture an authorized payment intent."""
        intent_id = self._require_id(payment_id, "payment_id")
        _LOGGER.debug("Stripe capture started for %s", intent_id)
        data = await self._authorized_request(
            "POST",
            f"{PAYMENT_INTENTS_ENDPOINT}/{intent_id}/capture",
            data={"expand[]": CAPTURE_EXPAND},
        )
        intent = self._require_object(data, "payment intent")
        currency = self._map_currency(intent.get("currency"))
        charge = intent.get("latest_charge")
        fees = None
        if isinstance(charge, dict):
            transaction_id = self._coerce_response_id(charge.get("id"), "charge id")
            balance = charge.get("balance_transaction")
            if isinstance(balance, dict) and balance.get("fee") is not None:
                fees = self._from_gateway_amount(balance.get("fee"), currency)
        else:
            transaction_id = self._coerce_response_id(charge, "charge id")
        status = "completed" if intent.get("status") == "succeeded" else "failed"
        received = intent.get("amount_received")
        if received is None:
            received = intent.get("amount")
        _LOGGER.debug("Stripe capture completed for %s with status %s", intent_id, status)
        return PaymentConfirmation(
            payment_id=intent_id,
            transaction_id=transaction_id,
            amount=self._from_gateway_amount(received, currency),
            currency=currency,
            status=status,
            paid_at=self._clock(),
            fees=fees,
        )

    async def _refund_native(self, payment_id: str, amount: Decimal | None) -> RefundResult:
        form = {"payment_intent": payment_id}
        if amount is not None:
            intent = self._require_object(
                await self._authorized_request("GET", f"{PAYMENT_INTENTS_ENDPOINT}/{payment_id}"),
                "payment intent",
            )
            currency = self._map_currency(intent.get("currency"))
            form["amount"] = str(self._to_gateway_amount(amount, currency))
        _LOGGER.debug("Stripe refund started for %s", payment_id)
        data = await self._authorized_request("POST", REFUNDS_ENDPOINT, data=form)
        refund = self._require_object(data, "refund")
        currency = self._map_currency(refund.get("currency"))
        status = REFUND_STATUS_MAP.get(refund.get("status"), "pending")
        _LOGGER.debug("Stripe refund completed for %s with status %s", payment_id, status)
        return RefundResult(
            refund_id=self._coerce_response_id(refund.get("id"), "refund id"),
            payment_id=payment_id,
            amount=self._from_gateway_amount(refund.get("amount"), currency),
            status=status,
            refunded_at=self._parse_timestamp(refund.get("created"))
            if status == "completed"
            else None,
        )

    async def get_payment_status(self, payment_id: str) -> PaymentStatus:
        """Return the intent status mapped onto the shared payment states."""
        intent_id = self._require_id(payment_id, "payment_id")
        data = await self._authorized_request("GET", f"{PAYMENT_INTENTS_ENDPOINT}/{intent_id}")
        intent = self._require_object(data, "payment intent")
        currency = self._map_currency(intent.get("currency"))
        created_at = self._parse_timestamp(intent.get("created")) or self._clock()
        return PaymentStatus(
            payment_id=intent_id,
            status=INTENT_STATUS_MAP.get(intent.get("status"), "failed"),
            amount=self._from_gateway_amount(intent.get("amount"), currency),
            currency=currency,
            created_at=created_at,
            updated_at=self._parse_timestamp(intent.get("canceled_at")) or created_at,
        )

    def _to_gateway_amount(self, amount: Decimal, currency: str) -> int:
        if currency in ZERO_DECIMAL_CURRENCIES:
            return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return to_minor_units(amount)

    def _from_gateway_amount(self, value: Any, currency: str) -> Decimal:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ProviderError("Response has an invalid amount.", provider=self.provider_name)
        if currency in ZERO_DECIMAL_CURRENCIES:
            return Decimal(value)
        return from_minor_units(value)

    def _map_currency(self, value: Any) -> str:
        if not isinstance(value, str) or not value:
            raise ProviderError("Response missing currency.", provider=self.provider_name)
        return value.upper()

    def _require_object(self, data: Any, label: str) -> dict[str, Any]:
        if not isinstance(data, dict):
            raise ProviderError(f"Response included invalid {label} data.", provider=self.provider_name)
        return data

    async def _error_message_from_response(self, response: aiohttp.ClientResponse) -> str | None:
        try:
            data = await response.json()
        except (aiohttp.ContentTypeError, ValueError):
            return None
        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, dict):
            message = error.get("message") or error.get("code")
            if isinstance(message, str) and message.strip():
                return message.strip()
        return None

    async def _authorized_request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = dict(DEFAULT_HEADERS)
        headers[AUTH_HEADER] = f"{AUTH_PREFIX}{self._credentials['secret_key']}"
        return await self._request_json(
            method,
            path,
            headers=headers,
            **kwargs,
        )
