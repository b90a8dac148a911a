"""PayPal Orders v2 provider implementation."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

import aiohttp

from ....config import DEFAULT_BRAND_NAME
from ....exceptions import AuthError, ConfigError, ProviderError
from ....models import (
    PaymentConfirmation,
    PaymentRequest,
    PaymentResult,
    PaymentStatus,
    RefundResult,
)
from ....util import format_amount, utc_now
from ..base import BasePaymentProvider
from ..loader import ProviderManifest
from .const import (
    AUTH_HEADER,
    AUTH_PREFIX,
    CAPTURE_REFUND_ENDPOINT,
    DEFAULT_HEADERS,
    LIVE_BASE_URL,
    ORDER_STATUS_MAP,
    ORDERS_ENDPOINT,
    SANDBOX_BASE_URL,
    TOKEN_ENDPOINT,
    TOKEN_EXPIRY_MARGIN_SECONDS,
)

_LOGGER = logging.getLogger(__name__)


class Provider(BasePaymentProvider):
    """Provider for PayPal checkout orders."""

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
            brand_name=brand_name or DEFAULT_BRAND_NAME,
            base_url=base_url or (SANDBOX_BASE_URL if sandbox else LIVE_BASE_URL),
            api_uri=api_uri,
            timeout=timeout,
            retry_count=retry_count,
        )
        if not self._credentials.get("client_id"):
            raise ConfigError("PayPal client_id is required.")
        if not self._credentials.get("client_secret"):
            raise ConfigError("PayPal client_secret is required.")
        self._clock = clock
        self._access_token: str | None = None
        self._token_expires_at: datetime | None = None

    async def create_payment(self, request: PaymentRequest) -> PaymentResult:
        """Create a CAPTURE order and return its approval link."""
        self._validate_request(request)
        _LOGGER.debug("PayPal create order started for booking %s", request.booking_id)
        payload = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": request.booking_id,
                    "description": request.description,
                    "custom_id": request.booking_id,
                    "amount": {
                        "currency_code": request.currency.upper(),
                        "value": format_amount(request.amount),
                    },
                }
            ],
            "application_context": self._application_context(),
        }
        data = await self._authorized_request("POST", ORDERS_ENDPOINT, json=payload)
        if not isinstance(data, dict):
            raise ProviderError("Response included invalid order data.", provider=self.provider_name)
        order_id = self._coerce_response_id(data.get("id"), "id")
        approval_url = self._find_link(data.get("links"), "approve")
        _LOGGER.debug("PayPal create order completed: %s", order_id)
        return PaymentResult(
            payment_id=order_id,
            provider=self.provider_id,
            status="pending",
            approval_url=approval_url,
        )

    async def confirm_payment(self, payment_id: str) -> PaymentConfirmation:
        """Capture an approved order."""
        order_id = self._require_id(payment_id, "payment_id")
        _LOGGER.debug("PayPal capture started for %s", order_id)
        data = await self._authorized_request(
            "POST",
            f"{ORDERS_ENDPOINT}/{order_id}/capture",
            json={},
        )
        capture = self._first_capture(data)
        amount, currency = self._map_money(capture.get("amount"))
        fee = None
        breakdown = capture.get("seller_receivable_breakdown")
        if isinstance(breakdown, dict) and isinstance(breakdown.get("paypal_fee"), dict):
            fee = self._parse_amount(breakdown["paypal_fee"].get("value"), "paypal_fee")
        status = "completed" if capture.get("status") == "COMPLETED" else "failed"
        _LOGGER.debug("PayPal capture completed for %s with status %s", order_id, status)
        return PaymentConfirmation(
            payment_id=order_id,
            transaction_id=self._coerce_response_id(capture.get("id"), "capture id"),
            amount=amount,
            currency=currency,
            status=status,
            paid_at=self._parse_timestamp(capture.get("create_time")) or self._clock(),
            fees=fee,
        )

    async def _refund_native(self, payment_id: str, amount: Decimal | None) -> RefundResult:
        order = await self._authorized_request("GET", f"{ORDERS_ENDPOINT}/{payment_id}")
        capture = self._first_capture(order)
        capture_id = self._coerce_response_id(capture.get("id"), "capture id")
        payload: dict[str, Any] = {}
        if amount is not None:
            _, currency = self._map_money(self._first_unit(order).get("amount"))
            payload["amount"] = {"value": format_amount(amount), "currency_code": currency}
        _LOGGER.debug("PayPal refund started for %s", payment_id)
        data = await self._authorized_request(
            "POST",
            CAPTURE_REFUND_ENDPOINT.format(capture_id=capture_id),
            json=payload,
        )
        if not isinstance(data, dict):
            raise ProviderError("Response included invalid refund data.", provider=self.provider_name)
        refund_status = data.get("status")
        if refund_status == "COMPLETED":
            status = "completed"
        elif refund_status in ("FAILED", "CANCELLED"):
            status = "failed"
        else:
            status = "pending"
        refunded, _ = self._map_money(data.get("amount"))
        _LOGGER.debug("PayPal refund completed for %s with status %s", payment_id, status)
        return RefundResult(
            refund_id=self._coerce_response_id(data.get("id"), "refund id"),
            payment_id=payment_id,
            amount=refunded,
            status=status,
            refunded_at=self._parse_timestamp(data.get("create_time"))
            if status == "completed"
            else None,
        )

    async def get_payment_status(self, payment_id: str) -> PaymentStatus:
        """Return the order status mapped onto the shared payment states."""
        order_id = self._require_id(payment_id, "payment_id")
        order = await self._authorized_request("GET", f"{ORDERS_ENDPOINT}/{order_id}")
        if not isinstance(order, dict):
            raise ProviderError("Response included invalid order data.", provider=self.provider_name)
        amount, currency = self._map_money(self._first_unit(order).get("amount"))
        created_at = self._parse_timestamp(order.get("create_time")) or self._clock()
        return PaymentStatus(
            payment_id=order_id,
            status=ORDER_STATUS_MAP.get(order.get("status"), "failed"),
            amount=amount,
            currency=currency,
            created_at=created_at,
            updated_at=self._parse_timestamp(order.get("update_time")) or created_at,
        )

    def _application_context(self) -> dict[str, str]:
        context = {
            "brand_name": self._brand_name or DEFAULT_BRAND_NAME,
            "landing_page": "NO_PREFERENCE",
            "user_action": "PAY_NOW",
        }
        if self._return_url:
            context["return_url"] = self._return_url
        if self._cancel_url:
            context["cancel_url"] = self._cancel_url
        return context

    def _first_unit(self, order: Any) -> dict[str, Any]:
        units = order.get("purchase_units") if isinstance(order, dict) else None
        if not isinstance(units, list) or not units or not isinstance(units[0], dict):
            raise ProviderError("Response missing purchase units.", provider=self.provider_name)
        return units[0]

    def _first_capture(self, order: Any) -> dict[str, Any]:
        payments = self._first_unit(order).get("payments")
        captures = payments.get("captures") if isinstance(payments, dict) else None
        if not isinstance(captures, list) or not captures or not isinstance(captures[0], dict):
            raise ProviderError("Response missing capture details.", provider=self.provider_name)
        return captures[0]

    def _map_money(self, raw: Any) -> tuple[Decimal, str]:
        if not isinstance(raw, dict):
            raise ProviderError("Response missing amount.", provider=self.provider_name)
        currency = raw.get("currency_code")
        if not isinstance(currency, str) or not currency:
            raise ProviderError("Response missing currency.", provider=self.provider_name)
        return self._parse_amount(raw.get("value"), "amount"), currency.upper()

    def _find_link(self, links: Any, rel: str) -> str | None:
        if not isinstance(links, list):
            return None
        for link in links:
            if isinstance(link, dict) and link.get("rel") == rel:
                href = link.get("href")
                if isinstance(href, str) and href:
                    return href
        return None

    async def _error_message_from_response(self, response: aiohttp.ClientResponse) -> str | None:
        try:
            data = await response.json()
        except (aiohttp.ContentTypeError, ValueError):
            return None
        if not isinstance(data, dict):
            return None
        details = data.get("details")
        if isinstance(details, list) and details and isinstance(details[0], dict):
            description = details[0].get("description") or details[0].get("issue")
            if isinstance(description, str) and description.strip():
                return description.strip()
        message = data.get("message") or data.get("error_description")
        if isinstance(message, str) and message.strip():
            return message.strip()
        return None

    async def _authorized_request(self, method: str, path: str, **kwargs: Any) -> Any:
        for attempt in range(2):
            token = await self._ensure_access_token()
            headers = dict(DEFAULT_HEADERS)
            headers[AUTH_HEADER] = f"{AUTH_PREFIX}{token}"
            try:
                return await self._request_json(
                    method,
                    path,
                    headers=headers,
                    **kwargs,
                )
            except AuthError:
                if attempt == 0:
                    _LOGGER.debug("PayPal token rejected; requesting a new one")
                    self._access_token = None
                    continue
                raise
        raise ProviderError("Request failed.", provider=self.provider_name)

    async def _ensure_access_token(self) -> str:
        now = self._clock()
        if (
            self._access_token is not None
            and self._token_expires_at is not None
            and now < self._token_expires_at
        ):
            return self._access_token
        auth = aiohttp.BasicAuth(self._credentials["client_id"], self._credentials["client_secret"])
        data = await self._request_json(
            "POST",
            TOKEN_ENDPOINT,
            auth=auth,
            headers=dict(DEFAULT_HEADERS),
            data={"grant_type": "client_credentials"},
        )
        token = data.get("access_token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise AuthError("PayPal did not return an access token.", provider=self.provider_name)
        expires_in = data.get("expires_in")
        lifetime = expires_in if isinstance(expires_in, int) and expires_in > 0 else 0
        self._access_token = token
        self._token_expires_at = now + timedelta(
            seconds=max(0, lifetime - TOKEN_EXPIRY_MARGIN_SECONDS)
        )
        return token
