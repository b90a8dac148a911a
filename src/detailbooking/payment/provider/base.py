"""Payment provider base class and shared behavior."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import aiohttp

from ...exceptions import ConfigError, ProviderError, ValidationError
from ...models import (
    PaymentConfirmation,
    PaymentRequest,
    PaymentResult,
    PaymentStatus,
    ProviderInfo,
    RefundResult,
)
from ...transport import HttpAdapter
from ...util import check_amount_places, parse_timestamp, to_amount
from .loader import ProviderManifest


class BasePaymentProvider(HttpAdapter, ABC):
    """Base class for payment gateway implementations."""

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
    ) -> None:
        super().__init__(
            session,
            provider_name=manifest.name,
            base_url=base_url,
            api_uri=api_uri,
            timeout=timeout,
            retry_count=retry_count,
        )
        self._manifest = manifest
        self._credentials = self._clean_credentials(credentials)
        self._sandbox = sandbox
        self._return_url = return_url
        self._cancel_url = cancel_url
        self._brand_name = brand_name

    @property
    def provider_id(self) -> str:
        return self._manifest.id

    @property
    def provider_name(self) -> str:
        return self._manifest.name

    @property
    def partial_refund_possible(self) -> bool:
        return self._manifest.partial_refund_possible

    @property
    def sandbox(self) -> bool:
        return self._sandbox

    @property
    def info(self) -> ProviderInfo:
        return ProviderInfo(
            id=self._manifest.id,
            partial_refund_possible=self._manifest.partial_refund_possible,
        )

    def _clean_credentials(self, credentials: Mapping[str, str] | None) -> dict[str, str]:
        """Keep the non-blank string credentials; anything else is a setup mistake."""
        if credentials is None:
            return {}
        if not isinstance(credentials, Mapping) or not all(
            isinstance(key, str) and isinstance(value, str) for key, value in credentials.items()
        ):
            raise ConfigError(f"{self._manifest.name} credentials must map names to strings.")
        return {key: value.strip() for key, value in credentials.items() if value.strip()}

    def _require_id(self, value: Any, field: str) -> str:
        text = "" if value is None else str(value).strip()
        if not text:
            raise ValidationError(f"{field} is required.", error_code="missing_id")
        return text

    def _coerce_response_id(self, value: Any, field: str) -> str:
        text = "" if value is None else str(value).strip()
        if not text:
            raise ProviderError(f"Response has no {field}.", provider=self.provider_name)
        return text

    def _parse_amount(self, value: Any, field: str) -> Decimal:
        try:
            return to_amount(value, field)
        except ValidationError as exc:
            raise ProviderError(
                f"Provider response has invalid {field}.",
                provider=self.provider_name,
            ) from exc

    def _parse_timestamp(self, value: Any) -> datetime | None:
        if value is None:
            return None
        if isinstance(value, int) and not isinstance(value, bool):
            return datetime.fromtimestamp(value, UTC)
        try:
            return parse_timestamp(value)
        except ValidationError as exc:
            raise ProviderError(
                "Provider response has an invalid timestamp.",
                provider=self.provider_name,
            ) from exc

    def _validate_request(self, request: PaymentRequest) -> None:
        if to_amount(request.amount) <= 0:
            raise ValidationError("amount must be positive.", error_code="invalid_amount")
        if not isinstance(request.currency, str) or len(request.currency) != 3:
            raise ValidationError(
                "currency must be a three-letter ISO 4217 code.",
                error_code="invalid_currency",
            )
        check_amount_places(to_amount(request.amount), request.currency)
        self._require_id(request.booking_id, "booking_id")

    @abstractmethod
    async def create_payment(self, request: PaymentRequest) -> PaymentResult:
        """Open a payment with the gateway."""

    @abstractmethod
    async def confirm_payment(self, payment_id: str) -> PaymentConfirmation:
        """Capture an approved payment."""

    async def refund_payment(
        self,
        payment_id: str,
        amount: Decimal | None = None,
    ) -> RefundResult:
        """Refund a captured payment in full or, where supported, in part."""
        payment_id_value = self._require_id(payment_id, "payment_id")
        if amount is not None:
            amount = to_amount(amount)
            if amount <= 0:
                raise ValidationError(
                    "Refund amount must be positive.",
                    error_code="invalid_amount",
                )
            if not self.partial_refund_possible:
                raise ValidationError(
                    f"{self.provider_name} does not support partial refunds.",
                    error_code="partial_refund_unsupported",
                )
        return await self._refund_native(payment_id_value, amount)

    @abstractmethod
    async def _refund_native(self, payment_id: str, amount: Decimal | None) -> RefundResult:
        """Gateway specific refund call."""

    @abstractmethod
    async def get_payment_status(self, payment_id: str) -> PaymentStatus:
        """Read the current payment status from the gateway."""
