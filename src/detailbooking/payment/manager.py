"""Provider-agnostic payment transactions with an explicit status lifecycle."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any

import aiohttp

from ..config import DEFAULT_BRAND_NAME, DEFAULT_CURRENCY, Settings
from ..exceptions import StateError, ValidationError
from ..models import (
    PaymentConfirmation,
    PaymentRequest,
    PaymentResult,
    PaymentState,
    PaymentStatus,
    PaymentTransaction,
    ProviderInfo,
    RefundResult,
)
from ..util import check_amount_places, to_amount, utc_now
from .provider.base import BasePaymentProvider
from .provider.loader import get_manifest, list_providers, load_provider

_LOGGER = logging.getLogger(__name__)

_TRANSITIONS: dict[PaymentState, frozenset[PaymentState]] = {
    "pending": frozenset({"completed", "failed", "cancelled"}),
    "completed": frozenset({"refund_pending", "completed"}),
    "refund_pending": frozenset({"completed"}),
    "failed": frozenset(),
    "cancelled": frozenset(),
}
_REPLACEABLE_STATES = frozenset({"failed", "cancelled"})


class PaymentTransactionManager:
    """Creates, confirms and refunds payments through the selected gateway.

    The manager keeps an in-memory ledger of the transactions it created.
    Each ledger entry remembers the provider that opened it, so switching
    providers only affects payments created afterwards.
    """

    def __init__(
        self,
        provider_id: str | None = None,
        session: aiohttp.ClientSession | None = None,
        *,
        settings: Settings | None = None,
        providers: Mapping[str, BasePaymentProvider] | None = None,
        brand_name: str = DEFAULT_BRAND_NAME,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings = settings or Settings()
        self._providers: dict[str, BasePaymentProvider] = dict(providers or {})
        self._provider_id = self._check_provider_id(provider_id or self._settings.payment_provider)
        self._session = session
        self._owns_session = session is None
        self._brand_name = brand_name
        self._clock = clock
        self._transactions: dict[str, PaymentTransaction] = {}
        self._booking_payments: dict[str, str] = {}
        self._bookings_in_flight: set[str] = set()
        self._pending_refunds: dict[str, Decimal] = {}
        self._payment_locks: dict[str, asyncio.Lock] = {}

    async def __aenter__(self) -> PaymentTransactionManager:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    @property
    def current_provider(self) -> str:
        return self._provider_id

    def available_providers(self) -> list[ProviderInfo]:
        return list_providers()

    def switch_provider(self, provider_id: str) -> None:
        """Route new payments to another gateway."""
        checked = self._check_provider_id(provider_id)
        if checked != self._provider_id:
            _LOGGER.info("Switching payment provider from %s to %s", self._provider_id, checked)
        self._provider_id = checked

    def get_transaction(self, payment_id: str) -> PaymentTransaction | None:
        return self._transactions.get(payment_id)

    def transaction_for_booking(self, booking_id: str) -> PaymentTransaction | None:
        payment_id = self._booking_payments.get(booking_id)
        if payment_id is None:
            return None
        return self._transactions.get(payment_id)

    async def create_payment(
        self,
        amount: Decimal | int | str,
        currency: str,
        booking_id: str,
        customer_email: str,
        customer_name: str,
        description: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> PaymentResult:
        """Open a payment for a booking and record it as pending."""
        value = to_amount(amount)
        if value <= 0:
            raise ValidationError("amount must be positive.", error_code="invalid_amount")
        if not booking_id:
            raise ValidationError("booking_id is required.")
        check_amount_places(value, currency)
        self._ensure_booking_free(booking_id)
        request = PaymentRequest(
            amount=value,
            currency=currency.upper(),
            booking_id=booking_id,
            customer_email=customer_email,
            customer_name=customer_name,
            description=description,
            metadata=dict(metadata or {}),
        )
        provider_id = self._provider_id
        self._bookings_in_flight.add(booking_id)
        try:
            provider = await self._get_provider(provider_id)
            result = await provider.create_payment(request)
        finally:
            self._bookings_in_flight.discard(booking_id)
        now = self._clock()
        self._transactions[result.payment_id] = PaymentTransaction(
            payment_id=result.payment_id,
            provider=provider_id,
            status="pending",
            amount=value,
            currency=request.currency,
            booking_id=booking_id,
            created_at=now,
            updated_at=now,
        )
        self._booking_payments[booking_id] = result.payment_id
        _LOGGER.info(
            "Created %s payment %s for booking %s",
            provider_id,
            result.payment_id,
            booking_id,
        )
        return result

    async def create_booking_payment(
        self,
        booking_id: str,
        amount: Decimal | int | str,
        customer_email: str,
        customer_name: str,
        service: str,
        size_class: str,
        currency: str | None = None,
    ) -> PaymentResult:
        """Open a payment described the way booking receipts show it."""
        return await self.create_payment(
            amount,
            currency or self._settings.currency or DEFAULT_CURRENCY,
            booking_id,
            customer_email,
            customer_name,
            f"{self._brand_name} - {service} ({size_class})",
            metadata={"service": service, "size_class": size_class},
        )

    async def confirm_payment(self, payment_id: str) -> PaymentConfirmation:
        async with self._lock_for(payment_id):
            transaction = self._transactions.get(payment_id)
            if transaction is None:
                raise StateError(
                    f"Payment {payment_id} was never created.",
                    error_code="no_prior_payment",
                )
            if transaction.status not in ("pending", "completed"):
                raise StateError(
                    f"Payment {payment_id} cannot be confirmed from {transaction.status}.",
                )
            provider = await self._get_provider(transaction.provider)
            confirmation = await provider.confirm_payment(payment_id)
            transaction = self._transactions[payment_id]
            if transaction.status == "completed":
                _LOGGER.debug("Payment %s was already completed; ledger unchanged", payment_id)
                return confirmation
            if confirmation.status == "completed" and confirmation.amount != transaction.amount:
                _LOGGER.warning(
                    "Captured amount %s differs from requested %s for payment %s",
                    confirmation.amount,
                    transaction.amount,
                    payment_id,
                )
            self._transition(
                transaction,
                confirmation.status,
                transaction_id=confirmation.transaction_id,
                fees=confirmation.fees,
            )
            return confirmation

    async def refund_payment(
        self,
        payment_id: str,
        amount: Decimal | int | str | None = None,
    ) -> RefundResult:
        """Refund a captured payment, defaulting to the remaining balance.

        Refunds of the same payment run one at a time, so every refund sees
        the balance left by the one before it.
        """
        async with self._lock_for(payment_id):
            transaction = self._transactions.get(payment_id)
            if transaction is None or transaction.transaction_id is None:
                raise StateError(
                    f"Payment {payment_id} has no prior capture.",
                    error_code="no_prior_capture",
                )
            if transaction.status != "completed":
                raise StateError(
                    f"Payment {payment_id} cannot be refunded from {transaction.status}.",
                )
            remaining = transaction.amount - transaction.refunded_amount
            value = None if amount is None else to_amount(amount)
            if value is not None and (value <= 0 or value > remaining):
                raise ValidationError(
                    f"Refund amount must be between 0 and {remaining}.",
                    error_code="invalid_amount",
                )
            if value is not None:
                check_amount_places(value, transaction.currency)
            if remaining <= 0:
                raise StateError(f"Payment {payment_id} is already fully refunded.")
            provider = await self._get_provider(transaction.provider)
            result = await provider.refund_payment(payment_id, value)
            transaction = self._transactions[payment_id]
            if result.status == "completed":
                self._transition(
                    transaction,
                    "completed",
                    refunded_amount=transaction.refunded_amount + result.amount,
                )
            elif result.status == "pending":
                self._pending_refunds[payment_id] = result.amount
                self._transition(transaction, "refund_pending")
            else:
                _LOGGER.warning("Refund %s for payment %s failed", result.refund_id, payment_id)
            return result

    def settle_refund(self, payment_id: str) -> PaymentTransaction:
        """Record that a pending refund has been paid out by the gateway."""
        transaction = self._transactions.get(payment_id)
        if transaction is None or transaction.status != "refund_pending":
            raise StateError(f"Payment {payment_id} has no pending refund.")
        amount = self._pending_refunds.pop(payment_id, Decimal("0"))
        return self._transition(
            transaction,
            "completed",
            refunded_amount=transaction.refunded_amount + amount,
        )

    async def get_payment_status(self, payment_id: str) -> PaymentStatus:
        """Read the gateway status and move a pending ledger entry along with it."""
        async with self._lock_for(payment_id):
            transaction = self._transactions.get(payment_id)
            provider_id = transaction.provider if transaction is not None else self._provider_id
            provider = await self._get_provider(provider_id)
            status = await provider.get_payment_status(payment_id)
            transaction = self._transactions.get(payment_id)
            if (
                transaction is not None
                and transaction.status == "pending"
                and status.status in ("failed", "cancelled")
            ):
                self._transition(transaction, status.status)
            return status

    def _lock_for(self, payment_id: str) -> asyncio.Lock:
        lock = self._payment_locks.get(payment_id)
        if lock is None:
            lock = self._payment_locks[payment_id] = asyncio.Lock()
        return lock

    def _ensure_booking_free(self, booking_id: str) -> None:
        if booking_id in self._bookings_in_flight:
            raise StateError(
                f"A payment for booking {booking_id} is already being created.",
                error_code="duplicate_payment",
            )
        existing = self.transaction_for_booking(booking_id)
        if existing is not None and existing.status not in _REPLACEABLE_STATES:
            raise StateError(
                f"Booking {booking_id} already has a {existing.status} payment.",
                error_code="duplicate_payment",
            )

    def _transition(
        self,
        transaction: PaymentTransaction,
        status: PaymentState,
        **changes: Any,
    ) -> PaymentTransaction:
        if status not in _TRANSITIONS[transaction.status]:
            raise StateError(
                f"Payment {transaction.payment_id} cannot move from "
                f"{transaction.status} to {status}.",
            )
        updated = dataclasses.replace(
            transaction,
            status=status,
            updated_at=self._clock(),
            **changes,
        )
        self._transactions[transaction.payment_id] = updated
        _LOGGER.debug(
            "Payment %s moved from %s to %s",
            transaction.payment_id,
            transaction.status,
            status,
        )
        return updated

    def _check_provider_id(self, provider_id: str) -> str:
        if provider_id not in self._providers:
            get_manifest(provider_id)
        return provider_id

    async def _get_provider(self, provider_id: str) -> BasePaymentProvider:
        provider = self._providers.get(provider_id)
        if provider is not None:
            return provider
        manifest, provider_cls = load_provider(provider_id)
        return_url, cancel_url = self._settings.checkout_urls()
        provider = provider_cls(
            self._ensure_session(),
            manifest,
            credentials=self._settings.provider_credentials(provider_id),
            sandbox=self._settings.sandbox,
            return_url=return_url,
            cancel_url=cancel_url,
            brand_name=self._brand_name,
            timeout=self._settings.timeout,
            retry_count=self._settings.retry_count,
        )
        self._providers[provider_id] = provider
        return provider

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._settings.timeout)
            self._owns_session = True
        return self._session
