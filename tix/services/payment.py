"""
Payment bridge between the booking ledger and the payment processor.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional, Protocol

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from tix.core.errors import (
    BookingNotFound,
    Forbidden,
    InsufficientInventory,
    InvalidBookingState,
    PaymentProcessingError,
)
from tix.core.settings import PaymentSettings, get_settings
from tix.crud import booking as booking_crud
from tix.middleware.monitoring import business_metrics
from tix.models.booking import Booking, BookingStatus
from tix.models.user import User
from tix.services.booking_ledger import BookingLedger

logger = logging.getLogger(__name__)
settings = get_settings()

INTENT_SUCCEEDED = "succeeded"
WEBHOOK_INTENT_SUCCEEDED = "payment_intent.succeeded"


@dataclass
class IntentResult:
    id: str
    client_secret: Optional[str]
    status: str


class PaymentProcessor(Protocol):
    async def create_intent(
        self,
        *,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
        idempotency_key: str,
    ) -> IntentResult: ...

    async def retrieve_intent(self, intent_id: str) -> IntentResult: ...

    async def refund(self, intent_id: str, *, idempotency_key: str) -> str: ...

    def construct_webhook_event(self, payload: bytes, signature: str) -> Dict[str, Any]: ...


def to_minor_units(amount: Decimal) -> int:
    """Decimal currency amount to integer cents, half-up."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripeProcessor:
    """Stripe SDK calls, run in a worker thread so the event loop stays free."""

    def __init__(self, config: PaymentSettings) -> None:
        self._webhook_secret = config.STRIPE_WEBHOOK_SECRET
        stripe.api_key = config.STRIPE_SECRET_KEY

    @staticmethod
    def _result(intent: Any) -> IntentResult:
        return IntentResult(
            id=intent.id,
            client_secret=getattr(intent, "client_secret", None),
            status=intent.status,
        )

    async def create_intent(
        self,
        *,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
        idempotency_key: str,
    ) -> IntentResult:
        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                amount=amount,
                currency=currency,
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            logger.error("Stripe error creating payment intent: %s", e)
            raise PaymentProcessingError(e.user_message or str(e))
        return self._result(intent)

    async def retrieve_intent(self, intent_id: str) -> IntentResult:
        try:
            intent = await asyncio.to_thread(stripe.PaymentIntent.retrieve, intent_id)
        except stripe.StripeError as e:
            logger.error("Stripe error retrieving payment intent %s: %s", intent_id, e)
            raise PaymentProcessingError(e.user_message or str(e))
        return self._result(intent)

    async def refund(self, intent_id: str, *, idempotency_key: str) -> str:
        try:
            refund = await asyncio.to_thread(
                stripe.Refund.create,
                payment_intent=intent_id,
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            logger.error("Stripe error refunding payment intent %s: %s", intent_id, e)
            raise PaymentProcessingError(e.user_message or str(e))
        return str(refund.id)

    def construct_webhook_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        if not self._webhook_secret:
            raise PaymentProcessingError("Webhook signing secret is not configured")
        try:
            stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning("Rejected webhook payload: %s", e)
            raise PaymentProcessingError("Invalid webhook signature", status_code=400)
        event: Dict[str, Any] = json.loads(payload)
        return event


class PaymentBridge:
    def __init__(
        self,
        db: AsyncSession,
        processor: PaymentProcessor,
        ledger: Optional[BookingLedger] = None,
        currency: Optional[str] = None,
    ) -> None:
        self.db = db
        self.processor = processor
        self.ledger = ledger or BookingLedger(db)
        self.currency = currency or settings.payment.PAYMENT_CURRENCY

    async def create_intent(self, booking_id: str, requester: User) -> Dict[str, str]:
        booking = await booking_crud.get_booking(self.db, booking_id)
        if booking is None:
            raise BookingNotFound()
        if booking.user_id != requester.id:
            raise Forbidden("You can only pay for your own bookings")
        if booking.status != BookingStatus.PENDING:
            raise InvalidBookingState("Only pending bookings can be paid")

        try:
            intent = await self.processor.create_intent(
                amount=to_minor_units(booking.total_amount),
                currency=self.currency,
                metadata={"bookingId": booking.id, "userId": requester.id},
                idempotency_key=f"booking-{booking.id}-intent",
            )
        except PaymentProcessingError:
            business_metrics.record_payment_failure("create_intent")
            raise

        await self.ledger.attach_payment_intent(booking.id, intent.id)
        logger.info(
            "Created payment intent %s for booking %s", intent.id, booking.booking_reference
        )
        return {"client_secret": intent.client_secret or "", "payment_intent_id": intent.id}

    async def on_intent_succeeded(
        self,
        intent_ref: str,
        *,
        verify: bool = True,
        requester: Optional[User] = None,
    ) -> Booking:
        """Confirm the booking behind a succeeded intent.

        ``verify`` asks the processor for the intent status first; webhook
        deliveries are already signed by the processor and skip it.
        """
        if requester is not None:
            booking = await booking_crud.get_by_payment_intent(self.db, intent_ref)
            if booking is None:
                raise BookingNotFound("No booking found for this payment")
            if booking.user_id != requester.id:
                raise Forbidden("This payment belongs to another user")

        if verify:
            intent = await self.processor.retrieve_intent(intent_ref)
            if intent.status != INTENT_SUCCEEDED:
                business_metrics.record_payment_failure("not_succeeded")
                raise PaymentProcessingError(
                    f"Payment has not succeeded (status: {intent.status})",
                    status_code=400,
                )

        try:
            return await self.ledger.confirm_payment(intent_ref)
        except InsufficientInventory:
            await self._refund_unfulfillable(intent_ref)
            raise

    async def _refund_unfulfillable(self, intent_ref: str) -> None:
        """Return a captured payment whose tickets were resold after the hold lapsed."""
        try:
            await self.processor.refund(intent_ref, idempotency_key=f"intent-{intent_ref}-refund")
        except PaymentProcessingError:
            business_metrics.record_payment_failure("refund")
            logger.error("Automatic refund of payment intent %s failed", intent_ref)
            raise
        logger.info("Refunded payment intent %s, its tickets were no longer available", intent_ref)

    async def handle_webhook(self, payload: bytes, signature: str) -> bool:
        """Verify and dispatch a processor event. Returns True if it was acted on."""
        event = self.processor.construct_webhook_event(payload, signature)
        event_type = event.get("type")
        if event_type != WEBHOOK_INTENT_SUCCEEDED:
            logger.debug("Ignoring webhook event %s", event_type)
            return False

        intent_ref = event["data"]["object"]["id"]
        try:
            await self.on_intent_succeeded(intent_ref, verify=False)
        except BookingNotFound:
            logger.warning("Webhook for unknown payment intent %s", intent_ref)
            return False
        except InsufficientInventory:
            # Payment already refunded; acknowledge so the processor stops retrying.
            return False
        return True

    async def refund(self, booking_id: str, requester: User) -> Booking:
        booking = await self.ledger.get_refundable(booking_id, requester)
        if booking.status == BookingStatus.REFUNDED:
            return booking

        if booking.payment_intent_id:
            try:
                await self.processor.refund(
                    booking.payment_intent_id,
                    idempotency_key=f"booking-{booking.id}-refund",
                )
            except PaymentProcessingError:
                business_metrics.record_payment_failure("refund")
                raise
        else:
            logger.warning(
                "Refunding booking %s without a payment intent", booking.booking_reference
            )
        return await self.ledger.refund(booking_id, requester)
