import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tix.api import deps
from tix.core.errors import ValidationError
from tix.models.user import User
from tix.schemas.booking import Booking as BookingSchema
from tix.schemas.payment import (
    PaymentIntentCreate,
    PaymentIntentResponse,
    PaymentSuccessRequest,
    PaymentSuccessResponse,
    WebhookAck,
)
from tix.services.payment import PaymentBridge, PaymentProcessor

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/create-payment-intent",
    response_model=PaymentIntentResponse,
    summary="Create Payment Intent",
)  # type: ignore[misc]
async def create_payment_intent(
    payload: PaymentIntentCreate,
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    processor: PaymentProcessor = Depends(deps.get_payment_processor),
) -> Any:
    """
    **Open a Payment for a Pending Booking**

    Returns the `clientSecret` the browser needs to complete payment with
    the processor. Calling it again for the same booking returns the same
    intent.

    **Errors:**
    - `403`: Booking belongs to someone else
    - `409`: Booking is no longer pending
    - `502`: Processor rejected the request
    """
    bridge = PaymentBridge(db, processor)
    return await bridge.create_intent(payload.booking_id, current_user)


@router.post(
    "/payment-success",
    response_model=PaymentSuccessResponse,
    summary="Confirm Payment",
)  # type: ignore[misc]
async def payment_success(
    payload: PaymentSuccessRequest,
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    processor: PaymentProcessor = Depends(deps.get_payment_processor),
) -> Any:
    """
    Called by the client after the processor reports success. The intent is
    re-checked with the processor before the booking is confirmed.
    """
    bridge = PaymentBridge(db, processor)
    booking = await bridge.on_intent_succeeded(
        payload.payment_intent_id, requester=current_user
    )
    return PaymentSuccessResponse(
        message="Booking confirmed successfully",
        booking=BookingSchema.model_validate(booking),
    )


@router.post("/webhooks/stripe", response_model=WebhookAck, summary="Stripe Webhook")  # type: ignore[misc]
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(deps.get_db),
    processor: PaymentProcessor = Depends(deps.get_payment_processor),
    stripe_signature: str = Header("", alias="Stripe-Signature"),
) -> Any:
    if not stripe_signature:
        raise ValidationError("Missing Stripe-Signature header")
    payload = await request.body()
    handled = await PaymentBridge(db, processor).handle_webhook(payload, stripe_signature)
    return WebhookAck(received=True, handled=handled)
