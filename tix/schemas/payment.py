from pydantic import Field

from .base import CamelModel
from .booking import Booking


class PaymentIntentCreate(CamelModel):
    booking_id: str = Field(..., min_length=1)


class PaymentIntentResponse(CamelModel):
    client_secret: str
    payment_intent_id: str


class PaymentSuccessRequest(CamelModel):
    payment_intent_id: str = Field(..., min_length=1)


class PaymentSuccessResponse(CamelModel):
    message: str
    booking: Booking


class WebhookAck(CamelModel):
    received: bool = True
    handled: bool = False
