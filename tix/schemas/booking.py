from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from tix.models.booking import BookingStatus

from .base import CamelModel


class BookingCreate(CamelModel):
    event_id: str = Field(..., min_length=1)
    ticket_type_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1, le=100)
    attendee_email: Optional[EmailStr] = None
    attendee_name: Optional[str] = Field(None, max_length=255)

    @field_validator("attendee_name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None


class Booking(CamelModel):
    id: str
    event_id: str
    ticket_type_id: str
    user_id: str
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    status: BookingStatus
    payment_intent_id: Optional[str] = None
    booking_reference: str
    attendee_email: Optional[str] = None
    attendee_name: Optional[str] = None
    hold_expires_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class BookingEventSummary(CamelModel):
    id: str
    title: str
    start_date: datetime
    end_date: Optional[datetime] = None
    location: Optional[str] = None
    venue: Optional[str] = None
    image_url: Optional[str] = None
    is_virtual: bool = False


class BookingTicketSummary(CamelModel):
    id: str
    name: str
    price: Decimal


class BookingSummary(CamelModel):
    """A purchaser's booking joined with its event and ticket tier."""

    id: str
    event_id: str
    event: BookingEventSummary
    ticket_type: BookingTicketSummary
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    booking_reference: str
    status: BookingStatus
    attendee_email: Optional[str] = None
    attendee_name: Optional[str] = None
    created_at: Optional[datetime] = None


class BookingDetail(Booking):
    event: BookingEventSummary
    ticket_type: BookingTicketSummary
