from .booking import Booking, BookingStatus
from .event import Event, EventCategory, EventStatus
from .ticket_type import TicketType
from .user import User, UserRole

__all__ = [
    "Booking",
    "BookingStatus",
    "Event",
    "EventCategory",
    "EventStatus",
    "TicketType",
    "User",
    "UserRole",
]
