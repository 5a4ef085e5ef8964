from decimal import Decimal
from typing import Literal

from pydantic import Field

from .base import CamelModel


class OrganizerStats(CamelModel):
    total_events: int
    total_revenue: Decimal
    total_attendees: int
    avg_rating: Literal["N/A"] = Field(
        "N/A", description="Fixed value; attendee ratings are not collected."
    )


class AdminStats(CamelModel):
    total_events: int
    total_users: int
    total_bookings: int
    total_revenue: Decimal
