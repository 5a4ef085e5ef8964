from decimal import Decimal
from typing import Any, Dict

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tix.models.booking import Booking, BookingStatus
from tix.models.event import Event

from . import event as event_crud
from . import user as user_crud

# Reporting queries. Revenue and attendee figures count confirmed bookings only.


async def get_organizer_stats(db: AsyncSession, organizer_id: str) -> Dict[str, Any]:
    totals = await db.execute(
        select(
            func.coalesce(func.sum(Booking.total_amount), 0),
            func.coalesce(func.sum(Booking.quantity), 0),
        )
        .join(Event, Booking.event_id == Event.id)
        .filter(
            Event.organizer_id == organizer_id,
            Booking.status == BookingStatus.CONFIRMED,
        )
    )
    revenue, attendees = totals.one()
    return {
        "total_events": await event_crud.count_events(db, organizer_id=organizer_id),
        "total_revenue": Decimal(str(revenue)),
        "total_attendees": int(attendees),
    }


async def get_admin_stats(db: AsyncSession) -> Dict[str, Any]:
    bookings = await db.execute(select(func.count(Booking.id)))
    revenue = await db.execute(
        select(func.coalesce(func.sum(Booking.total_amount), 0)).filter(
            Booking.status == BookingStatus.CONFIRMED
        )
    )
    return {
        "total_events": await event_crud.count_events(db),
        "total_users": await user_crud.count_users(db),
        "total_bookings": int(bookings.scalar_one()),
        "total_revenue": Decimal(str(revenue.scalar_one())),
    }
