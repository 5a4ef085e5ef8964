import logging
import secrets
import string
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from tix.core.db_utils import execute_conditional_update
from tix.models.booking import Booking, BookingStatus

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "BK"
REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
REFERENCE_LENGTH = 9
MAX_REFERENCE_ATTEMPTS = 5


def generate_booking_reference() -> str:
    return REFERENCE_PREFIX + "".join(
        secrets.choice(REFERENCE_ALPHABET) for _ in range(REFERENCE_LENGTH)
    )


async def get_booking(db: AsyncSession, booking_id: str) -> Optional[Booking]:
    result = await db.execute(select(Booking).filter(Booking.id == booking_id))
    first: Optional[Booking] = result.scalars().first()
    return first


async def get_booking_with_details(
    db: AsyncSession, booking_id: str
) -> Optional[Booking]:
    result = await db.execute(
        select(Booking)
        .options(joinedload(Booking.event), joinedload(Booking.ticket_type))
        .filter(Booking.id == booking_id)
    )
    first: Optional[Booking] = result.scalars().first()
    return first


async def get_by_payment_intent(db: AsyncSession, intent_ref: str) -> Optional[Booking]:
    result = await db.execute(
        select(Booking).filter(Booking.payment_intent_id == intent_ref)
    )
    first: Optional[Booking] = result.scalars().first()
    return first


async def _unused_reference(db: AsyncSession) -> str:
    for _ in range(MAX_REFERENCE_ATTEMPTS):
        reference = generate_booking_reference()
        result = await db.execute(
            select(Booking.id).filter(Booking.booking_reference == reference)
        )
        if result.first() is None:
            return reference
        logger.warning("Booking reference collision on %s, regenerating", reference)
    raise RuntimeError("Could not generate a unique booking reference")


async def create_booking(
    db: AsyncSession,
    *,
    user_id: str,
    event_id: str,
    ticket_type_id: str,
    quantity: int,
    unit_price: Decimal,
    attendee_email: Optional[str],
    attendee_name: Optional[str],
    hold_expires_at: Optional[datetime],
) -> Booking:
    """Insert a pending booking inside the caller's transaction."""
    db_booking = Booking(
        user_id=user_id,
        event_id=event_id,
        ticket_type_id=ticket_type_id,
        quantity=quantity,
        unit_price=unit_price,
        total_amount=unit_price * quantity,
        status=BookingStatus.PENDING,
        booking_reference=await _unused_reference(db),
        attendee_email=attendee_email,
        attendee_name=attendee_name,
        hold_expires_at=hold_expires_at,
    )
    db.add(db_booking)
    await db.flush()
    return db_booking


async def transition_status(
    db: AsyncSession,
    booking_id: str,
    expected: BookingStatus,
    new_status: BookingStatus,
    **values: Any,
) -> bool:
    """Compare-and-set the booking status. True only for the caller that won."""
    return bool(
        await execute_conditional_update(
            db,
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == expected)
            .values(status=new_status, **values),
        )
    )


async def set_payment_intent(db: AsyncSession, booking_id: str, intent_ref: str) -> bool:
    return bool(
        await execute_conditional_update(
            db,
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == BookingStatus.PENDING)
            .values(payment_intent_id=intent_ref),
        )
    )


async def get_user_bookings(db: AsyncSession, user_id: str) -> List[Booking]:
    result = await db.execute(
        select(Booking)
        .options(joinedload(Booking.event), joinedload(Booking.ticket_type))
        .filter(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc(), Booking.id.asc())
    )
    return list(result.scalars().all())


async def get_expired_holds(
    db: AsyncSession, now: datetime, limit: int = 500
) -> List[Booking]:
    result = await db.execute(
        select(Booking)
        .filter(
            Booking.status == BookingStatus.PENDING,
            Booking.hold_expires_at.is_not(None),
            Booking.hold_expires_at < now,
        )
        .order_by(Booking.hold_expires_at.asc())
        .limit(limit)
    )
    return list(result.scalars().all())
