"""
Booking ledger.

Owns the booking lifecycle and the ticket counters it drives::

    pending --confirm--> confirmed --refund--> refunded
    pending --cancel/expire--> cancelled

Capacity is held at reserve time (``reserved``) and converted to ``sold`` on
confirmation. Every counter move is a guarded UPDATE committed in the same
transaction as the booking status change, and every status change is a
compare-and-set on the current status, so concurrent callers cannot
double-count a booking.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tix.core.db_utils import db_transaction
from tix.core.errors import (
    BookingNotFound,
    Forbidden,
    InsufficientInventory,
    InvalidBookingState,
    NotConfirmed,
    TicketTypeNotFound,
    ValidationError,
)
from tix.core.settings import get_settings
from tix.crud import booking as booking_crud
from tix.crud import event as event_crud
from tix.crud import ticket_type as ticket_type_crud
from tix.crud import user as user_crud
from tix.middleware.monitoring import business_metrics
from tix.models.booking import Booking, BookingStatus
from tix.models.event import EventStatus
from tix.models.user import User
from tix.schemas.booking import BookingCreate
from tix.services.event_service import invalidate_events_list_cache
from tix.utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)
settings = get_settings()

TicketRenderer = Callable[[Booking], bytes]


@dataclass
class TicketArtifact:
    filename: str
    content: bytes
    media_type: str = "application/pdf"


def default_hold_ttl() -> Optional[timedelta]:
    minutes = settings.booking.BOOKING_HOLD_TTL_MINUTES
    return timedelta(minutes=minutes) if minutes > 0 else None


class BookingLedger:
    def __init__(self, db: AsyncSession, hold_ttl: Optional[timedelta] = None) -> None:
        self.db = db
        self.hold_ttl = hold_ttl if hold_ttl is not None else default_hold_ttl()

    async def reserve(self, user_id: str, booking_in: BookingCreate) -> Booking:
        """Hold capacity for a new pending booking at the tier's current price."""
        ticket_type = await ticket_type_crud.get_ticket_type(
            self.db, booking_in.ticket_type_id
        )
        if (
            ticket_type is None
            or ticket_type.event_id != booking_in.event_id
            or not ticket_type.is_active
        ):
            raise TicketTypeNotFound()

        event = await event_crud.get_event(self.db, booking_in.event_id)
        if event is None or event.status != EventStatus.PUBLISHED:
            raise ValidationError("Event is not open for booking")

        now = utcnow()
        if ticket_type.sale_start_date and now < as_utc(ticket_type.sale_start_date):
            raise ValidationError("Ticket sales have not started yet")
        if ticket_type.sale_end_date and now > as_utc(ticket_type.sale_end_date):
            raise ValidationError("Ticket sales have ended")

        unit_price = ticket_type.price
        available = ticket_type.available
        hold_expires_at = now + self.hold_ttl if self.hold_ttl else None

        async with db_transaction(self.db):
            # First write of the transaction: the capacity guard
            claimed = await ticket_type_crud.claim_hold(
                self.db, ticket_type.id, booking_in.quantity
            )
            if not claimed:
                business_metrics.record_booking("rejected")
                raise InsufficientInventory(
                    f"Only {available} tickets available for {ticket_type.name}"
                    if available < booking_in.quantity
                    else "Not enough tickets available"
                )
            booking = await booking_crud.create_booking(
                self.db,
                user_id=user_id,
                event_id=booking_in.event_id,
                ticket_type_id=ticket_type.id,
                quantity=booking_in.quantity,
                unit_price=unit_price,
                attendee_email=booking_in.attendee_email,
                attendee_name=booking_in.attendee_name,
                hold_expires_at=hold_expires_at,
            )

        await self.db.refresh(booking)
        business_metrics.record_booking("reserved")
        logger.info(
            "Reserved %s x %s for user %s as booking %s",
            booking.quantity,
            ticket_type.id,
            user_id,
            booking.booking_reference,
        )
        return booking

    async def attach_payment_intent(self, booking_id: str, intent_ref: str) -> Booking:
        booking = await booking_crud.get_booking(self.db, booking_id)
        if booking is None:
            raise BookingNotFound()
        if booking.payment_intent_id == intent_ref:
            return booking
        if booking.status != BookingStatus.PENDING:
            raise InvalidBookingState("Payment can only be attached to a pending booking")

        async with db_transaction(self.db):
            attached = await booking_crud.set_payment_intent(self.db, booking_id, intent_ref)
            if not attached:
                raise InvalidBookingState(
                    "Payment can only be attached to a pending booking"
                )
        await self.db.refresh(booking)
        return booking

    async def confirm_payment(self, intent_ref: str) -> Booking:
        """Confirm the booking paid by ``intent_ref``. Safe to call repeatedly."""
        booking = await booking_crud.get_by_payment_intent(self.db, intent_ref)
        if booking is None:
            raise BookingNotFound("No booking found for this payment")

        # A lost compare-and-set means another caller moved the booking first;
        # re-read and settle on whatever state it left.
        for _ in range(3):
            if booking.status == BookingStatus.CONFIRMED:
                return booking
            if booking.status == BookingStatus.REFUNDED:
                raise InvalidBookingState("Booking has been refunded")

            if booking.status == BookingStatus.PENDING:
                won = await self._confirm_held(booking)
            else:
                won = await self._confirm_released(booking, intent_ref)

            await self.db.refresh(booking)
            if won:
                await invalidate_events_list_cache()
                business_metrics.record_booking("confirmed")
                logger.info("Confirmed booking %s", booking.booking_reference)
                return booking

        raise InvalidBookingState("Booking changed state during confirmation")

    async def _confirm_held(self, booking: Booking) -> bool:
        async with db_transaction(self.db):
            won = await booking_crud.transition_status(
                self.db,
                booking.id,
                BookingStatus.PENDING,
                BookingStatus.CONFIRMED,
                confirmed_at=utcnow(),
                hold_expires_at=None,
            )
            if won:
                converted = await ticket_type_crud.convert_hold(
                    self.db, booking.ticket_type_id, booking.quantity
                )
                if not converted:
                    raise RuntimeError(
                        f"Hold for booking {booking.id} missing from ticket type "
                        f"{booking.ticket_type_id}"
                    )
        return won

    async def _confirm_released(self, booking: Booking, intent_ref: str) -> bool:
        """Payment arrived after the hold expired: buy the units back if still free."""
        async with db_transaction(self.db):
            won = await booking_crud.transition_status(
                self.db,
                booking.id,
                BookingStatus.CANCELLED,
                BookingStatus.CONFIRMED,
                confirmed_at=utcnow(),
                hold_expires_at=None,
            )
            if won:
                reclaimed = await ticket_type_crud.claim_sold(
                    self.db, booking.ticket_type_id, booking.quantity
                )
                if not reclaimed:
                    logger.error(
                        "Payment %s succeeded for expired booking %s but capacity "
                        "is gone",
                        intent_ref,
                        booking.booking_reference,
                    )
                    raise InsufficientInventory(
                        "Tickets were released before payment completed"
                    )
        return won

    async def cancel(self, booking_id: str, requester: User) -> Booking:
        booking = await booking_crud.get_booking(self.db, booking_id)
        if booking is None:
            raise BookingNotFound()
        if booking.user_id != requester.id and not user_crud.is_admin(requester):
            raise Forbidden("You can only cancel your own bookings")

        for _ in range(3):
            if booking.status == BookingStatus.CANCELLED:
                return booking
            if booking.status != BookingStatus.PENDING:
                raise InvalidBookingState(
                    f"Cannot cancel a {booking.status.value} booking"
                )
            won = await self._release(booking)
            await self.db.refresh(booking)
            if won:
                business_metrics.record_booking("cancelled")
                logger.info("Cancelled booking %s", booking.booking_reference)
                return booking

        raise InvalidBookingState("Booking changed state during cancellation")

    async def _release(self, booking: Booking) -> bool:
        async with db_transaction(self.db):
            won = await booking_crud.transition_status(
                self.db,
                booking.id,
                BookingStatus.PENDING,
                BookingStatus.CANCELLED,
                hold_expires_at=None,
            )
            if won:
                await ticket_type_crud.release_hold(
                    self.db, booking.ticket_type_id, booking.quantity
                )
        return won

    async def get_refundable(self, booking_id: str, requester: User) -> Booking:
        """Load a booking the requester may refund; already-refunded ones pass through."""
        booking = await booking_crud.get_booking_with_details(self.db, booking_id)
        if booking is None:
            raise BookingNotFound()
        if booking.event.organizer_id != requester.id and not user_crud.is_admin(
            requester
        ):
            raise Forbidden("Only the event organizer can refund bookings")
        if booking.status not in (BookingStatus.CONFIRMED, BookingStatus.REFUNDED):
            raise InvalidBookingState(
                f"Cannot refund a {booking.status.value} booking"
            )
        return booking

    async def refund(self, booking_id: str, requester: User) -> Booking:
        booking = await self.get_refundable(booking_id, requester)
        if booking.status == BookingStatus.REFUNDED:
            return booking

        async with db_transaction(self.db):
            won = await booking_crud.transition_status(
                self.db, booking.id, BookingStatus.CONFIRMED, BookingStatus.REFUNDED
            )
            if won:
                await ticket_type_crud.release_sold(
                    self.db, booking.ticket_type_id, booking.quantity
                )
        await self.db.refresh(booking)
        if not won and booking.status != BookingStatus.REFUNDED:
            raise InvalidBookingState(
                f"Cannot refund a {booking.status.value} booking"
            )
        if won:
            await invalidate_events_list_cache()
            business_metrics.record_booking("refunded")
            logger.info("Refunded booking %s", booking.booking_reference)
        return booking

    async def release_expired_holds(self, now: Optional[datetime] = None) -> int:
        """Cancel pending bookings whose hold has lapsed. Returns how many were released."""
        now = now or utcnow()
        expired = await booking_crud.get_expired_holds(
            self.db, now, limit=settings.booking.BOOKING_HOLD_SWEEP_BATCH
        )
        released = 0
        for booking in expired:
            if await self._release(booking):
                released += 1
                logger.info("Released expired hold for booking %s", booking.booking_reference)
        if released:
            business_metrics.record_booking("expired", released)
        return released

    async def get_for_purchaser(self, user_id: str) -> List[Booking]:
        return await booking_crud.get_user_bookings(self.db, user_id)

    async def get_for_owner(self, booking_id: str, requester: User) -> Booking:
        booking = await booking_crud.get_booking_with_details(self.db, booking_id)
        if booking is None:
            raise BookingNotFound()
        if booking.user_id != requester.id and not user_crud.is_admin(requester):
            raise Forbidden("You can only view your own bookings")
        return booking

    async def issue_ticket_artifact(
        self, booking_id: str, requester_id: str, renderer: TicketRenderer
    ) -> TicketArtifact:
        booking = await booking_crud.get_booking_with_details(self.db, booking_id)
        if booking is None:
            raise BookingNotFound()
        if booking.user_id != requester_id:
            raise Forbidden("You can only download your own tickets")
        if booking.status != BookingStatus.CONFIRMED:
            raise NotConfirmed()

        return TicketArtifact(
            filename=f"ticket-{booking.booking_reference}.pdf",
            content=renderer(booking),
        )
