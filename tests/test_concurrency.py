"""Concurrent callers racing for the same ticket units, each with its own
session as separate API requests would have."""

import asyncio

import pytest

from tix.core.errors import InsufficientInventory
from tix.models.booking import BookingStatus
from tix.models.ticket_type import TicketType
from tix.schemas.booking import BookingCreate
from tix.services.booking_ledger import BookingLedger

pytestmark = pytest.mark.asyncio


async def reserve_in_own_session(session_maker, user_id, event_id, ticket_type_id):
    async with session_maker() as session:
        try:
            booking = await BookingLedger(session).reserve(
                user_id,
                BookingCreate(event_id=event_id, ticket_type_id=ticket_type_id, quantity=1),
            )
        except InsufficientInventory:
            return None
        return booking.id


async def confirm_in_own_session(session_maker, intent_ref):
    async with session_maker() as session:
        booking = await BookingLedger(session).confirm_payment(intent_ref)
        return booking.status


async def load_tier(session_maker, ticket_type_id):
    async with session_maker() as session:
        return await session.get(TicketType, ticket_type_id)


async def test_last_ticket_goes_to_exactly_one_buyer(
    session_maker, organizer, attendee, make_user, make_event
):
    rival = await make_user("rival@tix.io")
    event, (tier,) = await make_event(organizer, tiers=[("Last Seat", "50.00", 1)])

    results = await asyncio.gather(
        reserve_in_own_session(session_maker, attendee.id, event.id, tier.id),
        reserve_in_own_session(session_maker, rival.id, event.id, tier.id),
    )

    assert len([r for r in results if r is not None]) == 1
    fresh = await load_tier(session_maker, tier.id)
    assert fresh.reserved == 1
    assert fresh.sold == 0


async def test_many_buyers_never_oversell(session_maker, organizer, make_user, make_event):
    buyers = [await make_user(f"buyer{i}@tix.io") for i in range(6)]
    event, (tier,) = await make_event(organizer, tiers=[("General", "10.00", 4)])

    results = await asyncio.gather(
        *(
            reserve_in_own_session(session_maker, buyer.id, event.id, tier.id)
            for buyer in buyers
        )
    )

    assert len([r for r in results if r is not None]) == 4
    fresh = await load_tier(session_maker, tier.id)
    assert fresh.sold + fresh.reserved == 4
    assert fresh.sold + fresh.reserved <= fresh.quantity


async def test_concurrent_confirmations_count_once(
    db, session_maker, organizer, attendee, make_event
):
    event, (tier,) = await make_event(organizer, tiers=[("General", "10.00", 5)])
    ledger = BookingLedger(db)
    booking = await ledger.reserve(
        attendee.id, BookingCreate(event_id=event.id, ticket_type_id=tier.id, quantity=2)
    )
    await ledger.attach_payment_intent(booking.id, "pi_race")

    statuses = await asyncio.gather(
        confirm_in_own_session(session_maker, "pi_race"),
        confirm_in_own_session(session_maker, "pi_race"),
    )

    assert statuses == [BookingStatus.CONFIRMED, BookingStatus.CONFIRMED]
    fresh = await load_tier(session_maker, tier.id)
    assert (fresh.sold, fresh.reserved) == (2, 0)
