from datetime import timedelta

import pytest

from tix import tasks
from tix.celery_app import celery_app
from tix.models.booking import BookingStatus
from tix.schemas.booking import BookingCreate
from tix.services.booking_ledger import BookingLedger
from tix.utils.dates import utcnow

pytestmark = pytest.mark.asyncio


async def test_sweep_releases_lapsed_holds(
    db, session_maker, monkeypatch, organizer, attendee, make_event
):
    monkeypatch.setattr(tasks, "async_session_maker", session_maker)
    event, (tier,) = await make_event(organizer, tiers=[("General", "10.00", 4)])
    ledger = BookingLedger(db, hold_ttl=timedelta(minutes=15))
    lapsed = await ledger.reserve(
        attendee.id, BookingCreate(event_id=event.id, ticket_type_id=tier.id, quantity=3)
    )
    fresh = await ledger.reserve(
        attendee.id, BookingCreate(event_id=event.id, ticket_type_id=tier.id, quantity=1)
    )
    lapsed.hold_expires_at = utcnow() - timedelta(minutes=1)
    await db.commit()

    assert await tasks.sweep_expired_holds() == 1

    await db.refresh(lapsed)
    await db.refresh(fresh)
    await db.refresh(tier)
    assert lapsed.status == BookingStatus.CANCELLED
    assert fresh.status == BookingStatus.PENDING
    assert (tier.sold, tier.reserved) == (0, 1)


async def test_sweep_is_scheduled():
    schedule = celery_app.conf.beat_schedule["release-expired-holds"]

    assert schedule["task"] == "tix.tasks.release_expired_holds"
    assert "tix.tasks.release_expired_holds" in celery_app.tasks
