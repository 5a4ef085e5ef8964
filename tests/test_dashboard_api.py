from decimal import Decimal

import pydantic
import pytest

from conftest import auth_headers
from tix.models.event import EventStatus
from tix.schemas.booking import BookingCreate
from tix.schemas.dashboard import OrganizerStats
from tix.services.booking_ledger import BookingLedger

pytestmark = pytest.mark.asyncio


async def buy(db, user, event, tier, quantity, intent_ref=None):
    ledger = BookingLedger(db)
    booking = await ledger.reserve(
        user.id,
        BookingCreate(event_id=event.id, ticket_type_id=tier.id, quantity=quantity),
    )
    if intent_ref:
        await ledger.attach_payment_intent(booking.id, intent_ref)
        booking = await ledger.confirm_payment(intent_ref)
    return booking


async def test_organizer_stats_count_confirmed_bookings_only(
    client, db, organizer, attendee, make_event
):
    event, (tier,) = await make_event(organizer, tiers=[("General", "25.00", 20)])
    await make_event(organizer, title="Draft Night", status=EventStatus.DRAFT)
    await buy(db, attendee, event, tier, 2, intent_ref="pi_a")
    await buy(db, attendee, event, tier, 1, intent_ref="pi_b")
    await buy(db, attendee, event, tier, 4)

    resp = await client.get("/api/dashboard/stats", headers=auth_headers(organizer))

    assert resp.status_code == 200
    body = resp.json()
    assert body["totalEvents"] == 2
    assert Decimal(body["totalRevenue"]) == Decimal("75.00")
    assert body["totalAttendees"] == 3
    assert body["avgRating"] == "N/A"


async def test_avg_rating_is_a_fixed_field():
    with pytest.raises(pydantic.ValidationError):
        OrganizerStats(total_events=1, total_revenue="10.00", total_attendees=1, avg_rating="4.8")

    avg_rating = OrganizerStats.model_json_schema(by_alias=True)["properties"]["avgRating"]
    assert "ratings are not collected" in avg_rating["description"]


async def test_organizer_stats_ignore_other_organizers(
    client, db, organizer, attendee, make_user, make_event
):
    rival = await make_user("rival@tix.io")
    event, (tier,) = await make_event(rival, tiers=[("General", "10.00", 5)])
    await buy(db, attendee, event, tier, 1, intent_ref="pi_rival")

    resp = await client.get("/api/dashboard/stats", headers=auth_headers(organizer))

    body = resp.json()
    assert body["totalEvents"] == 0
    assert Decimal(body["totalRevenue"]) == 0
    assert body["totalAttendees"] == 0


async def test_organizer_events_include_drafts(client, organizer, attendee, make_event):
    draft, _ = await make_event(organizer, title="Draft Night", status=EventStatus.DRAFT)
    await make_event(attendee, title="Someone Else's Gig")

    resp = await client.get("/api/dashboard/events", headers=auth_headers(organizer))

    assert resp.status_code == 200
    assert [e["id"] for e in resp.json()] == [draft.id]


async def test_admin_stats(client, db, organizer, attendee, admin, make_event):
    event, (tier,) = await make_event(organizer, tiers=[("General", "10.00", 10)])
    await buy(db, attendee, event, tier, 3, intent_ref="pi_admin")
    await buy(db, attendee, event, tier, 1)

    resp = await client.get("/api/admin/stats", headers=auth_headers(admin))

    assert resp.status_code == 200
    body = resp.json()
    assert body["totalEvents"] == 1
    assert body["totalUsers"] == 3
    assert body["totalBookings"] == 2
    assert Decimal(body["totalRevenue"]) == Decimal("30.00")


async def test_admin_sees_every_event(client, organizer, admin, make_event):
    await make_event(organizer, title="Published Gig")
    await make_event(organizer, title="Draft Gig", status=EventStatus.DRAFT)

    resp = await client.get("/api/admin/events", headers=auth_headers(admin))

    assert resp.status_code == 200
    assert {e["title"] for e in resp.json()} == {"Published Gig", "Draft Gig"}


async def test_admin_routes_require_admin_role(client, organizer):
    stats = await client.get("/api/admin/stats", headers=auth_headers(organizer))
    events = await client.get("/api/admin/events", headers=auth_headers(organizer))
    anonymous = await client.get("/api/admin/stats")

    assert stats.status_code == 403
    assert events.status_code == 403
    assert anonymous.status_code == 401
