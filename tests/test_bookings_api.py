from decimal import Decimal

import pytest

from conftest import auth_headers
from tix.models.event import EventStatus

pytestmark = pytest.mark.asyncio


async def book(client, user, event, tier, quantity=1, **extra):
    payload = {"eventId": event.id, "ticketTypeId": tier.id, "quantity": quantity}
    payload.update(extra)
    return await client.post("/api/bookings", json=payload, headers=auth_headers(user))


async def pay(client, processor, user, booking_id):
    intent = await client.post(
        "/api/create-payment-intent",
        json={"bookingId": booking_id},
        headers=auth_headers(user),
    )
    intent_id = intent.json()["paymentIntentId"]
    processor.succeed(intent_id)
    return await client.post(
        "/api/payment-success",
        json={"paymentIntentId": intent_id},
        headers=auth_headers(user),
    )


async def test_create_booking(client, db, organizer, attendee, make_event):
    event, (tier,) = await make_event(organizer, tiers=[("General", "12.50", 10)])

    resp = await book(
        client, attendee, event, tier, 2, attendeeEmail="arthur@tix.io", attendeeName="Arthur"
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "pending"
    assert body["userId"] == attendee.id
    assert Decimal(body["totalAmount"]) == Decimal("25.00")
    assert body["bookingReference"].startswith("BK")
    await db.refresh(tier)
    assert tier.reserved == 2


async def test_booking_requires_authentication(client, organizer, make_event):
    event, (tier,) = await make_event(organizer)

    resp = await client.post(
        "/api/bookings",
        json={"eventId": event.id, "ticketTypeId": tier.id, "quantity": 1},
    )

    assert resp.status_code == 401


async def test_booking_validation(client, organizer, attendee, make_event):
    event, (tier,) = await make_event(organizer)

    zero = await book(client, attendee, event, tier, 0)
    bad_email = await book(client, attendee, event, tier, 1, attendeeEmail="not-an-email")

    assert zero.status_code == 400
    assert bad_email.status_code == 400


async def test_sold_out_is_conflict(client, organizer, attendee, make_event):
    event, (tier,) = await make_event(organizer, tiers=[("Tiny", "5.00", 1)])

    first = await book(client, attendee, event, tier)
    second = await book(client, attendee, event, tier)

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["code"] == "insufficient_inventory"


async def test_unknown_ticket_type(client, organizer, attendee, make_event):
    event, _ = await make_event(organizer)

    resp = await client.post(
        "/api/bookings",
        json={"eventId": event.id, "ticketTypeId": "nope", "quantity": 1},
        headers=auth_headers(attendee),
    )

    assert resp.status_code == 404
    assert resp.json()["code"] == "ticket_type_not_found"


async def test_draft_event_cannot_be_booked(client, organizer, attendee, make_event):
    event, (tier,) = await make_event(organizer, status=EventStatus.DRAFT)

    resp = await book(client, attendee, event, tier)

    assert resp.status_code == 400


async def test_my_bookings_include_summaries(client, organizer, attendee, make_event):
    event, (tier,) = await make_event(organizer, title="Summer Fest")
    await book(client, attendee, event, tier)

    resp = await client.get("/api/bookings", headers=auth_headers(attendee))

    assert resp.status_code == 200
    (item,) = resp.json()
    assert item["event"]["title"] == "Summer Fest"
    assert item["ticketType"]["name"] == "General"
    assert item["status"] == "pending"


async def test_booking_detail_is_owner_only(client, organizer, attendee, make_user, make_event):
    stranger = await make_user("stranger@tix.io")
    event, (tier,) = await make_event(organizer)
    booking_id = (await book(client, attendee, event, tier)).json()["id"]

    own = await client.get(f"/api/bookings/{booking_id}", headers=auth_headers(attendee))
    other = await client.get(f"/api/bookings/{booking_id}", headers=auth_headers(stranger))
    missing = await client.get("/api/bookings/missing", headers=auth_headers(attendee))

    assert own.status_code == 200
    assert own.json()["event"]["id"] == event.id
    assert other.status_code == 403
    assert missing.status_code == 404
    assert missing.json()["code"] == "booking_not_found"


async def test_pending_ticket_download_is_rejected(client, organizer, attendee, make_event):
    event, (tier,) = await make_event(organizer)
    booking_id = (await book(client, attendee, event, tier)).json()["id"]

    resp = await client.get(
        f"/api/bookings/{booking_id}/ticket", headers=auth_headers(attendee)
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "booking_not_confirmed"
    assert resp.headers["content-type"].startswith("application/json")


async def test_confirmed_ticket_download(client, processor, organizer, attendee, make_event):
    event, (tier,) = await make_event(organizer)
    booking = (await book(client, attendee, event, tier)).json()
    await pay(client, processor, attendee, booking["id"])

    resp = await client.get(
        f"/api/bookings/{booking['id']}/ticket", headers=auth_headers(attendee)
    )

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert (
        resp.headers["content-disposition"]
        == f'attachment; filename="ticket-{booking["bookingReference"]}.pdf"'
    )
    assert resp.content.startswith(b"%PDF")


async def test_ticket_download_by_someone_else(
    client, processor, organizer, attendee, make_event
):
    event, (tier,) = await make_event(organizer)
    booking_id = (await book(client, attendee, event, tier)).json()["id"]
    await pay(client, processor, attendee, booking_id)

    resp = await client.get(
        f"/api/bookings/{booking_id}/ticket", headers=auth_headers(organizer)
    )

    assert resp.status_code == 403


async def test_cancel_booking_releases_hold(client, db, organizer, attendee, make_event):
    event, (tier,) = await make_event(organizer, tiers=[("General", "10.00", 3)])
    booking_id = (await book(client, attendee, event, tier, 3)).json()["id"]

    resp = await client.post(
        f"/api/bookings/{booking_id}/cancel", headers=auth_headers(attendee)
    )

    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"
    await db.refresh(tier)
    assert tier.reserved == 0
    assert (await book(client, attendee, event, tier, 3)).status_code == 201


async def test_refund_by_organizer(client, db, processor, organizer, attendee, make_event):
    event, (tier,) = await make_event(organizer)
    booking_id = (await book(client, attendee, event, tier, 2)).json()["id"]
    await pay(client, processor, attendee, booking_id)

    by_attendee = await client.post(
        f"/api/bookings/{booking_id}/refund", headers=auth_headers(attendee)
    )
    by_organizer = await client.post(
        f"/api/bookings/{booking_id}/refund", headers=auth_headers(organizer)
    )

    assert by_attendee.status_code == 403
    assert by_organizer.status_code == 200
    assert by_organizer.json()["status"] == "refunded"
    assert processor.refunds == [by_organizer.json()["paymentIntentId"]]
    await db.refresh(tier)
    assert tier.sold == 0
