from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import auth_headers
from tix.models.event import EventCategory, EventStatus
from tix.utils.dates import utcnow

pytestmark = pytest.mark.asyncio


def event_payload(**overrides):
    start = utcnow() + timedelta(days=10)
    payload = {
        "title": "PyCon Meetup",
        "description": "Talks and pizza.",
        "category": "tech",
        "location": "Berlin",
        "venue": "c-base",
        "isVirtual": False,
        "startDate": start.isoformat(),
        "endDate": (start + timedelta(hours=2)).isoformat(),
    }
    payload.update(overrides)
    return payload


async def test_create_event_starts_as_draft(client, organizer):
    resp = await client.post(
        "/api/events", json=event_payload(), headers=auth_headers(organizer)
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "draft"
    assert body["organizerId"] == organizer.id
    assert body["location"] == "Berlin"


async def test_create_event_requires_authentication(client):
    resp = await client.post("/api/events", json=event_payload())

    assert resp.status_code == 401


async def test_in_person_event_without_location_is_rejected(client, organizer):
    resp = await client.post(
        "/api/events",
        json=event_payload(location="", venue=None),
        headers=auth_headers(organizer),
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "validation_error"


async def test_virtual_event_requires_link_and_drops_location(client, organizer):
    missing_link = await client.post(
        "/api/events",
        json=event_payload(isVirtual=True),
        headers=auth_headers(organizer),
    )
    assert missing_link.status_code == 400

    resp = await client.post(
        "/api/events",
        json=event_payload(isVirtual=True, virtualLink="https://meet.tix.io/abc"),
        headers=auth_headers(organizer),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["virtualLink"] == "https://meet.tix.io/abc"
    assert body["location"] is None
    assert body["venue"] is None


async def test_event_must_start_before_it_ends(client, organizer):
    start = utcnow() + timedelta(days=5)
    resp = await client.post(
        "/api/events",
        json=event_payload(
            startDate=start.isoformat(), endDate=(start - timedelta(hours=1)).isoformat()
        ),
        headers=auth_headers(organizer),
    )

    assert resp.status_code == 400


async def test_event_cannot_start_in_the_past(client, organizer):
    start = utcnow() - timedelta(days=1)
    resp = await client.post(
        "/api/events",
        json=event_payload(
            startDate=start.isoformat(), endDate=(start + timedelta(hours=2)).isoformat()
        ),
        headers=auth_headers(organizer),
    )

    assert resp.status_code == 400


async def test_discovery_lists_only_published_events(client, organizer, make_event):
    published, _ = await make_event(organizer, title="Published Gig")
    await make_event(organizer, title="Draft Gig", status=EventStatus.DRAFT)
    await make_event(organizer, title="Cancelled Gig", status=EventStatus.CANCELLED)

    resp = await client.get("/api/events")

    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 1
    assert [e["id"] for e in body["events"]] == [published.id]


async def test_discovery_items_carry_prices_and_attendee_count(
    client, db, organizer, make_event
):
    event, (general, vip) = await make_event(
        organizer, tiers=[("General", "20.00", 50), ("VIP", "80.00", 5)]
    )
    general.sold = 3
    vip.sold = 2
    await db.commit()

    resp = await client.get("/api/events")

    item = resp.json()["events"][0]
    assert item["attendeeCount"] == 5
    assert sorted(Decimal(t["price"]) for t in item["ticketTypes"]) == [
        Decimal("20.00"),
        Decimal("80.00"),
    ]


async def test_discovery_filters(client, organizer, make_event):
    await make_event(organizer, title="Jazz in the Park", category=EventCategory.MUSIC)
    await make_event(
        organizer,
        title="Startup Pitch Night",
        category=EventCategory.BUSINESS,
        location="Lisbon",
    )

    by_category = await client.get("/api/events", params={"category": "business"})
    assert [e["title"] for e in by_category.json()["events"]] == ["Startup Pitch Night"]

    all_categories = await client.get("/api/events", params={"category": "all"})
    assert all_categories.json()["total"] == 2

    by_search = await client.get("/api/events", params={"search": "jazz"})
    assert [e["title"] for e in by_search.json()["events"]] == ["Jazz in the Park"]

    by_location = await client.get("/api/events", params={"location": "lisbon"})
    assert by_location.json()["total"] == 1

    unknown = await client.get("/api/events", params={"category": "knitting"})
    assert unknown.status_code == 400


async def test_discovery_pagination(client, organizer, make_event):
    for day in range(5):
        await make_event(organizer, starts_in=timedelta(days=10 + day))

    page_one = await client.get("/api/events", params={"page": 1, "limit": 2})
    page_three = await client.get("/api/events", params={"page": 3, "limit": 2})

    assert page_one.json()["total"] == 5
    assert len(page_one.json()["events"]) == 2
    assert page_one.json()["pageSize"] == 2
    assert len(page_three.json()["events"]) == 1


async def test_draft_visible_only_to_organizer(client, organizer, attendee, make_event):
    draft, _ = await make_event(organizer, status=EventStatus.DRAFT)

    anonymous = await client.get(f"/api/events/{draft.id}")
    stranger = await client.get(f"/api/events/{draft.id}", headers=auth_headers(attendee))
    owner = await client.get(f"/api/events/{draft.id}", headers=auth_headers(organizer))

    assert anonymous.status_code == 404
    assert stranger.status_code == 404
    assert owner.status_code == 200
    assert anonymous.json()["code"] == "event_not_found"


async def test_publish_is_idempotent(client, organizer, make_event):
    draft, _ = await make_event(organizer, status=EventStatus.DRAFT)
    headers = auth_headers(organizer)

    first = await client.patch(f"/api/events/{draft.id}/publish", headers=headers)
    second = await client.patch(f"/api/events/{draft.id}/publish", headers=headers)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["status"] == "published"

    listed = await client.get("/api/events")
    assert listed.json()["total"] == 1


async def test_non_owner_cannot_publish(client, db, organizer, attendee, make_event):
    draft, _ = await make_event(organizer, status=EventStatus.DRAFT)

    resp = await client.patch(
        f"/api/events/{draft.id}/publish", headers=auth_headers(attendee)
    )

    assert resp.status_code == 403
    await db.refresh(draft)
    assert draft.status == EventStatus.DRAFT


async def test_unpublish_and_cancel(client, organizer, make_event):
    event, _ = await make_event(organizer)
    headers = auth_headers(organizer)

    unpublished = await client.patch(f"/api/events/{event.id}/unpublish", headers=headers)
    assert unpublished.json()["status"] == "draft"

    cancelled = await client.patch(f"/api/events/{event.id}/cancel", headers=headers)
    assert cancelled.json()["status"] == "cancelled"

    republish = await client.patch(f"/api/events/{event.id}/publish", headers=headers)
    assert republish.status_code == 400


async def test_update_event_rechecks_location_rules(client, organizer, make_event):
    event, _ = await make_event(organizer)
    headers = auth_headers(organizer)

    to_virtual_without_link = await client.put(
        f"/api/events/{event.id}", json={"isVirtual": True}, headers=headers
    )
    assert to_virtual_without_link.status_code == 400

    to_virtual = await client.put(
        f"/api/events/{event.id}",
        json={"isVirtual": True, "virtualLink": "https://meet.tix.io/x"},
        headers=headers,
    )
    assert to_virtual.status_code == 200
    assert to_virtual.json()["location"] is None

    renamed = await client.put(
        f"/api/events/{event.id}", json={"title": "Late Jazz Night"}, headers=headers
    )
    assert renamed.json()["title"] == "Late Jazz Night"
    assert renamed.json()["isVirtual"] is True


async def test_update_event_by_non_owner_is_forbidden(client, organizer, attendee, make_event):
    event, _ = await make_event(organizer)

    resp = await client.put(
        f"/api/events/{event.id}", json={"title": "Hijacked"}, headers=auth_headers(attendee)
    )

    assert resp.status_code == 403


@pytest.mark.parametrize(
    "field",
    ["title", "description", "category", "isVirtual", "startDate", "endDate", "timezone"],
)
async def test_update_event_cannot_null_required_fields(client, db, organizer, make_event, field):
    event, _ = await make_event(organizer)

    resp = await client.put(
        f"/api/events/{event.id}", json={field: None}, headers=auth_headers(organizer)
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "validation_error"
    await db.refresh(event)
    assert event.title == "Jazz Night"
    assert event.is_virtual is False


async def test_update_event_can_clear_optional_fields(client, organizer, make_event):
    event, _ = await make_event(organizer, short_description="Bring friends")

    resp = await client.put(
        f"/api/events/{event.id}",
        json={"shortDescription": None, "maxAttendees": None},
        headers=auth_headers(organizer),
    )

    assert resp.status_code == 200
    assert resp.json()["shortDescription"] is None


async def test_ticket_tier_management(client, organizer, make_event):
    event, _ = await make_event(organizer, tiers=[])
    headers = auth_headers(organizer)

    created = await client.post(
        f"/api/events/{event.id}/tickets",
        json={"name": "Early Bird", "price": "15.50", "quantity": 100},
        headers=headers,
    )
    assert created.status_code == 201
    ticket = created.json()
    assert Decimal(ticket["price"]) == Decimal("15.50")
    assert ticket["sold"] == 0
    assert ticket["available"] == 100

    updated = await client.patch(
        f"/api/tickets/{ticket['id']}", json={"price": "18.00"}, headers=headers
    )
    assert Decimal(updated.json()["price"]) == Decimal("18.00")

    listed = await client.get(f"/api/events/{event.id}/tickets")
    assert [t["name"] for t in listed.json()] == ["Early Bird"]

    deleted = await client.delete(f"/api/tickets/{ticket['id']}", headers=headers)
    assert deleted.json()["deleted"] is True
    assert (await client.get(f"/api/events/{event.id}/tickets")).json() == []


async def test_ticket_tier_validation(client, organizer, make_event):
    event, _ = await make_event(organizer, tiers=[])
    headers = auth_headers(organizer)

    negative_price = await client.post(
        f"/api/events/{event.id}/tickets",
        json={"name": "Bad", "price": "-1", "quantity": 10},
        headers=headers,
    )
    zero_quantity = await client.post(
        f"/api/events/{event.id}/tickets",
        json={"name": "Bad", "price": "1", "quantity": 0},
        headers=headers,
    )
    blank_name = await client.post(
        f"/api/events/{event.id}/tickets",
        json={"name": "  ", "price": "1", "quantity": 1},
        headers=headers,
    )

    assert negative_price.status_code == 400
    assert zero_quantity.status_code == 400
    assert blank_name.status_code == 400


async def test_draft_ticket_tiers_visible_only_to_organizer(
    client, organizer, attendee, make_event
):
    draft, _ = await make_event(organizer, status=EventStatus.DRAFT)

    anonymous = await client.get(f"/api/events/{draft.id}/tickets")
    stranger = await client.get(
        f"/api/events/{draft.id}/tickets", headers=auth_headers(attendee)
    )
    owner = await client.get(f"/api/events/{draft.id}/tickets", headers=auth_headers(organizer))

    assert anonymous.status_code == 404
    assert stranger.status_code == 404
    assert owner.status_code == 200
    assert [t["name"] for t in owner.json()] == ["General"]


@pytest.mark.parametrize("field", ["name", "price", "quantity", "isActive"])
async def test_ticket_update_cannot_null_required_fields(client, db, organizer, make_event, field):
    _, (tier,) = await make_event(organizer, tiers=[("General", "10.00", 10)])

    resp = await client.patch(
        f"/api/tickets/{tier.id}", json={field: None}, headers=auth_headers(organizer)
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "validation_error"
    await db.refresh(tier)
    assert (tier.name, tier.price, tier.quantity, tier.is_active) == (
        "General",
        Decimal("10.00"),
        10,
        True,
    )


async def test_ticket_quantity_cannot_drop_below_committed(client, db, organizer, make_event):
    _, (tier,) = await make_event(organizer, tiers=[("General", "10.00", 10)])
    tier.sold = 4
    tier.reserved = 2
    await db.commit()

    too_low = await client.patch(
        f"/api/tickets/{tier.id}", json={"quantity": 5}, headers=auth_headers(organizer)
    )
    exact = await client.patch(
        f"/api/tickets/{tier.id}", json={"quantity": 6}, headers=auth_headers(organizer)
    )

    assert too_low.status_code == 400
    assert exact.status_code == 200
    assert exact.json()["available"] == 0


async def test_non_owner_cannot_edit_tickets(client, organizer, attendee, make_event):
    event, (tier,) = await make_event(organizer)

    add = await client.post(
        f"/api/events/{event.id}/tickets",
        json={"name": "Sneaky", "price": "0", "quantity": 1},
        headers=auth_headers(attendee),
    )
    edit = await client.patch(
        f"/api/tickets/{tier.id}", json={"price": "0"}, headers=auth_headers(attendee)
    )

    assert add.status_code == 403
    assert edit.status_code == 403


async def test_categories(client):
    resp = await client.get("/api/categories")

    assert resp.status_code == 200
    assert {c["id"] for c in resp.json()} == {c.value for c in EventCategory}
