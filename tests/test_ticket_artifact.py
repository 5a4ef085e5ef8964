import json

import pytest

from tix.crud import booking as booking_crud
from tix.schemas.booking import BookingCreate
from tix.services.booking_ledger import BookingLedger
from tix.services.ticket_artifact import render_qr_png, render_ticket_pdf, verification_payload

pytestmark = pytest.mark.asyncio


@pytest.fixture
def confirmed_booking(db, organizer, attendee, make_event):
    async def _confirmed(**event_fields):
        event, (tier,) = await make_event(organizer, **event_fields)
        ledger = BookingLedger(db)
        booking = await ledger.reserve(
            attendee.id,
            BookingCreate(
                event_id=event.id,
                ticket_type_id=tier.id,
                quantity=2,
                attendee_name="Arthur Dent",
            ),
        )
        await ledger.attach_payment_intent(booking.id, f"pi_{booking.id}")
        await ledger.confirm_payment(f"pi_{booking.id}")
        return await booking_crud.get_booking_with_details(db, booking.id)

    return _confirmed


async def test_verification_payload_identifies_booking(confirmed_booking):
    booking = await confirmed_booking()

    payload = json.loads(verification_payload(booking))

    assert payload == {
        "bookingId": booking.id,
        "reference": booking.booking_reference,
        "eventId": booking.event_id,
    }


async def test_qr_code_is_png():
    assert render_qr_png('{"bookingId": "abc"}').startswith(b"\x89PNG")


async def test_render_in_person_ticket(confirmed_booking):
    booking = await confirmed_booking()

    pdf = render_ticket_pdf(booking)

    assert pdf.startswith(b"%PDF")
    assert pdf.rstrip().endswith(b"%%EOF")


async def test_render_virtual_ticket(confirmed_booking):
    booking = await confirmed_booking(
        is_virtual=True, virtual_link="https://meet.tix.io/jazz", location=None, venue=None
    )

    assert render_ticket_pdf(booking).startswith(b"%PDF")
