"""
Printable ticket for a confirmed booking: a one-page PDF with the booking
summary and a QR code that door staff can scan to verify it.
"""

import io
import json
import logging

import qrcode
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from tix.models.booking import Booking
from tix.utils.dates import as_utc

logger = logging.getLogger(__name__)

BRAND_COLOR = colors.HexColor("#2563eb")
MUTED_COLOR = colors.HexColor("#6b7280")
SUPPORT_EMAIL = "support@usetix.com"


def verification_payload(booking: Booking) -> str:
    return json.dumps(
        {
            "bookingId": booking.id,
            "reference": booking.booking_reference,
            "eventId": booking.event_id,
        }
    )


def render_qr_png(data: str) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    img_buffer = io.BytesIO()
    img.save(img_buffer, format="PNG")
    return img_buffer.getvalue()


def render_ticket_pdf(booking: Booking) -> bytes:
    """Render ``booking`` (with event and ticket_type loaded) to PDF bytes."""
    event = booking.event
    ticket_type = booking.ticket_type
    start = as_utc(event.start_date)
    end = as_utc(event.end_date)

    output = io.BytesIO()
    c = canvas.Canvas(output, pagesize=A4)
    c.setTitle(f"Ticket {booking.booking_reference}")
    width, height = A4
    left = 25 * mm
    y = height - 30 * mm

    c.setFillColor(BRAND_COLOR)
    c.setFont("Helvetica-Bold", 26)
    c.drawString(left, y, "Tix Ticket")

    y -= 14 * mm
    c.setFillColor(colors.black)
    c.setFont("Helvetica-Bold", 18)
    c.drawString(left, y, event.title[:60])

    y -= 8 * mm
    c.setFont("Helvetica", 11)
    c.setFillColor(MUTED_COLOR)
    c.drawString(left, y, f"Booking reference: {booking.booking_reference}")

    location = "Online event" if event.is_virtual else (event.location or "")
    if event.venue and not event.is_virtual:
        location = f"{event.venue}, {location}"

    rows = [
        ("Date", start.strftime("%A, %B %d, %Y") if start else ""),
        (
            "Time",
            f"{start.strftime('%H:%M')} - {end.strftime('%H:%M')} UTC" if start and end else "",
        ),
        ("Location", location),
        ("Ticket type", ticket_type.name),
        ("Quantity", str(booking.quantity)),
        ("Total", f"${booking.total_amount:.2f}"),
        ("Status", booking.status.value.upper()),
    ]
    if booking.attendee_name:
        rows.append(("Attendee", booking.attendee_name))

    y -= 14 * mm
    for label, value in rows:
        c.setFont("Helvetica-Bold", 11)
        c.setFillColor(colors.black)
        c.drawString(left, y, f"{label}:")
        c.setFont("Helvetica", 11)
        c.drawString(left + 32 * mm, y, value[:70])
        y -= 7 * mm

    qr_size = 50 * mm
    qr_x = width - left - qr_size
    qr_y = height - 60 * mm - qr_size
    qr_png = render_qr_png(verification_payload(booking))
    c.drawImage(ImageReader(io.BytesIO(qr_png)), qr_x, qr_y, width=qr_size, height=qr_size)
    c.setFont("Helvetica", 9)
    c.setFillColor(MUTED_COLOR)
    c.drawCentredString(qr_x + qr_size / 2, qr_y - 5 * mm, "Scan for verification")

    c.setStrokeColor(colors.HexColor("#e5e7eb"))
    c.line(left, 40 * mm, width - left, 40 * mm)
    c.setFont("Helvetica", 10)
    c.drawCentredString(
        width / 2, 32 * mm, "Please bring this ticket and a valid ID to the event."
    )
    c.drawCentredString(width / 2, 26 * mm, f"For support, contact: {SUPPORT_EMAIL}")

    c.showPage()
    c.save()
    logger.debug("Rendered ticket for booking %s", booking.booking_reference)
    return output.getvalue()
