from typing import Any, List

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from tix.api import deps
from tix.middleware.rate_limiting import BOOKING_LIMIT, limiter
from tix.models.user import User
from tix.schemas.booking import Booking as BookingSchema
from tix.schemas.booking import BookingCreate, BookingDetail, BookingSummary
from tix.services.booking_ledger import BookingLedger, TicketRenderer
from tix.services.payment import PaymentBridge, PaymentProcessor

router = APIRouter()


@router.post(
    "",
    response_model=BookingSchema,
    status_code=status.HTTP_201_CREATED,
    summary="Book Tickets",
)  # type: ignore[misc]
@limiter.limit(BOOKING_LIMIT)
async def create_booking(
    request: Request,
    booking_in: BookingCreate,
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    **Reserve Tickets**

    Creates a `pending` booking and holds the requested quantity against the
    ticket tier until payment completes or the hold expires. The price is
    captured now; later price edits do not change `totalAmount`.

    **Request Body:**
    - `eventId` (string): Published event
    - `ticketTypeId` (string): Active tier of that event
    - `quantity` (int): Number of tickets
    - `attendeeEmail`, `attendeeName` (optional)

    **Example Request:**
    ```json
    {
        "eventId": "0d6f...",
        "ticketTypeId": "9a41...",
        "quantity": 2,
        "attendeeName": "Ada Lovelace"
    }
    ```

    **Errors:**
    - `400`: Validation error, or the tier is not on sale
    - `404`: Event or ticket type not found
    - `409`: Not enough tickets left
    """
    return await BookingLedger(db).reserve(current_user.id, booking_in)


@router.get("", response_model=List[BookingSummary], summary="My Bookings")  # type: ignore[misc]
async def read_my_bookings(
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """The caller's bookings with event and ticket summaries, newest first."""
    return await BookingLedger(db).get_for_purchaser(current_user.id)


@router.get("/{booking_id}", response_model=BookingDetail, summary="Get Booking")  # type: ignore[misc]
async def read_booking(
    booking_id: str,
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return await BookingLedger(db).get_for_owner(booking_id, current_user)


@router.get(
    "/{booking_id}/ticket",
    response_class=Response,
    responses={200: {"content": {"application/pdf": {}}}},
    summary="Download Ticket",
)  # type: ignore[misc]
async def download_ticket(
    booking_id: str,
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    renderer: TicketRenderer = Depends(deps.get_ticket_renderer),
) -> Response:
    """
    **Download a Printable Ticket**

    PDF with the booking summary and a QR code for check-in. Only the
    purchaser can download it, and only once the booking is confirmed.

    **Errors:**
    - `400`: Booking is not confirmed
    - `403`: Booking belongs to someone else
    """
    artifact = await BookingLedger(db).issue_ticket_artifact(
        booking_id, current_user.id, renderer
    )
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'},
    )


@router.post("/{booking_id}/cancel", response_model=BookingSchema, summary="Cancel Booking")  # type: ignore[misc]
async def cancel_booking(
    booking_id: str,
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """Cancel a pending booking and release its held tickets."""
    return await BookingLedger(db).cancel(booking_id, current_user)


@router.post("/{booking_id}/refund", response_model=BookingSchema, summary="Refund Booking")  # type: ignore[misc]
async def refund_booking(
    booking_id: str,
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    processor: PaymentProcessor = Depends(deps.get_payment_processor),
) -> Any:
    """
    **Refund a Confirmed Booking** (Organizer or Admin)

    Refunds the payment with the processor, then returns the tickets to
    the tier. Refunding twice is a no-op.
    """
    return await PaymentBridge(db, processor).refund(booking_id, current_user)
