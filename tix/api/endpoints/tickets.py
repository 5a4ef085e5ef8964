from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tix.api import deps
from tix.models.user import User
from tix.schemas.ticket_type import TicketType as TicketTypeSchema
from tix.schemas.ticket_type import TicketTypeUpdate
from tix.services import event_service

router = APIRouter()


@router.patch("/{ticket_id}", response_model=TicketTypeSchema, summary="Update Ticket Type")  # type: ignore[misc]
async def update_ticket(
    ticket_id: str,
    ticket_in: TicketTypeUpdate,
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    **Edit a Ticket Tier** (Organizer Only)

    `quantity` cannot drop below the tickets already sold or held by
    pending bookings. Price changes never affect existing bookings.
    """
    return await event_service.update_ticket(db, ticket_id, ticket_in, current_user)


@router.delete("/{ticket_id}", summary="Delete Ticket Type")  # type: ignore[misc]
async def delete_ticket(
    ticket_id: str,
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Dict[str, Any]:
    """Tiers that already have bookings are deactivated instead of deleted."""
    deleted = await event_service.delete_ticket(db, ticket_id, current_user)
    if deleted:
        return {"message": "Ticket type deleted", "deleted": True}
    return {"message": "Ticket type has bookings and was deactivated", "deleted": False}
