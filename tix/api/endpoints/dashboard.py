from typing import Any, List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tix.api import deps
from tix.crud import dashboard as dashboard_crud
from tix.crud import event as event_crud
from tix.models.user import User
from tix.schemas.dashboard import OrganizerStats
from tix.schemas.event import Event as EventSchema

router = APIRouter()


@router.get("/stats", response_model=OrganizerStats, summary="Organizer Stats")  # type: ignore[misc]
async def read_organizer_stats(
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    **Organizer Dashboard Totals**

    - `totalEvents`: events organized by the caller, any status
    - `totalRevenue`: sum of confirmed bookings across those events
    - `totalAttendees`: tickets in confirmed bookings
    - `avgRating`: always `"N/A"`, ratings are not collected
    """
    return await dashboard_crud.get_organizer_stats(db, current_user.id)


@router.get("/events", response_model=List[EventSchema], summary="Organizer Events")  # type: ignore[misc]
async def read_organizer_events(
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return await event_crud.get_events_by_organizer(db, current_user.id)
