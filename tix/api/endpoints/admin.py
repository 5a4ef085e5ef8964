from typing import Any, List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tix.api import deps
from tix.crud import dashboard as dashboard_crud
from tix.crud import event as event_crud
from tix.models.user import User
from tix.schemas.dashboard import AdminStats
from tix.schemas.event import Event as EventSchema

router = APIRouter()

# Every route here requires the admin role.


@router.get("/events", response_model=List[EventSchema], summary="All Events")  # type: ignore[misc]
async def read_all_events(
    db: AsyncSession = Depends(deps.get_db),
    admin: User = Depends(deps.get_current_admin_user),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
) -> Any:
    """Every event regardless of status, newest first."""
    return await event_crud.get_all_events(db, skip=skip, limit=limit)


@router.get("/stats", response_model=AdminStats, summary="Platform Stats")  # type: ignore[misc]
async def read_admin_stats(
    db: AsyncSession = Depends(deps.get_db),
    admin: User = Depends(deps.get_current_admin_user),
) -> Any:
    """
    **Platform Totals**

    Event, user and booking counts plus revenue from confirmed bookings.
    """
    return await dashboard_crud.get_admin_stats(db)
