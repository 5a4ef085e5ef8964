from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tix.api import deps
from tix.core.errors import ValidationError
from tix.models.event import EventCategory
from tix.models.user import User
from tix.schemas.event import Event as EventSchema
from tix.schemas.event import EventCreate, EventFilters, EventListResponse, EventUpdate
from tix.schemas.ticket_type import TicketType as TicketTypeSchema
from tix.schemas.ticket_type import TicketTypeCreate
from tix.services import event_service

router = APIRouter()


def _parse_category(category: Optional[str]) -> Optional[EventCategory]:
    if not category or category == "all":
        return None
    try:
        return EventCategory(category)
    except ValueError:
        raise ValidationError(f"Unknown category '{category}'")


@router.get("", response_model=EventListResponse, summary="Discover Events")  # type: ignore[misc]
async def list_events(
    db: AsyncSession = Depends(deps.get_db),
    category: Optional[str] = Query(None, description="Category label, or 'all'"),
    search: Optional[str] = Query(None, description="Matches title or location"),
    location: Optional[str] = Query(None, description="Filter by location"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
) -> Any:
    """
    **Discover Published Events**

    Only published events are listed. Each item carries the active ticket
    tier prices and the number of tickets sold so far.

    **Query Parameters:**
    - `category` (string, optional): One of the category labels, `all` disables the filter
    - `search` (string, optional): Case-insensitive match on title or location
    - `location` (string, optional): Case-insensitive location match
    - `startDate`, `endDate` (datetime, optional): Events overlapping this window
    - `page` (int): Page number, starting at 1
    - `limit` (int): Page size, 1 to 100

    **Example Request:**
    ```bash
    GET /api/events?category=music&search=jazz&page=2&limit=12
    ```

    **Caching:**
    Pages are cached per filter set and invalidated on any catalog write.
    """
    filters = EventFilters(
        category=_parse_category(category),
        search=search.strip() if search and search.strip() else None,
        location=location.strip() if location and location.strip() else None,
        start_date=start_date,
        end_date=end_date,
        page=page,
        page_size=limit,
    )
    return await event_service.list_published_events(db, filters)


@router.post(
    "",
    response_model=EventSchema,
    status_code=status.HTTP_201_CREATED,
    summary="Create Event",
)  # type: ignore[misc]
async def create_event(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_in: EventCreate,
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    **Create a Draft Event**

    Any signed-in user can organize events. New events start as `draft`
    and stay out of discovery until published.

    **Rules:**
    - `isVirtual: true` requires `virtualLink`; location and venue are dropped
    - `isVirtual: false` requires `location`
    - `startDate` must be in the future and before `endDate`

    **Errors:**
    - `400`: Validation error
    - `401`: Authentication required
    """
    return await event_service.create_event(db, event_in, current_user)


@router.get("/{event_id}", response_model=EventSchema, summary="Get Event")  # type: ignore[misc]
async def read_event(
    event_id: str,
    db: AsyncSession = Depends(deps.get_db),
    viewer: Optional[User] = Depends(deps.get_optional_user),
) -> Any:
    """Drafts are only visible to their organizer and to admins."""
    return await event_service.get_visible_event(db, event_id, viewer)


@router.put("/{event_id}", response_model=EventSchema, summary="Update Event")  # type: ignore[misc]
async def update_event(
    event_id: str,
    event_in: EventUpdate,
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return await event_service.update_event(db, event_id, event_in, current_user)


@router.patch("/{event_id}/publish", response_model=EventSchema, summary="Publish Event")  # type: ignore[misc]
async def publish_event(
    event_id: str,
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    **Publish an Event** (Organizer Only)

    Moves a draft into discovery. Publishing an already published event
    returns it unchanged.

    **Errors:**
    - `403`: Caller is not the organizer
    - `400`: Event is cancelled or completed
    """
    return await event_service.publish_event(db, event_id, current_user)


@router.patch("/{event_id}/unpublish", response_model=EventSchema, summary="Unpublish Event")  # type: ignore[misc]
async def unpublish_event(
    event_id: str,
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return await event_service.unpublish_event(db, event_id, current_user)


@router.patch("/{event_id}/cancel", response_model=EventSchema, summary="Cancel Event")  # type: ignore[misc]
async def cancel_event(
    event_id: str,
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return await event_service.cancel_event(db, event_id, current_user)


@router.get(
    "/{event_id}/tickets",
    response_model=List[TicketTypeSchema],
    summary="List Ticket Types",
)  # type: ignore[misc]
async def read_event_tickets(
    event_id: str,
    db: AsyncSession = Depends(deps.get_db),
    viewer: Optional[User] = Depends(deps.get_optional_user),
) -> Any:
    """Active ticket tiers of the event, cheapest first. Draft tiers follow draft visibility."""
    return await event_service.get_event_tickets(db, event_id, viewer)


@router.post(
    "/{event_id}/tickets",
    response_model=TicketTypeSchema,
    status_code=status.HTTP_201_CREATED,
    summary="Add Ticket Type",
)  # type: ignore[misc]
async def create_event_ticket(
    event_id: str,
    ticket_in: TicketTypeCreate,
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return await event_service.create_ticket(db, event_id, ticket_in, current_user)
