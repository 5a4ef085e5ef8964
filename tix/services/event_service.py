import hashlib
import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tix.core.errors import EventNotFound, Forbidden, TicketTypeNotFound, ValidationError
from tix.core.settings import get_settings
from tix.crud import event as event_crud
from tix.crud import ticket_type as ticket_type_crud
from tix.crud import user as user_crud
from tix.middleware.monitoring import business_metrics
from tix.models.event import Event as EventModel
from tix.models.event import EventStatus
from tix.models.ticket_type import TicketType as TicketTypeModel
from tix.models.user import User
from tix.schemas.event import (
    Event,
    EventCreate,
    EventFilters,
    EventListItem,
    EventListResponse,
    EventUpdate,
    check_event_consistency,
)
from tix.schemas.ticket_type import TicketTypeCreate, TicketTypeUpdate
from tix.utils.cache import bump_version, cache_get, cache_key, get_version
from tix.utils.dates import as_utc

logger = logging.getLogger(__name__)
settings = get_settings()

EVENTS_LIST_VERSION_KEY = cache_key("events_list_version")


async def invalidate_events_list_cache() -> None:
    """Increments the version key for event lists, invalidating all list caches."""
    await bump_version(EVENTS_LIST_VERSION_KEY)


async def list_published_events(
    db: AsyncSession, filters: EventFilters
) -> EventListResponse:
    """
    Published events matching the filters. Cached per filter set; any catalog
    write bumps the list version so stale pages are never served.
    """
    version = await get_version(EVENTS_LIST_VERSION_KEY)
    filters_json = filters.model_dump_json()
    filters_hash = hashlib.sha256(filters_json.encode()).hexdigest()
    key = cache_key("events_list", f"v{version}", filters_hash)

    async def db_loader() -> EventListResponse:
        events, total = await event_crud.get_published_events(db, filters)
        summaries = await event_crud.get_ticket_summaries(db, [e.id for e in events])
        items = [
            EventListItem.model_validate(
                {**Event.model_validate(e).model_dump(), **summaries[e.id]}
            )
            for e in events
        ]
        return EventListResponse(
            events=items, total=total, page=filters.page, page_size=filters.page_size
        )

    result: EventListResponse = await cache_get(
        key=key,
        ttl=settings.scalability.CACHE_TTL,
        db_loader=db_loader,
        serializer=lambda response: response.model_dump_json(),
        deserializer=lambda s: EventListResponse.model_validate_json(s),
    )
    return result


async def get_event_or_404(db: AsyncSession, event_id: str) -> EventModel:
    event = await event_crud.get_event(db, event_id)
    if event is None:
        raise EventNotFound()
    return event


async def get_visible_event(
    db: AsyncSession, event_id: str, viewer: Optional[User]
) -> EventModel:
    """Published events are public; drafts are visible to their organizer and admins."""
    event = await get_event_or_404(db, event_id)
    if event.status in (EventStatus.PUBLISHED, EventStatus.COMPLETED):
        return event
    if viewer and (viewer.id == event.organizer_id or user_crud.is_admin(viewer)):
        return event
    raise EventNotFound()


async def get_owned_event(db: AsyncSession, event_id: str, requester: User) -> EventModel:
    event = await get_event_or_404(db, event_id)
    if event.organizer_id != requester.id:
        raise Forbidden("Only the event organizer can modify this event")
    return event


async def get_event_tickets(
    db: AsyncSession, event_id: str, viewer: Optional[User] = None
) -> List[TicketTypeModel]:
    await get_visible_event(db, event_id, viewer)
    return await ticket_type_crud.get_event_ticket_types(db, event_id, active_only=True)


async def create_event(db: AsyncSession, event_in: EventCreate, organizer: User) -> EventModel:
    event = await event_crud.create_event(db, event=event_in, organizer_id=organizer.id)
    business_metrics.events_created_total.inc()
    logger.info("Event %s created by %s", event.id, organizer.id)
    return event


async def update_event(
    db: AsyncSession, event_id: str, event_in: EventUpdate, requester: User
) -> EventModel:
    event = await get_owned_event(db, event_id, requester)
    update_data = event_in.model_dump(exclude_unset=True)

    merged = {
        "is_virtual": update_data.get("is_virtual", event.is_virtual),
        "location": update_data.get("location", event.location),
        "virtual_link": update_data.get("virtual_link", event.virtual_link),
        "start_date": update_data.get("start_date", event.start_date),
        "end_date": update_data.get("end_date", event.end_date),
    }
    try:
        check_event_consistency(**merged)
    except ValueError as e:
        raise ValidationError(str(e))

    if merged["is_virtual"]:
        update_data["location"] = None
        update_data["venue"] = None
    else:
        update_data["virtual_link"] = None

    event = await event_crud.update_event(db, event, update_data)
    await invalidate_events_list_cache()
    return event


async def set_event_status(
    db: AsyncSession, event_id: str, status: EventStatus, requester: User
) -> EventModel:
    """Owner-only status change. Setting the current status again is a no-op."""
    event = await get_owned_event(db, event_id, requester)
    if event.status == status:
        return event
    if event.status in (EventStatus.CANCELLED, EventStatus.COMPLETED):
        raise ValidationError(f"Cannot change status of a {event.status.value} event")

    event = await event_crud.set_status(db, event, status)
    await invalidate_events_list_cache()
    logger.info("Event %s is now %s", event.id, status.value)
    return event


async def publish_event(db: AsyncSession, event_id: str, requester: User) -> EventModel:
    return await set_event_status(db, event_id, EventStatus.PUBLISHED, requester)


async def unpublish_event(db: AsyncSession, event_id: str, requester: User) -> EventModel:
    return await set_event_status(db, event_id, EventStatus.DRAFT, requester)


async def cancel_event(db: AsyncSession, event_id: str, requester: User) -> EventModel:
    return await set_event_status(db, event_id, EventStatus.CANCELLED, requester)


async def _get_owned_ticket(
    db: AsyncSession, ticket_type_id: str, requester: User
) -> TicketTypeModel:
    ticket = await ticket_type_crud.get_ticket_type(db, ticket_type_id)
    if ticket is None:
        raise TicketTypeNotFound()
    await get_owned_event(db, ticket.event_id, requester)
    return ticket


async def create_ticket(
    db: AsyncSession, event_id: str, ticket_in: TicketTypeCreate, requester: User
) -> TicketTypeModel:
    await get_owned_event(db, event_id, requester)
    ticket = await ticket_type_crud.create_ticket_type(db, event_id, ticket_in)
    await invalidate_events_list_cache()
    return ticket


async def update_ticket(
    db: AsyncSession, ticket_type_id: str, ticket_in: TicketTypeUpdate, requester: User
) -> TicketTypeModel:
    ticket = await _get_owned_ticket(db, ticket_type_id, requester)
    update_data = ticket_in.model_dump(exclude_unset=True)

    sale_start = as_utc(update_data.get("sale_start_date", ticket.sale_start_date))
    sale_end = as_utc(update_data.get("sale_end_date", ticket.sale_end_date))
    if sale_start and sale_end and sale_start >= sale_end:
        raise ValidationError("Sale start must be before sale end")

    updated = await ticket_type_crud.update_ticket_type(db, ticket, update_data)
    if updated is None:
        raise ValidationError("Quantity cannot be lower than tickets already sold or held")
    await invalidate_events_list_cache()
    return updated


async def delete_ticket(db: AsyncSession, ticket_type_id: str, requester: User) -> bool:
    """Delete a tier, or deactivate it if bookings reference it. True if deleted."""
    ticket = await _get_owned_ticket(db, ticket_type_id, requester)
    if await ticket_type_crud.has_bookings(db, ticket.id):
        await ticket_type_crud.deactivate_ticket_type(db, ticket)
        deleted = False
    else:
        await ticket_type_crud.delete_ticket_type(db, ticket)
        deleted = True
    await invalidate_events_list_cache()
    return deleted
