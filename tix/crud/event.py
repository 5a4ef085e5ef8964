from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from tix.models.event import Event, EventStatus
from tix.models.ticket_type import TicketType
from tix.schemas.event import EventCreate, EventFilters


async def get_event(db: AsyncSession, event_id: str) -> Optional[Event]:
    result = await db.execute(select(Event).filter(Event.id == event_id))
    first: Optional[Event] = result.scalars().first()
    return first


def _published_filters(filters: EventFilters) -> List[ColumnElement[bool]]:
    clauses: List[ColumnElement[bool]] = [Event.status == EventStatus.PUBLISHED]
    if filters.category:
        clauses.append(Event.category == filters.category)
    if filters.search and filters.search.strip():
        term = f"%{filters.search.strip()}%"
        clauses.append(or_(Event.title.ilike(term), Event.location.ilike(term)))
    if filters.location and filters.location.strip():
        clauses.append(Event.location.ilike(f"%{filters.location.strip()}%"))
    # Date range selects events overlapping [start_date, end_date]
    if filters.start_date:
        clauses.append(Event.end_date >= filters.start_date)
    if filters.end_date:
        clauses.append(Event.start_date <= filters.end_date)
    return clauses


async def get_published_events(
    db: AsyncSession, filters: EventFilters
) -> Tuple[List[Event], int]:
    """Published events matching ``filters``, newest start first, plus the total."""
    clauses = _published_filters(filters)

    count_result = await db.execute(select(func.count(Event.id)).filter(and_(*clauses)))
    total = int(count_result.scalar_one())

    query = (
        select(Event)
        .filter(and_(*clauses))
        .order_by(Event.start_date.desc(), Event.id.asc())
        .offset((filters.page - 1) * filters.page_size)
        .limit(filters.page_size)
    )
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def get_ticket_summaries(
    db: AsyncSession, event_ids: Sequence[str]
) -> Dict[str, Dict[str, Any]]:
    """Per event: active tiers (cheapest first) and attendees across all tiers."""
    summaries: Dict[str, Dict[str, Any]] = {
        event_id: {"ticket_types": [], "attendee_count": 0} for event_id in event_ids
    }
    if not event_ids:
        return summaries

    result = await db.execute(
        select(TicketType)
        .filter(TicketType.event_id.in_(list(event_ids)))
        .order_by(TicketType.price.asc(), TicketType.name.asc())
    )
    for ticket_type in result.scalars().all():
        summary = summaries[ticket_type.event_id]
        summary["attendee_count"] += ticket_type.sold
        if ticket_type.is_active:
            summary["ticket_types"].append(
                {"name": ticket_type.name, "price": ticket_type.price}
            )
    return summaries


async def get_events_by_organizer(db: AsyncSession, organizer_id: str) -> List[Event]:
    result = await db.execute(
        select(Event)
        .filter(Event.organizer_id == organizer_id)
        .order_by(Event.created_at.desc(), Event.id.asc())
    )
    return list(result.scalars().all())


async def get_all_events(db: AsyncSession, skip: int = 0, limit: int = 100) -> List[Event]:
    result = await db.execute(
        select(Event)
        .order_by(Event.created_at.desc(), Event.id.asc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all())


async def count_events(db: AsyncSession, organizer_id: Optional[str] = None) -> int:
    query = select(func.count(Event.id))
    if organizer_id:
        query = query.filter(Event.organizer_id == organizer_id)
    result = await db.execute(query)
    return int(result.scalar_one())


async def create_event(
    db: AsyncSession, event: EventCreate, organizer_id: str
) -> Event:
    db_event = Event(
        **event.model_dump(),
        organizer_id=organizer_id,
        status=EventStatus.DRAFT,
    )
    db.add(db_event)
    await db.commit()
    await db.refresh(db_event)
    return db_event


async def update_event(
    db: AsyncSession, db_event: Event, update_data: Dict[str, Any]
) -> Event:
    for key, value in update_data.items():
        setattr(db_event, key, value)
    await db.commit()
    await db.refresh(db_event)
    return db_event


async def set_status(db: AsyncSession, db_event: Event, status: EventStatus) -> Event:
    db_event.status = status
    await db.commit()
    await db.refresh(db_event)
    return db_event
