"""
Ticket tier persistence.

The ``sold`` and ``reserved`` counters are only ever moved by the guarded
UPDATE helpers at the bottom of this module. Each one returns True when the
database accepted the change; none of them commit.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tix.core.db_utils import execute_conditional_update
from tix.models.booking import Booking
from tix.models.ticket_type import TicketType
from tix.schemas.ticket_type import TicketTypeCreate


async def get_ticket_type(db: AsyncSession, ticket_type_id: str) -> Optional[TicketType]:
    result = await db.execute(select(TicketType).filter(TicketType.id == ticket_type_id))
    first: Optional[TicketType] = result.scalars().first()
    return first


async def get_event_ticket_types(
    db: AsyncSession, event_id: str, active_only: bool = True
) -> List[TicketType]:
    query = select(TicketType).filter(TicketType.event_id == event_id)
    if active_only:
        query = query.filter(TicketType.is_active.is_(True))
    result = await db.execute(
        query.order_by(TicketType.price.asc(), TicketType.name.asc())
    )
    return list(result.scalars().all())


async def create_ticket_type(
    db: AsyncSession, event_id: str, ticket: TicketTypeCreate
) -> TicketType:
    db_ticket = TicketType(**ticket.model_dump(), event_id=event_id, sold=0, reserved=0)
    db.add(db_ticket)
    await db.commit()
    await db.refresh(db_ticket)
    return db_ticket


async def update_ticket_type(
    db: AsyncSession, db_ticket: TicketType, update_data: Dict[str, Any]
) -> Optional[TicketType]:
    """Apply ``update_data``; returns None if the new quantity is below sold + reserved."""
    quantity = update_data.pop("quantity", None)
    if quantity is not None and quantity != db_ticket.quantity:
        accepted = await execute_conditional_update(
            db,
            update(TicketType)
            .where(
                TicketType.id == db_ticket.id,
                TicketType.sold + TicketType.reserved <= quantity,
            )
            .values(quantity=quantity),
        )
        if not accepted:
            return None

    for key, value in update_data.items():
        setattr(db_ticket, key, value)
    await db.commit()
    await db.refresh(db_ticket)
    return db_ticket


async def has_bookings(db: AsyncSession, ticket_type_id: str) -> bool:
    result = await db.execute(
        select(func.count(Booking.id)).filter(Booking.ticket_type_id == ticket_type_id)
    )
    return int(result.scalar_one()) > 0


async def delete_ticket_type(db: AsyncSession, db_ticket: TicketType) -> None:
    await db.delete(db_ticket)
    await db.commit()


async def deactivate_ticket_type(db: AsyncSession, db_ticket: TicketType) -> TicketType:
    db_ticket.is_active = False
    await db.commit()
    await db.refresh(db_ticket)
    return db_ticket


async def claim_hold(db: AsyncSession, ticket_type_id: str, quantity: int) -> bool:
    """reserved += quantity, only if the active tier still has room."""
    return bool(
        await execute_conditional_update(
            db,
            update(TicketType)
            .where(
                TicketType.id == ticket_type_id,
                TicketType.is_active.is_(True),
                TicketType.sold + TicketType.reserved + quantity <= TicketType.quantity,
            )
            .values(reserved=TicketType.reserved + quantity),
        )
    )


async def release_hold(db: AsyncSession, ticket_type_id: str, quantity: int) -> bool:
    return bool(
        await execute_conditional_update(
            db,
            update(TicketType)
            .where(TicketType.id == ticket_type_id, TicketType.reserved >= quantity)
            .values(reserved=TicketType.reserved - quantity),
        )
    )


async def convert_hold(db: AsyncSession, ticket_type_id: str, quantity: int) -> bool:
    """Move held units into sold."""
    return bool(
        await execute_conditional_update(
            db,
            update(TicketType)
            .where(TicketType.id == ticket_type_id, TicketType.reserved >= quantity)
            .values(
                reserved=TicketType.reserved - quantity,
                sold=TicketType.sold + quantity,
            ),
        )
    )


async def claim_sold(db: AsyncSession, ticket_type_id: str, quantity: int) -> bool:
    """sold += quantity without a prior hold, only if capacity allows."""
    return bool(
        await execute_conditional_update(
            db,
            update(TicketType)
            .where(
                TicketType.id == ticket_type_id,
                TicketType.sold + TicketType.reserved + quantity <= TicketType.quantity,
            )
            .values(sold=TicketType.sold + quantity),
        )
    )


async def release_sold(db: AsyncSession, ticket_type_id: str, quantity: int) -> bool:
    return bool(
        await execute_conditional_update(
            db,
            update(TicketType)
            .where(TicketType.id == ticket_type_id, TicketType.sold >= quantity)
            .values(sold=TicketType.sold - quantity),
        )
    )
