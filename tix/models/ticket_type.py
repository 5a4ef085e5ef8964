import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tix.core.database_manager import Base
from tix.utils.dates import utcnow

if TYPE_CHECKING:
    from .event import Event


class TicketType(Base):
    """A priced tier of an event with a fixed capacity.

    ``reserved`` counts units held by pending bookings and ``sold`` counts
    units of confirmed bookings. Both are only moved by guarded UPDATE
    statements in ``tix.crud.ticket_type``.
    """

    __tablename__ = "ticket_types"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    event_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("events.id"), index=True
    )
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    quantity: Mapped[int] = mapped_column(Integer)
    sold: Mapped[int] = mapped_column(Integer, default=0)
    reserved: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    sale_start_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    sale_end_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    event: Mapped["Event"] = relationship(
        "Event", back_populates="ticket_types", lazy="raise"
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_ticket_type_price_non_negative"),
        CheckConstraint("quantity >= 1", name="ck_ticket_type_quantity_positive"),
        CheckConstraint("sold >= 0", name="ck_ticket_type_sold_non_negative"),
        CheckConstraint("reserved >= 0", name="ck_ticket_type_reserved_non_negative"),
        CheckConstraint("sold + reserved <= quantity", name="ck_ticket_type_capacity"),
    )

    @property
    def available(self) -> int:
        return max(self.quantity - self.sold - self.reserved, 0)
