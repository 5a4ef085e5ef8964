import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime
from sqlalchemy import Enum as SQLEnum
from sqlalchemy import ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tix.core.database_manager import Base
from tix.utils.dates import utcnow

if TYPE_CHECKING:
    from .event import Event
    from .ticket_type import TicketType
    from .user import User


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    event_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("events.id"), index=True
    )
    ticket_type_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("ticket_types.id"), index=True
    )
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    quantity: Mapped[int] = mapped_column(Integer)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    status: Mapped[BookingStatus] = mapped_column(
        SQLEnum(
            BookingStatus,
            name="booking_status",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=BookingStatus.PENDING,
        index=True,
    )
    payment_intent_id: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, nullable=True
    )
    booking_reference: Mapped[str] = mapped_column(String(16), unique=True, index=True)
    attendee_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    attendee_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    hold_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    user: Mapped["User"] = relationship("User", back_populates="bookings", lazy="raise")
    event: Mapped["Event"] = relationship("Event", lazy="raise")
    ticket_type: Mapped["TicketType"] = relationship("TicketType", lazy="raise")

    __table_args__ = (
        Index("idx_booking_user_created", "user_id", "created_at"),
        Index("idx_booking_status_hold", "status", "hold_expires_at"),
        Index("idx_booking_event_status", "event_id", "status"),
    )
