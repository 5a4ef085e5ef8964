import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, DateTime
from sqlalchemy import Enum as SQLEnum
from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tix.core.database_manager import Base
from tix.utils.dates import utcnow

if TYPE_CHECKING:
    from .ticket_type import TicketType
    from .user import User


class EventCategory(str, enum.Enum):
    MUSIC = "music"
    TECH = "tech"
    BUSINESS = "business"
    FITNESS = "fitness"
    FOOD = "food"
    EDUCATION = "education"
    ARTS = "arts"
    NATURE = "nature"


class EventStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


def _enum_values(enum_cls: type) -> List[str]:
    return [member.value for member in enum_cls]


class Event(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    title: Mapped[str] = mapped_column(String(255), index=True)
    description: Mapped[str] = mapped_column(Text)
    short_description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    category: Mapped[EventCategory] = mapped_column(
        SQLEnum(EventCategory, name="event_category", values_callable=_enum_values),
        index=True,
    )
    image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    venue: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_virtual: Mapped[bool] = mapped_column(Boolean, default=False)
    virtual_link: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    timezone: Mapped[str] = mapped_column(String(64), default="UTC")
    max_attendees: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    status: Mapped[EventStatus] = mapped_column(
        SQLEnum(EventStatus, name="event_status", values_callable=_enum_values),
        default=EventStatus.DRAFT,
        index=True,
    )
    organizer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    organizer: Mapped["User"] = relationship(
        "User", back_populates="events", lazy="raise"
    )
    ticket_types: Mapped[List["TicketType"]] = relationship(
        "TicketType",
        back_populates="event",
        order_by="TicketType.price",
        lazy="raise",
    )

    __table_args__ = (
        Index("idx_event_status_start", "status", "start_date"),
        Index("idx_event_organizer_created", "organizer_id", "created_at"),
        Index("idx_event_category_status", "category", "status"),
    )
