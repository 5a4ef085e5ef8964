from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from tix.models.event import EventCategory, EventStatus
from tix.utils.dates import as_utc, utcnow

from .base import CamelModel, reject_null_fields
from .ticket_type import TicketPrice


def check_event_consistency(
    *,
    is_virtual: bool,
    location: Optional[str],
    virtual_link: Optional[str],
    start_date: datetime,
    end_date: datetime,
) -> None:
    """Cross-field rules shared by event creation and partial updates.

    Raises ValueError with a message suitable for the client.
    """
    if as_utc(start_date) >= as_utc(end_date):
        raise ValueError("End date must be after start date")
    if is_virtual:
        if not (virtual_link or "").strip():
            raise ValueError("Virtual link is required for virtual events")
    elif not (location or "").strip():
        raise ValueError("Location is required for in-person events")


class EventBase(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    short_description: Optional[str] = Field(None, max_length=500)
    category: EventCategory
    image_url: Optional[str] = None
    venue: Optional[str] = Field(None, max_length=255)
    location: Optional[str] = Field(None, max_length=255)
    is_virtual: bool = False
    virtual_link: Optional[str] = None
    start_date: datetime
    end_date: datetime
    timezone: str = Field("UTC", max_length=64)
    max_attendees: Optional[int] = Field(None, ge=1)

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, v: datetime) -> datetime:
        return as_utc(v)  # type: ignore[return-value]


class EventCreate(EventBase):
    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Field cannot be blank")
        return v.strip()

    @model_validator(mode="after")
    def check_location_and_schedule(self) -> "EventCreate":
        check_event_consistency(
            is_virtual=self.is_virtual,
            location=self.location,
            virtual_link=self.virtual_link,
            start_date=self.start_date,
            end_date=self.end_date,
        )
        if self.start_date <= utcnow():
            raise ValueError("Start date cannot be in the past")
        if self.is_virtual:
            self.location = None
            self.venue = None
        else:
            self.virtual_link = None
        return self


class EventUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    short_description: Optional[str] = Field(None, max_length=500)
    category: Optional[EventCategory] = None
    image_url: Optional[str] = None
    venue: Optional[str] = Field(None, max_length=255)
    location: Optional[str] = Field(None, max_length=255)
    is_virtual: Optional[bool] = None
    virtual_link: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    timezone: Optional[str] = Field(None, max_length=64)
    max_attendees: Optional[int] = Field(None, ge=1)

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @model_validator(mode="after")
    def required_columns_not_null(self) -> "EventUpdate":
        reject_null_fields(
            self,
            (
                "title",
                "description",
                "category",
                "is_virtual",
                "start_date",
                "end_date",
                "timezone",
            ),
        )
        return self


class Event(EventBase):
    id: str
    status: EventStatus
    organizer_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EventListItem(Event):
    ticket_types: List[TicketPrice] = []
    attendee_count: int = 0


class EventListResponse(CamelModel):
    events: List[EventListItem]
    total: int
    page: int
    page_size: int


class EventFilters(CamelModel):
    category: Optional[EventCategory] = None
    search: Optional[str] = None
    location: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    page: int = Field(1, ge=1)
    page_size: int = Field(12, ge=1, le=100)

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)
