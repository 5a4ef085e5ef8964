"""
Event authoring wizard.

A three step flow (basic info, location and ticket tiers, confirm/publish)
modelled as an explicit state object so it can be driven, resumed and
tested without any UI. Persistence goes through a ``CatalogWriter``; the
production writer is ``tix.client.TixClient``.
"""

import enum
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Protocol, Set
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tix.core.errors import ImageUploadError, TixError, ValidationError
from tix.core.storage import validate_image
from tix.models.event import EventCategory
from tix.utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^\d{2}:\d{2}$")


class WizardStep(str, enum.Enum):
    BASIC_INFO = "basic_info"
    LOCATION_TICKETS = "location_tickets"
    CONFIRM = "confirm"
    DONE = "done"


class SubmissionStatus(str, enum.Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    FAILED = "failed"
    SUCCEEDED = "succeeded"


_PREVIOUS_STEP = {
    WizardStep.LOCATION_TICKETS: WizardStep.BASIC_INFO,
    WizardStep.CONFIRM: WizardStep.LOCATION_TICKETS,
}


@dataclass
class BasicInfo:
    title: str
    description: str
    category: str
    start_date: str
    start_time: str
    end_date: str
    end_time: str
    short_description: Optional[str] = None
    timezone: str = "UTC"


@dataclass
class LocationInfo:
    is_virtual: bool = False
    location: Optional[str] = None
    venue: Optional[str] = None
    virtual_link: Optional[str] = None
    max_attendees: Optional[int] = None


@dataclass
class TierDraft:
    name: str
    price: Any
    quantity: int
    description: Optional[str] = None
    id: Optional[str] = None


@dataclass
class ImageAsset:
    content: bytes
    content_type: str
    filename: str = "image"


class WizardValidationError(ValidationError):
    """Step data failed validation; ``errors`` maps field names to messages."""

    def __init__(self, errors: Dict[str, str]) -> None:
        self.errors = errors
        super().__init__("; ".join(f"{name}: {msg}" for name, msg in errors.items()))


class WizardStateError(TixError):
    status_code = 409
    code = "invalid_wizard_step"
    default_message = "Action not allowed at the current wizard step"


class CatalogWriter(Protocol):
    async def upload_image(
        self, content: bytes, content_type: str, filename: str = "image"
    ) -> Dict[str, str]: ...

    async def get_event(self, event_id: str) -> Dict[str, Any]: ...

    async def get_event_tickets(self, event_id: str) -> List[Dict[str, Any]]: ...

    async def create_event(self, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    async def update_event(self, event_id: str, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    async def publish_event(self, event_id: str) -> Dict[str, Any]: ...

    async def create_ticket(self, event_id: str, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    async def update_ticket(self, ticket_id: str, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    async def delete_ticket(self, ticket_id: str) -> None: ...


def _parse_api_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return as_utc(parsed)  # type: ignore[return-value]


def _parse_price(value: Any) -> Decimal:
    price = Decimal(str(value).strip())
    if not price.is_finite():
        raise InvalidOperation(value)
    return price


class EventAuthoringWizard:
    def __init__(
        self, writer: CatalogWriter, now: Callable[[], datetime] = utcnow
    ) -> None:
        self.writer = writer
        self._now = now
        self.step = WizardStep.BASIC_INFO
        self.status = SubmissionStatus.IDLE
        self.last_error: Optional[TixError] = None

        self.basic_info: Optional[BasicInfo] = None
        self.location_info: Optional[LocationInfo] = None
        self.tiers: List[TierDraft] = []
        self.start_at: Optional[datetime] = None
        self.end_at: Optional[datetime] = None
        self.image_url: Optional[str] = None

        self.event_id: Optional[str] = None
        self._saved_tier_ids: Set[str] = set()
        self._original_start: Optional[datetime] = None

    @property
    def is_edit_mode(self) -> bool:
        return self._original_start is not None

    def _require_step(self, *steps: WizardStep) -> None:
        if self.step not in steps:
            raise WizardStateError(
                f"Cannot do this at step '{self.step.value}'"
            )

    # Step 1

    def submit_basic_info(self, data: BasicInfo) -> None:
        self._require_step(WizardStep.BASIC_INFO)
        errors: Dict[str, str] = {}

        title = (data.title or "").strip()
        if not title:
            errors["title"] = "Title is required"
        elif len(title) > 255:
            errors["title"] = "Title must be 255 characters or fewer"
        if not (data.description or "").strip():
            errors["description"] = "Description is required"
        if data.short_description and len(data.short_description) > 500:
            errors["shortDescription"] = "Short description must be 500 characters or fewer"
        if data.category not in {c.value for c in EventCategory}:
            errors["category"] = "Please select a category"

        for name, value, pattern, fmt in (
            ("startDate", data.start_date, DATE_PATTERN, "YYYY-MM-DD"),
            ("endDate", data.end_date, DATE_PATTERN, "YYYY-MM-DD"),
            ("startTime", data.start_time, TIME_PATTERN, "HH:MM"),
            ("endTime", data.end_time, TIME_PATTERN, "HH:MM"),
        ):
            if not value or not pattern.match(value):
                errors[name] = f"Use the {fmt} format"

        try:
            tz = ZoneInfo(data.timezone or "UTC")
        except (ZoneInfoNotFoundError, ValueError):
            errors["timezone"] = "Unknown timezone"
            tz = None

        start_at = end_at = None
        if tz is not None and not {"startDate", "startTime", "endDate", "endTime"} & errors.keys():
            try:
                start_at = self._combine(data.start_date, data.start_time, tz)
                end_at = self._combine(data.end_date, data.end_time, tz)
            except ValueError:
                errors["startDate"] = "Invalid date or time"

        if start_at and end_at:
            if start_at >= end_at:
                errors["endDate"] = "End date must be after start date"
            start_changed = not self.is_edit_mode or start_at != self._original_start
            if start_changed and start_at <= as_utc(self._now()):
                errors["startDate"] = "Start date cannot be in the past"

        if errors:
            raise WizardValidationError(errors)

        self.basic_info = data
        self.start_at = start_at
        self.end_at = end_at
        self.step = WizardStep.LOCATION_TICKETS
        self.status = SubmissionStatus.IDLE

    @staticmethod
    def _combine(date_str: str, time_str: str, tz: ZoneInfo) -> datetime:
        local = datetime.strptime(f"{date_str} {time_str}", "%Y-%m-%d %H:%M")
        return local.replace(tzinfo=tz).astimezone(timezone.utc)

    # Step 2

    def _validate_location_and_tiers(
        self, data: LocationInfo, tiers: List[TierDraft], image: Optional[ImageAsset]
    ) -> List[Decimal]:
        errors: Dict[str, str] = {}
        if data.is_virtual:
            if not (data.virtual_link or "").strip():
                errors["virtualLink"] = "Virtual link is required for virtual events"
        elif not (data.location or "").strip():
            errors["location"] = "Location is required for in-person events"
        if data.max_attendees is not None and data.max_attendees < 1:
            errors["maxAttendees"] = "Must be at least 1"

        if not tiers:
            errors["tiers"] = "Add at least one ticket type"
        prices: List[Decimal] = []
        for i, tier in enumerate(tiers):
            if not (tier.name or "").strip():
                errors[f"tiers[{i}].name"] = "Ticket name is required"
            try:
                price = _parse_price(tier.price)
            except (InvalidOperation, ValueError):
                errors[f"tiers[{i}].price"] = "Price must be a number"
                price = Decimal("0")
            else:
                if price < 0:
                    errors[f"tiers[{i}].price"] = "Price cannot be negative"
            prices.append(price)
            if not isinstance(tier.quantity, int) or tier.quantity < 1:
                errors[f"tiers[{i}].quantity"] = "Quantity must be at least 1"

        if image is not None:
            try:
                validate_image(image.content, image.content_type)
            except ValidationError as e:
                errors["image"] = e.message

        if errors:
            raise WizardValidationError(errors)
        return prices

    def _event_payload(self) -> Dict[str, Any]:
        assert self.basic_info and self.location_info and self.start_at and self.end_at
        basic, loc = self.basic_info, self.location_info
        payload: Dict[str, Any] = {
            "title": basic.title.strip(),
            "description": basic.description.strip(),
            "shortDescription": basic.short_description,
            "category": basic.category,
            "imageUrl": self.image_url,
            "isVirtual": loc.is_virtual,
            "startDate": self.start_at.isoformat(),
            "endDate": self.end_at.isoformat(),
            "timezone": basic.timezone or "UTC",
            "maxAttendees": loc.max_attendees,
        }
        if loc.is_virtual:
            payload["virtualLink"] = loc.virtual_link
        else:
            payload["location"] = loc.location
            payload["venue"] = loc.venue
        return payload

    @staticmethod
    def _tier_payload(tier: TierDraft, price: Decimal) -> Dict[str, Any]:
        return {
            "name": tier.name.strip(),
            "description": tier.description,
            "price": str(price),
            "quantity": tier.quantity,
        }

    async def submit_location_and_tickets(
        self,
        data: LocationInfo,
        tiers: List[TierDraft],
        image: Optional[ImageAsset] = None,
    ) -> str:
        """Validate step 2 and persist the event and its tiers. Returns the event id.

        An image upload failure raises ``ImageUploadError`` before anything
        else is written, leaving the wizard on this step.
        """
        self._require_step(WizardStep.LOCATION_TICKETS)
        prices = self._validate_location_and_tiers(data, tiers, image)
        self.location_info = data
        self.tiers = tiers
        self.status = SubmissionStatus.SUBMITTING
        self.last_error = None

        try:
            if image is not None:
                try:
                    uploaded = await self.writer.upload_image(
                        image.content, image.content_type, image.filename
                    )
                except ImageUploadError:
                    logger.warning("Event image upload failed; event left untouched")
                    raise
                self.image_url = uploaded["url"]

            payload = self._event_payload()
            if self.event_id is None:
                created = await self.writer.create_event(payload)
                self.event_id = created["id"]
                logger.info("Created draft event %s", self.event_id)
            else:
                await self.writer.update_event(self.event_id, payload)

            await self._sync_tiers(tiers, prices)
        except TixError as e:
            self.status = SubmissionStatus.FAILED
            self.last_error = e
            raise

        self.step = WizardStep.CONFIRM
        self.status = SubmissionStatus.SUCCEEDED
        return self.event_id

    async def _sync_tiers(self, tiers: List[TierDraft], prices: List[Decimal]) -> None:
        assert self.event_id is not None
        kept = {t.id for t in tiers if t.id}
        for ticket_id in sorted(self._saved_tier_ids - kept):
            await self.writer.delete_ticket(ticket_id)
            self._saved_tier_ids.discard(ticket_id)

        for tier, price in zip(tiers, prices):
            payload = self._tier_payload(tier, price)
            if tier.id:
                await self.writer.update_ticket(tier.id, payload)
            else:
                created = await self.writer.create_ticket(self.event_id, payload)
                tier.id = created["id"]
            self._saved_tier_ids.add(tier.id)

    # Step 3

    async def publish(self) -> Dict[str, Any]:
        self._require_step(WizardStep.CONFIRM)
        assert self.event_id is not None
        self.status = SubmissionStatus.SUBMITTING
        try:
            event = await self.writer.publish_event(self.event_id)
        except TixError as e:
            self.status = SubmissionStatus.FAILED
            self.last_error = e
            raise
        self.step = WizardStep.DONE
        self.status = SubmissionStatus.SUCCEEDED
        logger.info("Published event %s", self.event_id)
        return event

    def back(self) -> WizardStep:
        previous = _PREVIOUS_STEP.get(self.step)
        if previous is None:
            raise WizardStateError(f"Cannot go back from step '{self.step.value}'")
        self.step = previous
        self.status = SubmissionStatus.IDLE
        return self.step

    @classmethod
    async def resume(
        cls,
        writer: CatalogWriter,
        event_id: str,
        now: Callable[[], datetime] = utcnow,
    ) -> "EventAuthoringWizard":
        """Edit mode: preload a saved event and its active tiers at step 1."""
        event = await writer.get_event(event_id)
        tickets = await writer.get_event_tickets(event_id)

        tz_name = event.get("timezone") or "UTC"
        try:
            tz = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            tz_name, tz = "UTC", ZoneInfo("UTC")
        start = _parse_api_datetime(event["startDate"])
        end = _parse_api_datetime(event["endDate"])
        local_start, local_end = start.astimezone(tz), end.astimezone(tz)

        wizard = cls(writer, now=now)
        wizard.event_id = event["id"]
        wizard.image_url = event.get("imageUrl")
        wizard.start_at, wizard.end_at = start, end
        wizard._original_start = start
        wizard.basic_info = BasicInfo(
            title=event["title"],
            description=event["description"],
            category=event["category"],
            short_description=event.get("shortDescription"),
            start_date=local_start.strftime("%Y-%m-%d"),
            start_time=local_start.strftime("%H:%M"),
            end_date=local_end.strftime("%Y-%m-%d"),
            end_time=local_end.strftime("%H:%M"),
            timezone=tz_name,
        )
        wizard.location_info = LocationInfo(
            is_virtual=event.get("isVirtual", False),
            location=event.get("location"),
            venue=event.get("venue"),
            virtual_link=event.get("virtualLink"),
            max_attendees=event.get("maxAttendees"),
        )
        wizard.tiers = [
            TierDraft(
                id=t["id"],
                name=t["name"],
                description=t.get("description"),
                price=t["price"],
                quantity=t["quantity"],
            )
            for t in tickets
        ]
        wizard._saved_tier_ids = {t["id"] for t in tickets}
        return wizard
