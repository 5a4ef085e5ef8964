"""Shared fixtures: a throwaway SQLite database per test, the FastAPI app
wired to it, and in-memory stand-ins for the payment processor and the
image host."""

import json
import os
from datetime import timedelta
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

os.environ.setdefault("TESTING", "true")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool  # noqa: E402

import tix.models  # noqa: E402,F401
from tix.api import deps  # noqa: E402
from tix.core.database_manager import Base  # noqa: E402
from tix.core.errors import ImageUploadError, PaymentProcessingError  # noqa: E402
from tix.core.security import create_access_token  # noqa: E402
from tix.core.storage import UploadedAsset  # noqa: E402
from tix.crud import event as event_crud  # noqa: E402
from tix.crud import ticket_type as ticket_type_crud  # noqa: E402
from tix.crud import user as user_crud  # noqa: E402
from tix.main import app  # noqa: E402
from tix.models.event import Event, EventCategory, EventStatus  # noqa: E402
from tix.models.ticket_type import TicketType  # noqa: E402
from tix.models.user import User, UserRole  # noqa: E402
from tix.schemas.event import EventCreate  # noqa: E402
from tix.schemas.ticket_type import TicketTypeCreate  # noqa: E402
from tix.schemas.user import UserCreate  # noqa: E402
from tix.services.payment import IntentResult  # noqa: E402
from tix.utils.dates import utcnow  # noqa: E402

TEST_PASSWORD = "s3cret-pass"
WEBHOOK_SIGNATURE = "t=1,v1=valid"


class FakePaymentProcessor:
    """In-memory payment processor honouring idempotency keys."""

    def __init__(self) -> None:
        self.intents: Dict[str, IntentResult] = {}
        self.amounts: Dict[str, int] = {}
        self.metadata: Dict[str, Dict[str, str]] = {}
        self.refunds: List[str] = []
        self.fail_with: Optional[str] = None
        self._by_key: Dict[str, str] = {}

    async def create_intent(
        self,
        *,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
        idempotency_key: str,
    ) -> IntentResult:
        if self.fail_with:
            raise PaymentProcessingError(self.fail_with)
        if idempotency_key in self._by_key:
            return self.intents[self._by_key[idempotency_key]]
        intent_id = f"pi_test_{len(self.intents) + 1}"
        intent = IntentResult(
            id=intent_id,
            client_secret=f"{intent_id}_secret",
            status="requires_payment_method",
        )
        self.intents[intent_id] = intent
        self.amounts[intent_id] = amount
        self.metadata[intent_id] = metadata
        self._by_key[idempotency_key] = intent_id
        return intent

    def succeed(self, intent_id: str) -> None:
        self.intents[intent_id].status = "succeeded"

    async def retrieve_intent(self, intent_id: str) -> IntentResult:
        if intent_id not in self.intents:
            raise PaymentProcessingError(f"No such payment_intent: '{intent_id}'")
        return self.intents[intent_id]

    async def refund(self, intent_id: str, *, idempotency_key: str) -> str:
        if self.fail_with:
            raise PaymentProcessingError(self.fail_with)
        if idempotency_key not in self._by_key:
            self._by_key[idempotency_key] = f"re_{intent_id}"
            self.refunds.append(intent_id)
        return self._by_key[idempotency_key]

    def construct_webhook_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        if signature != WEBHOOK_SIGNATURE:
            raise PaymentProcessingError("Invalid webhook signature", status_code=400)
        event: Dict[str, Any] = json.loads(payload)
        return event


class FakeAssetStore:
    def __init__(self) -> None:
        self.objects: Dict[str, bytes] = {}
        self.deleted: List[str] = []
        self.fail = False

    async def upload(self, content: bytes, content_type: str, folder: str) -> UploadedAsset:
        if self.fail:
            raise ImageUploadError("Failed to upload image")
        key = f"{folder}/img{len(self.objects) + 1}"
        self.objects[key] = content
        return UploadedAsset(url=f"https://cdn.tix.io/{key}", public_id=key)

    async def delete(self, public_id: str) -> None:
        if self.fail:
            raise ImageUploadError("Failed to delete image")
        self.objects.pop(public_id, None)
        self.deleted.append(public_id)


@pytest_asyncio.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'tix-test.db'}", poolclass=NullPool
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def processor() -> FakePaymentProcessor:
    return FakePaymentProcessor()


@pytest.fixture
def asset_store() -> FakeAssetStore:
    return FakeAssetStore()


@pytest_asyncio.fixture
async def client(session_maker, processor, asset_store):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_payment_processor] = lambda: processor
    app.dependency_overrides[deps.get_asset_store] = lambda: asset_store

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def make_user(db) -> Callable[..., Awaitable[User]]:
    async def _make_user(
        email: str, role: UserRole = UserRole.USER, first_name: str = "Test"
    ) -> User:
        return await user_crud.create(
            db,
            obj_in=UserCreate(
                email=email,
                first_name=first_name,
                last_name="User",
                password=TEST_PASSWORD,
                confirm_password=TEST_PASSWORD,
            ),
            role=role,
        )

    return _make_user


@pytest_asyncio.fixture
async def organizer(make_user) -> User:
    return await make_user("organizer@tix.io", first_name="Olive")


@pytest_asyncio.fixture
async def attendee(make_user) -> User:
    return await make_user("attendee@tix.io", first_name="Arthur")


@pytest_asyncio.fixture
async def admin(make_user) -> User:
    return await make_user("admin@tix.io", role=UserRole.ADMIN, first_name="Ada")


TierSpec = Tuple[str, str, int]


@pytest.fixture
def make_event(db) -> Callable[..., Awaitable[Tuple[Event, List[TicketType]]]]:
    async def _make_event(
        organizer: User,
        *,
        status: EventStatus = EventStatus.PUBLISHED,
        tiers: Sequence[TierSpec] = (("General", "25.00", 10),),
        starts_in: timedelta = timedelta(days=30),
        **fields: Any,
    ) -> Tuple[Event, List[TicketType]]:
        start = utcnow() + starts_in
        data: Dict[str, Any] = {
            "title": "Jazz Night",
            "description": "An evening of live jazz.",
            "category": EventCategory.MUSIC,
            "location": "Blue Note, New York",
            "venue": "Blue Note",
            "start_date": start,
            "end_date": start + timedelta(hours=3),
        }
        data.update(fields)
        event = await event_crud.create_event(
            db, event=EventCreate(**data), organizer_id=organizer.id
        )
        if status != EventStatus.DRAFT:
            event = await event_crud.set_status(db, event, status)

        ticket_types = []
        for name, price, quantity in tiers:
            ticket_types.append(
                await ticket_type_crud.create_ticket_type(
                    db,
                    event.id,
                    TicketTypeCreate(name=name, price=Decimal(price), quantity=quantity),
                )
            )
        return event, ticket_types

    return _make_event
