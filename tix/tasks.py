import asyncio
import logging
from typing import Any, Coroutine, TypeVar

from .celery_app import celery_app
from .core.database_manager import async_session_maker
from .services.booking_ledger import BookingLedger

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine from a synchronous Celery task on the worker's loop."""
    try:
        loop = asyncio.get_event_loop()
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


async def sweep_expired_holds() -> int:
    async with async_session_maker() as db:
        return await BookingLedger(db).release_expired_holds()


@celery_app.task(name="tix.tasks.release_expired_holds")  # type: ignore[misc]
def release_expired_holds() -> int:
    """
    Periodic task: cancel pending bookings whose capacity hold has lapsed and
    return their tickets to the tier.
    """
    released = run_async(sweep_expired_holds())
    if released:
        logger.info("Released %d expired booking holds", released)
    return released
