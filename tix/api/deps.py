from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tix.core.database_manager import get_db
from tix.core.errors import Forbidden, Unauthorized
from tix.core.identity import IdentityResolver, default_resolver
from tix.core.settings import get_settings
from tix.core.storage import AssetStore, S3AssetStore
from tix.crud import user as user_crud
from tix.models.user import User
from tix.services.booking_ledger import TicketRenderer
from tix.services.payment import PaymentProcessor, StripeProcessor
from tix.services.ticket_artifact import render_ticket_pdf

__all__ = [
    "get_db",
    "get_identity_resolver",
    "get_optional_user",
    "get_current_user",
    "get_current_admin_user",
    "get_payment_processor",
    "get_asset_store",
    "get_ticket_renderer",
]

settings = get_settings()


def get_identity_resolver() -> IdentityResolver:
    return default_resolver


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> Optional[User]:
    user_id = await resolver.resolve_user_id(request)
    if not user_id:
        return None
    user = await user_crud.get(db, id=user_id)
    if user is None or not user_crud.is_active(user):
        return None
    return user


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> User:
    user_id = await resolver.resolve_user_id(request)
    if not user_id:
        raise Unauthorized("Not authenticated")
    user = await user_crud.get(db, id=user_id)
    if user is None:
        raise Unauthorized("User not found")
    if not user_crud.is_active(user):
        raise Forbidden("Inactive user")
    return user


def get_current_admin_user(current_user: User = Depends(get_current_user)) -> User:
    """Require the admin role"""
    if not user_crud.is_admin(current_user):
        raise Forbidden("Admin privileges required")
    return current_user


def get_payment_processor() -> PaymentProcessor:
    return StripeProcessor(settings.payment)


def get_asset_store() -> AssetStore:
    return S3AssetStore(settings.storage)


def get_ticket_renderer() -> TicketRenderer:
    return render_ticket_pdf
