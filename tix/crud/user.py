from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tix.core.security import get_password_hash, verify_password
from tix.models.user import User, UserRole
from tix.schemas.user import UserCreate
from tix.utils.dates import utcnow


async def get(db: AsyncSession, id: Any) -> Optional[User]:
    result = await db.execute(select(User).filter(User.id == id))
    first: Optional[User] = result.scalars().first()
    return first


async def get_by_email(db: AsyncSession, *, email: str) -> Optional[User]:
    result = await db.execute(select(User).filter(User.email == email.lower()))
    first: Optional[User] = result.scalars().first()
    return first


async def create(
    db: AsyncSession, *, obj_in: UserCreate, role: UserRole = UserRole.USER
) -> User:
    db_obj = User(
        email=obj_in.email.lower(),
        hashed_password=get_password_hash(obj_in.password),
        first_name=obj_in.first_name,
        last_name=obj_in.last_name,
        profile_image_url=obj_in.profile_image_url,
        role=role,
    )
    db.add(db_obj)
    await db.commit()
    await db.refresh(db_obj)
    return db_obj


async def authenticate(db: AsyncSession, *, email: str, password: str) -> Optional[User]:
    user = await get_by_email(db, email=email)
    if not user or not user.hashed_password:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


async def record_login(db: AsyncSession, *, user: User) -> User:
    user.last_login = utcnow()
    await db.commit()
    await db.refresh(user)
    return user


async def count_users(db: AsyncSession) -> int:
    result = await db.execute(select(func.count(User.id)))
    return int(result.scalar_one())


def is_active(user: User) -> bool:
    return bool(user.is_active)


def is_admin(user: User) -> bool:
    return user.role == UserRole.ADMIN
