from contextlib import asynccontextmanager
from typing import AsyncGenerator

from pydantic import BaseModel, Field
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Update


class PaginationParams(BaseModel):
    page: int = Field(1, ge=1)
    page_size: int = Field(12, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


@asynccontextmanager
async def db_transaction(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        raise


async def execute_conditional_update(db: AsyncSession, stmt: Update) -> int:
    """Run a guarded UPDATE and return the number of rows it touched.

    The WHERE clause carries the guard, so a rowcount of zero means the
    guard did not hold at the moment the database evaluated it.
    """
    result: CursorResult = await db.execute(
        stmt.execution_options(synchronize_session=False)
    )
    return int(result.rowcount or 0)
