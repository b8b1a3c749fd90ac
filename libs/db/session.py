from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

_ATOMIC_DEPTH = "atomic_depth"


async def get_async_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields an async database session.
    """
    async with request.app.state.db.session() as session:
        try:
            yield session
        finally:
            await session.close()


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """Run a block as one unit of work.

    The outermost block commits on success and rolls back on any exception.
    Nested blocks join the outer transaction, so composed operations commit or
    roll back together.
    """
    depth = db.info.get(_ATOMIC_DEPTH, 0)
    db.info[_ATOMIC_DEPTH] = depth + 1
    try:
        yield db
        if depth == 0:
            await db.commit()
    except BaseException:
        if depth == 0:
            await db.rollback()
        raise
    finally:
        db.info[_ATOMIC_DEPTH] = depth
