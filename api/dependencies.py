"""
FastAPI dependencies
"""

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from core.database import session_scope


async def get_db() -> AsyncIterator[AsyncSession]:
    """Request-scoped session, rolled back and released on every exit path"""
    async with session_scope() as session:
        yield session
