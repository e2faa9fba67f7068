from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession
from .db import async_session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Зависимость FastAPI: выдаёт асинхронную сессию БД на время запроса."""
    async with async_session_factory() as session:
        yield session
