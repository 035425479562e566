"""Async SQLAlchemy engine, declarative base and the request-scoped session."""

import logging
from typing import Any, AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from backoffice.config import settings

logger = logging.getLogger(__name__)


def engine_options(url: str) -> dict[str, Any]:
    """Pool settings for *url*; SQLite drivers take no pool sizing."""
    options: dict[str, Any] = {
        "echo": settings.DB_ECHO,
        "pool_pre_ping": True,
    }
    if not make_url(url).get_backend_name().startswith("sqlite"):
        options["pool_size"] = settings.DB_POOL_SIZE
        options["max_overflow"] = settings.DB_MAX_OVERFLOW
    return options


engine = create_async_engine(settings.DATABASE_URL, **engine_options(settings.DATABASE_URL))

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request: committed when the handler returns, rolled back if it raises."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            logger.debug("Rolling back request transaction", exc_info=True)
            await session.rollback()
            raise
