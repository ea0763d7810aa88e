# @TASK P0-T0.3 - SQLAlchemy 2.x async engine and session factory

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from quillpress.config import Settings, get_settings


def engine_options(settings: Settings) -> dict[str, Any]:
    """Keyword arguments for ``create_async_engine`` suited to the database URL.

    PostgreSQL gets a pre-pinged, sized connection pool. SQLite gets a
    thread-agnostic connection, and an in-memory SQLite database a single
    shared connection so every session sees the same tables.
    """
    url = make_url(settings.async_database_url)
    options: dict[str, Any] = {"echo": settings.DB_ECHO}
    if url.get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
        return options

    options.update(
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
    )
    return options


settings = get_settings()

engine = create_async_engine(settings.async_database_url, **engine_options(settings))

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session whose transaction spans the request.

    Committed when the handler returns, rolled back if it raises, so a
    comment cascade lands completely or not at all.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
