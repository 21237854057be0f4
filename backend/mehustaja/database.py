"""Database engine, session factory, and declarative base.

The engine owns the connection pool.  Every request gets its own
AsyncSession through ``get_db()``; leaving the ``async with`` block
closes the session, which hands the connection back to the pool on
every exit path (commit, rollback or exception).

Services that change state commit explicitly through
``mehustaja.services.uow.unit_of_work`` so that live events can be
published only after the commit succeeded.
"""

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from mehustaja.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_timeout=settings.db_pool_timeout,
    pool_pre_ping=True,
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncIterator[AsyncSession]:
    """Yield a session for one request."""
    async with async_session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    """Create any missing tables (first boot / local development)."""
    import mehustaja.models  # noqa: F401  (register mappers)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
