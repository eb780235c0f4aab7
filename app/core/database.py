"""Engines and session makers.

Two connections to the same Supabase database:
- pooled (transaction pooler, port 6543) for request handlers, the job store
  and the cache repository
- direct (port 5432) for advisory locks, migrations and DDL, which need a
  stable backend session
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from app.config import settings


def _session_maker(bind: AsyncEngine) -> sessionmaker:
    return sessionmaker(  # type: ignore[call-overload]
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


# The transaction pooler cannot hold prepared statements across transactions
_POOLED_CONNECT_ARGS: dict[str, Any] = {
    "statement_cache_size": 0,
    "prepared_statement_cache_size": 0,
    "command_timeout": 60,
}

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_size=10,
    max_overflow=20,
    pool_pre_ping=True,
    pool_recycle=300,
    pool_timeout=30,
    connect_args=_POOLED_CONNECT_ARGS,
)

direct_engine = create_async_engine(
    settings.database_url_direct,
    echo=False,
    pool_size=3,
    max_overflow=5,
    pool_pre_ping=True,
    connect_args={"command_timeout": 300},
)

async_session_maker = _session_maker(engine)
direct_session_maker = _session_maker(direct_engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; commits on success, rolls back on error."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create the tables directly. Development only; production uses Alembic."""
    import app.models  # noqa: F401

    async with direct_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
