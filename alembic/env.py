"""Alembic environment for the generation_jobs and recommendation_cache tables.

Autogenerate sees columns and indexes only. RLS policies, check constraints
and the app_user_id() helper are written by hand in the revision files.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config
from sqlmodel import SQLModel

from app.config import settings
from app.models import GenerationJob, RecommendationCacheEntry  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata

PIPELINE_TABLES = {GenerationJob.__tablename__, RecommendationCacheEntry.__tablename__}


def get_url() -> str:
    """Migrations use the direct connection; DDL does not go through the pooler."""
    return settings.database_url_direct


def include_object(obj, name, type_, reflected, compare_to) -> bool:
    # Supabase owns the rest of the schema (auth.users etc.)
    if type_ == "table":
        return name in PIPELINE_TABLES
    return True


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        include_object=include_object,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        include_object=include_object,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = get_url()

    engine = async_engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    async with engine.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
