"""Migrations for the dispatch store.

The URL comes from app settings (DATABASE_URL, config file or overrides), so
migrations and the API always target the same database.
"""
import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine

from app.infra.db import models  # noqa: F401  registers every table on Base.metadata
from app.infra.db.base import Base, engine_target
from app.settings import get_settings

alembic_cfg = context.config
if alembic_cfg.config_file_name is not None:
    fileConfig(alembic_cfg.config_file_name)

DATABASE_URL, CONNECT_ARGS = engine_target(get_settings().database_url)
alembic_cfg.set_main_option("sqlalchemy.url", DATABASE_URL)

MIGRATION_OPTIONS = {
    "target_metadata": Base.metadata,
    # JSON columns and numeric precision drift are worth catching in autogenerate.
    "compare_type": True,
}


def _migrate(connection=None) -> None:
    if connection is None:
        context.configure(
            url=DATABASE_URL,
            literal_binds=True,
            dialect_opts={"paramstyle": "named"},
            **MIGRATION_OPTIONS,
        )
    else:
        context.configure(connection=connection, **MIGRATION_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


async def _migrate_online() -> None:
    engine = create_async_engine(DATABASE_URL, connect_args=CONNECT_ARGS, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    _migrate()
else:
    asyncio.run(_migrate_online())
