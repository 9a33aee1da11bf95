# migrations/env.py
from __future__ import annotations

import asyncio
import os
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine

# Load .env before settings
env_path = os.path.join(os.path.dirname(__file__), "..", ".env")
load_dotenv(env_path)

from evalhub.core.config import settings  # noqa: E402
from evalhub.db.models import Base  # noqa: E402


config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    return settings.database_url.replace("postgresql+psycopg", "postgresql+asyncpg")


# ────────────────────────────────────────────
# OFFLINE migrations
# ────────────────────────────────────────────


def run_migrations_offline() -> None:
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_server_default=True,
        compare_type=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


# ────────────────────────────────────────────
# Helper: run migrations inside a sync conn
# ────────────────────────────────────────────
def do_run_migrations(connection):
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_server_default=True,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


# ────────────────────────────────────────────
# ONLINE migrations (async)
# ────────────────────────────────────────────
async def run_migrations_online() -> None:
    engine = create_async_engine(
        _database_url(),
        poolclass=pool.NullPool,
        future=True,
    )

    async with engine.connect() as conn:
        await conn.run_sync(do_run_migrations)

    await engine.dispose()


# ────────────────────────────────────────────
# Entrypoint
# ────────────────────────────────────────────
if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
