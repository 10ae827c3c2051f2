"""Alembic environment for the ShadeFast Stage schema.

The database URL is taken, in order, from ``ALEMBIC_URL``, the
``sqlalchemy.url`` already set on the Alembic config (``run_upgrade_head``
sets it), and finally ``DATABASE_URL`` through the application settings.
"""
from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import Connection

from shadefast_stage.core.settings import settings
from shadefast_stage.db.session import Base

config = context.config

if config.config_file_name is not None and os.path.exists(config.config_file_name):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def resolve_database_url() -> str:
    return (
        os.getenv("ALEMBIC_URL")
        or config.get_main_option("sqlalchemy.url")
        or settings.database_url
    )


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def run_migrations_offline(url: str) -> None:
    """Emit SQL for the migrations without connecting."""
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=_is_sqlite(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def _run_with_connection(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=connection.dialect.name == "sqlite",
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online(url: str) -> None:
    """Apply the migrations over a fresh, unpooled connection."""
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = url
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        _run_with_connection(connection)


database_url = resolve_database_url()
if context.is_offline_mode():
    run_migrations_offline(database_url)
else:
    run_migrations_online(database_url)
