# src/shadefast_stage/scripts/migrate.py
from __future__ import annotations

import os

from alembic import command
from alembic.config import Config

from shadefast_stage.core.settings import settings

MIGRATIONS_DIR = os.path.abspath(
    os.path.join(os.path.dirname(__file__), "..", "..", "..", "migrations")
)


def build_alembic_config(database_url: str | None = None) -> Config:
    """Point Alembic at the bundled migrations and the given database."""
    cfg = Config(os.path.join(MIGRATIONS_DIR, "alembic.ini"))
    cfg.set_main_option("script_location", MIGRATIONS_DIR)
    url = database_url or settings.database_url
    cfg.set_main_option("sqlalchemy.url", url.replace("%", "%%"))
    return cfg


def run_upgrade_head(database_url: str | None = None) -> None:
    command.upgrade(build_alembic_config(database_url), "head")


def run_downgrade_base(database_url: str | None = None) -> None:
    command.downgrade(build_alembic_config(database_url), "base")


if __name__ == "__main__":
    run_upgrade_head()
