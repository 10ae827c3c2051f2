# src/shadefast_stage/init_db.py
"""Create database tables for local development."""

import logging

from shadefast_stage.db.session import create_tables

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    create_tables()
    logger.info("Tables created.")


if __name__ == "__main__":
    main()
