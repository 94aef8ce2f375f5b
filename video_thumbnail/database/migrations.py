import logging
import os

from alembic import command
from alembic.config import Config

from .connection import DATABASE_URL

logger = logging.getLogger(__name__)

ALEMBIC_INI = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))),
    "alembic.ini",
)


def run_migrations(database_url: str | None = None):
    """Upgrade the schema to the latest revision."""
    logger.info("Starting database migrations...")

    database_url = database_url or DATABASE_URL

    try:
        # Ensure data directory exists for SQLite only
        if database_url.startswith("sqlite"):
            db_path = database_url.replace("sqlite:///", "")
            db_dir = os.path.dirname(db_path)
            if db_dir and db_dir != ".":
                os.makedirs(db_dir, exist_ok=True)

        alembic_cfg = Config(ALEMBIC_INI)
        alembic_cfg.set_main_option(
            "script_location",
            os.path.join(os.path.dirname(ALEMBIC_INI), "alembic"),
        )
        alembic_cfg.set_main_option("sqlalchemy.url", database_url)
        alembic_cfg.attributes["configure_logger"] = False

        db_type = "PostgreSQL" if database_url.startswith("postgresql") else "SQLite"
        logger.info(f"Running alembic migrations ({db_type})...")
        command.upgrade(alembic_cfg, "head")

        logger.info("Database migrations completed successfully")

    except Exception as e:
        logger.error(f"Migration failed: {e}")
        raise
