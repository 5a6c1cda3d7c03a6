import asyncio
import os

from alembic import command
from alembic.config import Config
from loguru import logger

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "db", "migrations")


def build_alembic_config(database_dsn: str) -> Config:
    alembic_cfg = Config(os.path.join(MIGRATIONS_DIR, "alembic.ini"))
    alembic_cfg.set_main_option("script_location", MIGRATIONS_DIR)
    alembic_cfg.set_main_option("sqlalchemy.url", database_dsn)
    return alembic_cfg


async def run_alembic_migrations(database_dsn: str) -> None:
    """
    Runs Alembic migrations programmatically using the configured DSN.
    Alembic is synchronous, so the upgrade runs in a worker thread.
    """
    alembic_ini_path = os.path.join(MIGRATIONS_DIR, "alembic.ini")
    if not os.path.exists(alembic_ini_path):
        logger.warning(f"Alembic config not found at {alembic_ini_path}, skipping migrations.")
        return

    logger.info("🚀 Running Alembic migrations...")
    try:
        await asyncio.to_thread(command.upgrade, build_alembic_config(database_dsn), "head")
    except Exception as e:
        logger.error(f"❌ Alembic migration failed: {e}")
        raise
    logger.info("✅ Alembic migrations applied successfully.")
