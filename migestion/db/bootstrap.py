# migestion/db/bootstrap.py
import os

from alembic import command
from alembic.config import Config

from migestion.core.logging import get_logger

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))

logger = get_logger(__name__)


def alembic_config(database_url: str) -> Config:
    ini_path = os.path.join(BASE_DIR, "alembic.ini")
    cfg = Config(ini_path) if os.path.exists(ini_path) else Config()
    cfg.set_main_option("script_location", os.path.join(BASE_DIR, "migrations"))
    # configparser interpolation
    cfg.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    return cfg


def run_migrations(database_url: str) -> None:
    command.upgrade(alembic_config(database_url), "head")
    logger.info("migrations_applied")
