# migrations/env.py
import os

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool

import migestion.models  # noqa: F401
from migestion.core.config import normalize_database_url
from migestion.db.base import Base

# (1) .env, for runs from the alembic CLI
load_dotenv()

config = context.config

# (2) an URL set by run_migrations() wins over DATABASE_URL
db_url = config.get_main_option("sqlalchemy.url") or os.getenv("DATABASE_URL")
if not db_url or db_url.strip() == "":
    db_url = "sqlite:///./data/migestion.db"  # fallback
# configparser interpolation
config.set_main_option("sqlalchemy.url", normalize_database_url(db_url).replace("%", "%%"))

target_metadata = Base.metadata


def run_migrations_offline():
    url = config.get_main_option("sqlalchemy.url")
    context.configure(url=url, target_metadata=target_metadata, literal_binds=True, render_as_batch=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}), prefix="sqlalchemy.", poolclass=pool.NullPool
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
