"""Alembic environment for the progress store.

When the app runs migrations at startup it passes the URL in directly.
Run from the command line (alembic upgrade head), the URL comes from
DATABASE_URL or DATABASE_PATH in the environment or .env.
"""

import os
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool

config = context.config

if not config.attributes.get("configured_by_app"):
    load_dotenv(Path(__file__).resolve().parents[1] / ".env")
    database_url = os.getenv("DATABASE_URL", "")
    if not database_url.startswith("postgresql://"):
        database_url = f"sqlite:///{os.getenv('DATABASE_PATH', 'revision.db')}"
    config.set_main_option("sqlalchemy.url", database_url)

    # Leave the app's logging alone when called from init_db
    if config.config_file_name is not None:
        fileConfig(config.config_file_name)

URL = config.get_main_option("sqlalchemy.url")
BATCH = URL.startswith("sqlite")


def run_migrations_offline() -> None:
    context.configure(
        url=URL,
        target_metadata=None,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=BATCH,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=None, render_as_batch=BATCH)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
