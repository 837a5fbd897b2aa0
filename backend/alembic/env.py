"""Alembic environment for the document library tables."""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from doclib.config import get_settings
from doclib.db.base import Base
from doclib.db import models  # noqa: F401 - registers subjects, documents, admin_users

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    """Sync URL for migrations: ``-x url=...`` wins over DATABASE_URL_OVERRIDE / POSTGRES_*."""
    return context.get_x_argument(as_dictionary=True).get("url") or get_settings().database_url_sync


def _configure(**kwargs) -> None:
    url = kwargs.pop("url", None)
    context.configure(
        url=url,
        target_metadata=target_metadata,
        compare_type=True,
        # SQLite cannot ALTER most constraints in place
        render_as_batch=(url or get_url()).startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL to the script output without connecting."""
    _configure(url=get_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run against the database with a sync engine (psycopg2 for PostgreSQL)."""
    connectable = create_engine(get_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        _configure(connection=connection)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
