"""Alembic environment for the EmpDash identity store (store_entries table)."""

from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import create_engine
from sqlalchemy.pool import NullPool

from empdash.core.config import get_settings
from empdash.models import Base, StoreEntry  # noqa: F401

config = context.config
if config.config_file_name is not None:
    # alembic.ini without logging sections is allowed.
    try:
        fileConfig(config.config_file_name)
    except KeyError:
        pass

target_metadata = Base.metadata
database_url = get_settings().DATABASE_URL


def _configure_options() -> dict[str, Any]:
    # SQLite cannot ALTER most columns in place; batch mode recreates the table.
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": database_url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit SQL for the configured DATABASE_URL without connecting."""
    context.configure(
        url=database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations against the configured database."""
    engine = create_engine(database_url, poolclass=NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, **_configure_options())
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
