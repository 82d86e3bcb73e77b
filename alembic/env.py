"""Alembic environment configuration for the Afkari decision store."""

from __future__ import annotations

import sys
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

config = context.config

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from models import Base  # noqa: E402

target_metadata = Base.metadata


def _get_url() -> str:
    """Resolve the SQLAlchemy database URL for migrations."""
    url = config.get_main_option("sqlalchemy.url")
    if url:
        return url
    from config import settings

    if not settings.database.url:
        raise RuntimeError("No database URL configured for Alembic migrations")
    return settings.database.url


def run_migrations_offline() -> None:
    """Run migrations in offline mode."""
    context.configure(
        url=_get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        render_as_batch=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in online mode, reusing the caller's connection if given."""
    shared = config.attributes.get("connection")
    if shared is not None:
        _migrate(shared)
        return

    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = _get_url()
    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        _migrate(connection)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
