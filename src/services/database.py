"""Database engine and session management for the local decision store."""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import settings

logger = logging.getLogger(__name__)

_ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"
_ALEMBIC_SCRIPTS = Path(__file__).resolve().parents[2] / "alembic"

_engine: Engine | None = None
_session_factory: sessionmaker | None = None
_initialized_urls: set[str] = set()


def _get_db_url() -> str:
    url = settings.database.url
    if not url:
        raise RuntimeError("No database URL configured")
    return url


def _is_memory_sqlite(url: str) -> bool:
    parsed = make_url(url)
    return parsed.drivername.startswith("sqlite") and parsed.database in (None, "", ":memory:")


def _ensure_sqlite_directory(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    parsed = make_url(url)
    if not parsed.drivername.startswith("sqlite") or _is_memory_sqlite(url):
        return
    Path(parsed.database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def _set_sqlite_pragmas(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def build_engine(url: str) -> Engine:
    """Create an engine for ``url``, preparing SQLite files as needed.

    An in-memory SQLite database lives only as long as its connection, so it
    gets a single shared connection; migrations and sessions then see the
    same tables.
    """
    if _is_memory_sqlite(url):
        return create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    _ensure_sqlite_directory(url)
    engine = create_engine(url, pool_pre_ping=True)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


def get_engine() -> Engine:
    """Return the process-wide engine, creating it on first use."""
    global _engine
    if _engine is None:
        _engine = build_engine(_get_db_url())
    return _engine


def get_session_factory() -> sessionmaker:
    """Return the process-wide session factory, creating it on first use."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _session_factory


def reset_engine() -> None:
    """Dispose the process-wide engine so the next access rebuilds it."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def _alembic_config(url: str) -> Config:
    alembic_cfg = Config(str(_ALEMBIC_INI)) if _ALEMBIC_INI.exists() else Config()
    alembic_cfg.set_main_option("script_location", str(_ALEMBIC_SCRIPTS))
    alembic_cfg.set_main_option("sqlalchemy.url", url)
    return alembic_cfg


def run_migrations(url: str | None = None, *, engine: Engine | None = None) -> None:
    """Upgrade the database at ``url`` (default: configured URL) to head.

    When ``engine`` is given the upgrade runs on one of its connections
    instead of a fresh one opened by Alembic.
    """
    target = url or _get_db_url()
    alembic_cfg = _alembic_config(target)
    if engine is None:
        _ensure_sqlite_directory(target)
        command.upgrade(alembic_cfg, "head")
        return
    with engine.begin() as connection:
        alembic_cfg.attributes["connection"] = connection
        command.upgrade(alembic_cfg, "head")


def init_db() -> sessionmaker:
    """Initialize the store and return its session factory.

    Safe to call repeatedly: migrations run once per database URL per process,
    and Alembic's upgrade is itself a no-op when already at head.
    """
    url = _get_db_url()
    if url not in _initialized_urls:
        run_migrations(url, engine=get_engine())
        _initialized_urls.add(url)
        logger.info("Database migrations applied")
    return get_session_factory()
