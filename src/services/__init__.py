"""Services module for Afkari."""

from services.database import get_session_factory, init_db

__all__ = [
    "get_session_factory",
    "init_db",
]
