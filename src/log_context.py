"""Structured fields attached to every log line emitted during an analysis.

Fields live in a ``contextvars`` variable, so an analysis running on the event
loop tags its own log lines (prompt version, decision id, record shape)
without threading those values through every call.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from models import Decision

_FIELDS: ContextVar[dict[str, str]] = ContextVar("afkari_log_fields", default={})


def log_fields() -> dict[str, str]:
    """Return a copy of the fields bound in the current context."""
    return dict(_FIELDS.get())


def bind_fields(**values: object) -> None:
    """Add fields to the current context; ``None`` values are skipped."""
    merged = _FIELDS.get().copy()
    merged.update({key: str(value) for key, value in values.items() if value is not None})
    _FIELDS.set(merged)


@contextmanager
def log_scope(**values: object) -> Iterator[None]:
    """Bind fields for the duration of a block, restoring the previous set after."""
    token = _FIELDS.set(_FIELDS.get().copy())
    try:
        bind_fields(**values)
        yield
    finally:
        _FIELDS.reset(token)


@contextmanager
def decision_scope(decision: Decision) -> Iterator[None]:
    """Tag log lines with the identity and shape of ``decision``."""
    with log_scope(
        decision_id=decision.id,
        prompt_version=decision.model_info.prompt_version,
        schema=decision.schema_shape,
    ):
        yield
