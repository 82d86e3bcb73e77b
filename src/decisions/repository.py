"""Repository for decision record persistence."""

from __future__ import annotations

import logging
from contextlib import closing
from typing import Callable, Iterator, TypeVar

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from decisions.errors import PersistenceError
from models import Decision, DecisionRow
from time_utils import next_timestamp

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DecisionRepository:
    """Keyed store of decision records.

    Every write replaces a whole record inside one transaction. The only
    field-level mutation is ``update_step``, which still reads, modifies and
    rewrites the full record.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        """Initialize repository with a SQLAlchemy session factory."""
        self._session_factory = session_factory

    def put(self, decision: Decision) -> str:
        """Insert or replace ``decision`` and return its id.

        ``updated_at`` is refreshed on every call, including writes that change
        nothing else, and the new value is set on ``decision`` as well.
        """

        def handler(session: Session) -> str:
            row = session.get(DecisionRow, decision.id)
            previous = row.updated_at if row is not None else None
            decision.updated_at = next_timestamp(previous, decision.updated_at)
            if decision.updated_at < decision.created_at:
                decision.updated_at = decision.created_at
            if row is None:
                row = DecisionRow(id=decision.id)
                session.add(row)
            _write_row(row, decision)
            return decision.id

        decision_id = self._execute(handler, write=True)
        logger.debug("Stored decision %s", decision_id)
        return decision_id

    def list(self) -> list[Decision]:
        """Return every decision, most recently created first.

        Records created in the same millisecond are ordered by id, descending.
        """

        def handler(session: Session) -> list[Decision]:
            rows = session.scalars(
                select(DecisionRow).order_by(
                    DecisionRow.created_at.desc(), DecisionRow.id.desc()
                )
            )
            return [_read_row(row) for row in rows]

        return self._execute(handler)

    def get(self, decision_id: str) -> Decision | None:
        """Fetch one decision by id, or ``None`` when it does not exist."""

        def handler(session: Session) -> Decision | None:
            row = session.get(DecisionRow, decision_id)
            return _read_row(row) if row is not None else None

        return self._execute(handler)

    def update_step(self, decision_id: str, step_id: str, done: bool) -> None:
        """Set ``done`` on one action step of a legacy decision.

        A missing decision, a decision without an action plan, or an unknown
        step id is a silent no-op. Otherwise only the matching step's ``done``
        flag and the record's ``updated_at`` change.
        """

        def handler(session: Session) -> bool:
            row = session.get(DecisionRow, decision_id)
            if row is None:
                return False
            decision = _read_row(row)
            if not decision.action_plan:
                return False
            if not any(step.id == step_id for step in decision.action_plan):
                return False

            decision.action_plan = [
                step.model_copy(update={"done": done}) if step.id == step_id else step
                for step in decision.action_plan
            ]
            decision.updated_at = next_timestamp(row.updated_at)
            _write_row(row, decision)
            return True

        if not self._execute(handler, write=True):
            logger.debug(
                "Step update skipped: decision=%s step=%s not found", decision_id, step_id
            )

    def delete(self, decision_id: str) -> None:
        """Remove a decision. Deleting an unknown id is not an error."""

        def handler(session: Session) -> None:
            row = session.get(DecisionRow, decision_id)
            if row is not None:
                session.delete(row)

        self._execute(handler, write=True)

    def iter_all(self) -> Iterator[Decision]:
        """Yield every stored decision in storage order."""
        for decision in self._execute(
            lambda session: [_read_row(row) for row in session.scalars(select(DecisionRow))]
        ):
            yield decision

    def count(self) -> int:
        """Return the number of stored decisions."""
        return self._execute(
            lambda session: session.scalar(select(func.count()).select_from(DecisionRow)) or 0
        )

    def _execute(self, handler: Callable[[Session], T], *, write: bool = False) -> T:
        """Run ``handler`` in a fresh session, committing writes."""
        try:
            with closing(self._session_factory()) as session:
                try:
                    result = handler(session)
                    if write:
                        session.commit()
                    return result
                except Exception:
                    session.rollback()
                    raise
        except SQLAlchemyError as exc:
            logger.error("Decision store operation failed: %s", exc)
            raise PersistenceError(f"Decision store unavailable: {exc}") from exc


def _write_row(row: DecisionRow, decision: Decision) -> None:
    row.created_at = decision.created_at
    row.updated_at = decision.updated_at
    row.prompt_version = decision.model_info.prompt_version
    row.payload = decision.to_record()


def _read_row(row: DecisionRow) -> Decision:
    try:
        return Decision.from_record(row.payload)
    except ValidationError as exc:
        raise PersistenceError(f"Stored decision {row.id} is unreadable: {exc}") from exc
