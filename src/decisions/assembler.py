"""Build decision records from parsed model payloads.

Model output is untrusted and loosely typed. Every field maps to a documented
default when it is absent or has the wrong type; only values whose shape makes
a usable record impossible (``options`` that is not a list, an option that is
not an object) are rejected.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime
from typing import Any, Callable, Mapping

from pydantic import ValidationError

from decisions.errors import AssemblyError
from models import ActionStep, Decision, Evaluation, ModelInfo, Option
from time_utils import to_iso, utc_now

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 90
DEFAULT_TITLE = "Decision"
DEFAULT_BEST_OPTION_TITLE = "Best option"
CONFIDENCE_MIN = 0
CONFIDENCE_MAX = 100


def new_id() -> str:
    """Return a fresh opaque record identifier."""
    return str(uuid.uuid4())


def assemble(
    payload: Any,
    problem_text: str,
    model_info: ModelInfo,
    *,
    now: datetime | None = None,
    id_factory: Callable[[], str] = new_id,
) -> Decision:
    """Assemble a complete decision record from a parsed model payload.

    Payloads with a ``recommendation`` produce a v2 record with
    ``evaluation``; payloads without one produce a legacy v1 record with
    ``clarifying_questions`` and ``action_plan``.

    Raises:
        AssemblyError: If the payload cannot be coerced into a record.
    """
    if not isinstance(payload, Mapping):
        raise AssemblyError(
            f"Model payload must be a JSON object, got {type(payload).__name__}"
        )

    timestamp = to_iso(now or utc_now())
    goal = _text(payload.get("goal"))
    options = _options(payload.get("options"))

    fields: dict[str, Any] = {
        "id": id_factory(),
        "created_at": timestamp,
        "updated_at": timestamp,
        "title": goal[:TITLE_MAX_LENGTH] if goal else DEFAULT_TITLE,
        "problem_text": problem_text,
        "goal": goal,
        "constraints": _string_list(payload.get("constraints")),
        "criteria": _string_list(payload.get("criteria")),
        "options": options,
        "model_info": model_info,
    }

    if "recommendation" in payload and payload["recommendation"] is not None:
        recommendation = payload["recommendation"]
        if not isinstance(recommendation, Mapping):
            raise AssemblyError("recommendation must be a JSON object")
        if options:
            fields["evaluation"] = _evaluation(recommendation, options)
        else:
            logger.info("Recommendation dropped: payload has no options")
    else:
        fields["clarifying_questions"] = _string_list(payload.get("clarifyingQuestions"))
        fields["action_plan"] = _action_plan(payload.get("actionPlan"), id_factory)

    try:
        return Decision(**fields)
    except ValidationError as exc:
        raise AssemblyError(f"Decision record is invalid: {exc}") from exc


def _text(value: Any) -> str:
    """Coerce a scalar to text; ``None`` and containers become empty."""
    if value is None or isinstance(value, (dict, list)):
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _string_list(value: Any) -> list[str]:
    """Coerce a JSON array to a list of strings, dropping null entries."""
    if not isinstance(value, list):
        return []
    return [_text(item) for item in value if item is not None]


def _number(value: Any) -> float | None:
    """Return ``value`` as a finite number, or ``None`` when it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def _plain(number: float) -> int | float:
    """Return whole numbers as ``int`` so they serialize without ``.0``."""
    return int(number) if number.is_integer() else number


def _options(value: Any) -> list[Option]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise AssemblyError(f"options must be a list, got {type(value).__name__}")

    options: list[Option] = []
    for index, item in enumerate(value):
        if not isinstance(item, Mapping):
            raise AssemblyError(f"options[{index}] must be a JSON object")
        score = _number(item.get("score"))
        options.append(
            Option(
                title=_text(item.get("title")),
                rationale=_text(item.get("rationale")),
                risks=_string_list(item.get("risks")),
                score=_plain(score) if score is not None else 0,
                score_explanation=_text(item.get("scoreExplanation")),
            )
        )
    return options


def _evaluation(recommendation: Mapping[str, Any], options: list[Option]) -> Evaluation:
    """Build the evaluation, forcing index and confidence into range."""
    index = _number(recommendation.get("bestOptionIndex"))
    if index is None or not index.is_integer() or not 0 <= index < len(options):
        if recommendation.get("bestOptionIndex") is not None:
            logger.info(
                "bestOptionIndex %r out of range for %d options; using 0",
                recommendation.get("bestOptionIndex"),
                len(options),
            )
        best_index = 0
    else:
        best_index = int(index)

    confidence = _number(recommendation.get("confidence"))
    if confidence is None:
        confidence = 0.0
    confidence = float(min(max(confidence, CONFIDENCE_MIN), CONFIDENCE_MAX))

    best_title = (
        _text(recommendation.get("bestOptionTitle"))
        or options[best_index].title
        or DEFAULT_BEST_OPTION_TITLE
    )

    return Evaluation(
        best_option_index=best_index,
        best_option_title=best_title,
        confidence=_plain(confidence),
        reason=_text(recommendation.get("reason")),
        summary=_text(recommendation.get("summary")),
    )


def _action_plan(value: Any, id_factory: Callable[[], str]) -> list[ActionStep]:
    """Build action steps whose ids are unique within the plan."""
    if not isinstance(value, list):
        return []

    steps: list[ActionStep] = []
    seen: set[str] = set()
    for index, item in enumerate(value):
        if isinstance(item, str):
            item = {"text": item}
        if not isinstance(item, Mapping):
            raise AssemblyError(f"actionPlan[{index}] must be a JSON object")
        step_id = _text(item.get("id")).strip()
        if not step_id or step_id in seen:
            if step_id:
                logger.info("Duplicate step id %r replaced", step_id)
            step_id = id_factory()
            while step_id in seen:
                step_id = id_factory()
        seen.add(step_id)
        due_date = item.get("dueDate")
        steps.append(
            ActionStep(
                id=step_id,
                text=_text(item.get("text")),
                done=bool(item.get("done")),
                due_date=_text(due_date) or None,
            )
        )
    return steps
