"""Turn raw model text into parsed JSON."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from decisions.errors import ParseError

logger = logging.getLogger(__name__)

_FENCE = "```"
_OPENING_FENCE = re.compile(r"^```[A-Za-z0-9_+-]*[ \t]*\r?\n?")
_CLOSING_FENCE = re.compile(r"\r?\n?[ \t]*```$")


def strip_code_fence(text: str) -> str:
    """Remove one outermost markdown code fence, if present.

    Only a fence that opens the trimmed text is considered. The opening line
    (with an optional language tag) and a trailing closing fence are dropped;
    everything between them is returned trimmed.
    """
    cleaned = text.strip()
    if not cleaned.startswith(_FENCE):
        return cleaned
    cleaned = _OPENING_FENCE.sub("", cleaned, count=1)
    cleaned = _CLOSING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def normalize_model_output(raw_text: str) -> dict[str, Any] | list[Any]:
    """Parse model text into a JSON object or array.

    Fence stripping is the only repair attempted; anything else that is not
    valid JSON is reported as-is.

    Raises:
        ParseError: If the cleaned text is not a JSON object or array. The
            original text is kept on ``raw_text``.
    """
    cleaned = strip_code_fence(raw_text)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.warning("Model output is not valid JSON: %s", exc)
        raise ParseError("Model did not return valid JSON", raw_text) from exc

    if not isinstance(parsed, (dict, list)):
        logger.warning("Model output is JSON but not an object or array")
        raise ParseError("Model did not return a JSON object", raw_text)
    return parsed
