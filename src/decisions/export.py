"""Export every stored decision as one JSON document."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from decisions.repository import DecisionRepository
from time_utils import to_iso, utc_now

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = "1.0"


def build_export_document(
    repository: DecisionRepository,
    *,
    version: str = EXPORT_FORMAT_VERSION,
    include_exported_at: bool = True,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Return the export envelope with every stored record.

    The envelope ``version`` describes the export format only; each record
    keeps its own ``modelInfo.promptVersion``.
    """
    document: dict[str, Any] = {"version": version}
    if include_exported_at:
        document["exportedAt"] = to_iso(now or utc_now())
    document["decisions"] = [decision.to_record() for decision in repository.iter_all()]
    return document


def export_all(
    repository: DecisionRepository,
    *,
    version: str = EXPORT_FORMAT_VERSION,
    include_exported_at: bool = True,
    now: datetime | None = None,
) -> str:
    """Serialize every stored decision to a pretty-printed JSON string."""
    document = build_export_document(
        repository,
        version=version,
        include_exported_at=include_exported_at,
        now=now,
    )
    return json.dumps(document, indent=2, ensure_ascii=False)


def write_export(
    repository: DecisionRepository,
    path: Path,
    **kwargs: Any,
) -> int:
    """Write the export document to ``path`` as UTF-8 and return the record count."""
    document = build_export_document(repository, **kwargs)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    count = len(document["decisions"])
    logger.info("Exported %d decisions to %s", count, path)
    return count
