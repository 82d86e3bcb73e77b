"""Error types for the decision analysis pipeline and store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from models import Decision


class DecisionError(Exception):
    """Base class for every error surfaced by the decision pipeline."""


class InputError(DecisionError, ValueError):
    """Raised when the caller-supplied problem text is missing or not text."""


class ConfigurationError(DecisionError, RuntimeError):
    """Raised when a required backend setting such as the API key is absent."""


class UpstreamError(DecisionError):
    """Raised when the generative backend call fails or cannot be made."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        """Initialize the error with the upstream status and response body."""
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class EmptyContentError(DecisionError):
    """Raised when the backend answered successfully but returned no text."""

    def __init__(self, message: str, raw: Any = None) -> None:
        """Initialize the error with the raw backend response."""
        super().__init__(message)
        self.raw = raw


class ParseError(DecisionError, ValueError):
    """Raised when model text is not valid JSON after fence stripping."""

    def __init__(self, message: str, raw_text: str) -> None:
        """Initialize the error with the unmodified model text."""
        super().__init__(message)
        self.raw_text = raw_text


class AssemblyError(DecisionError, ValueError):
    """Raised when a parsed payload cannot be coerced into a decision record."""


class PersistenceError(DecisionError):
    """Raised when the local store cannot read or write a record.

    ``decision`` carries the already-assembled record when a save failed, so
    callers can still show it even though it was not stored.
    """

    def __init__(self, message: str, decision: Decision | None = None) -> None:
        """Initialize the error with the record that failed to persist."""
        super().__init__(message)
        self.decision = decision


class AnalysisBusyError(DecisionError):
    """Raised when an analysis is requested while another is still running."""
