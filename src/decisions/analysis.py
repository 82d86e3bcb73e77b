"""Analyze-and-save flow: problem text in, stored decision record out."""

from __future__ import annotations

import logging
from typing import Protocol

from decisions.assembler import assemble
from decisions.errors import AnalysisBusyError, InputError, PersistenceError
from decisions.normalizer import normalize_model_output
from decisions.prompt import DEFAULT_LOCALE, PROMPT_VERSION, build_prompt
from decisions.repository import DecisionRepository
from llm import PROVIDER, GenerationResult
from log_context import decision_scope, log_scope
from models import Decision, ModelInfo

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """Backend able to turn a prompt into model text."""

    async def generate(self, prompt: str) -> GenerationResult:
        """Return the generated text for ``prompt``."""


class DecisionAnalyzer:
    """Run one analysis at a time and persist each result.

    The record is fully assembled before the store write starts, and the
    write finishes before ``analyze`` returns.
    """

    def __init__(
        self,
        generator: TextGenerator,
        repository: DecisionRepository,
        *,
        locale: str = DEFAULT_LOCALE,
        prompt_version: str = PROMPT_VERSION,
    ) -> None:
        self._generator = generator
        self._repository = repository
        self._locale = locale
        self._prompt_version = prompt_version
        self._busy = False

    @property
    def busy(self) -> bool:
        """Return True while an analysis is in flight."""
        return self._busy

    async def analyze(self, problem_text: object, locale: str | None = None) -> Decision:
        """Analyze ``problem_text`` and store the resulting decision.

        Raises:
            InputError: If the text is missing, empty, or not a string.
            AnalysisBusyError: If another analysis is still running.
            ConfigurationError, UpstreamError, EmptyContentError: From the backend.
            ParseError: If the model text is not JSON.
            AssemblyError: If the JSON cannot become a record.
            PersistenceError: If the record could not be stored; the record is
                attached to the error.
        """
        if not isinstance(problem_text, str) or not problem_text.strip():
            raise InputError("problemText is required")
        if self._busy:
            raise AnalysisBusyError("An analysis is already in progress")

        self._busy = True
        locale = locale or self._locale
        try:
            with log_scope(prompt_version=self._prompt_version, locale=locale):
                return await self._run(problem_text, locale)
        finally:
            self._busy = False

    async def _run(self, problem_text: str, locale: str) -> Decision:
        prompt = build_prompt(problem_text, locale, version=self._prompt_version)
        result = await self._generator.generate(prompt)
        payload = normalize_model_output(result.text)

        model_info = ModelInfo(
            provider=PROVIDER,
            model=result.model,
            prompt_version=self._prompt_version,
            latency_ms=result.latency_ms,
        )
        decision = assemble(payload, problem_text, model_info)

        with decision_scope(decision):
            try:
                self._repository.put(decision)
            except PersistenceError as exc:
                logger.error("Decision assembled but not saved: %s", exc)
                raise PersistenceError(
                    f"Decision could not be saved: {exc}", decision=decision
                ) from exc
            logger.info("Decision stored with %d options", len(decision.options))
        return decision
