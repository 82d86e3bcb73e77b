"""Gemini text-generation client."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from config import settings
from decisions.errors import ConfigurationError, EmptyContentError, UpstreamError
from services.http_client import AsyncHttpClient, RetryConfig

logger = logging.getLogger(__name__)

PROVIDER = "gemini"


@dataclass(frozen=True)
class GenerationResult:
    """Text produced by one backend call plus its provenance."""

    text: str
    model: str
    latency_ms: int
    raw: dict[str, Any]


def extract_candidate_text(data: Any) -> str:
    """Concatenate every text part of the first candidate.

    Returns an empty string when there is no candidate, no content, or no
    text part.
    """
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return ""
    first = candidates[0]
    content = first.get("content") if isinstance(first, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ""
    return "".join(
        part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
    )


def _error_message(response: httpx.Response) -> str:
    """Return the most specific error message found in a failed response."""
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return json.dumps(data)


class GeminiClient:
    """Client for the Gemini ``generateContent`` endpoint.

    One call sends the prompt as a single user message. No retries are made
    unless ``llm.max_attempts`` is raised above 1.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        api_base: str | None = None,
        timeout: float | None = None,
        http_client: AsyncHttpClient | None = None,
    ):
        """Initialize the client, defaulting every option from settings."""
        llm = settings.llm
        self.api_key = api_key if api_key is not None else llm.api_key
        self.model = model or llm.model
        self.api_base = (api_base or llm.api_base).rstrip("/")
        self.timeout = timeout if timeout is not None else llm.timeout
        self._http = http_client or AsyncHttpClient(
            timeout=self.timeout,
            connect_timeout=llm.connect_timeout,
            retry_config=(
                RetryConfig(max_attempts=llm.max_attempts) if llm.max_attempts > 1 else None
            ),
        )

    @property
    def endpoint(self) -> str:
        """Return the generateContent URL for the configured model."""
        return f"{self.api_base}/models/{self.model}:generateContent"

    def build_request_body(self, prompt: str) -> dict[str, Any]:
        """Build the JSON body for one generation request."""
        llm = settings.llm
        generation_config: dict[str, Any] = {
            "temperature": llm.temperature,
            "topP": llm.top_p,
            "topK": llm.top_k,
        }
        if llm.max_output_tokens is not None:
            generation_config["maxOutputTokens"] = llm.max_output_tokens
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }

    async def generate(self, prompt: str) -> GenerationResult:
        """Send ``prompt`` and return the concatenated text of the first candidate.

        Raises:
            ConfigurationError: If no API key is configured.
            UpstreamError: If the request fails or returns a non-success status.
            EmptyContentError: If the response carries no text.
        """
        if not self.api_key:
            raise ConfigurationError("Server not configured: missing GEMINI_API_KEY")

        started = time.monotonic()
        try:
            response = await self._http.post(
                self.endpoint,
                json=self.build_request_body(prompt),
                headers={"x-goog-api-key": self.api_key},
            )
        except httpx.HTTPStatusError as exc:
            message = _error_message(exc.response)
            status = exc.response.status_code
            logger.error("Gemini request failed (%s): %s", status, message)
            raise UpstreamError(
                f"Gemini error ({status}): {message}",
                status_code=status,
                body=exc.response.text,
            ) from exc
        except httpx.RequestError as exc:
            logger.error("Gemini request could not be completed: %s", type(exc).__name__)
            raise UpstreamError(f"Gemini request failed: {type(exc).__name__}: {exc}") from exc

        latency_ms = int((time.monotonic() - started) * 1000)
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(
                "Gemini returned a non-JSON response",
                status_code=response.status_code,
                body=response.text,
            ) from exc

        text = extract_candidate_text(data)
        if not text:
            logger.warning("Gemini returned no text parts")
            raise EmptyContentError("Model returned empty content", raw=data)

        logger.info("Gemini response received in %d ms", latency_ms)
        return GenerationResult(text=text, model=self.model, latency_ms=latency_ms, raw=data)
