"""Async HTTP client wrapper with timeouts and opt-in retries.

Usage Examples:

    # Single attempt, raises on non-2xx and transport errors
    client = AsyncHttpClient(timeout=60)
    response = await client.post("https://api.example.com/endpoint", json={...})

    # With retries for transient failures
    client = AsyncHttpClient(
        timeout=60,
        retry_config=RetryConfig(max_attempts=3, retry_status_codes={503}),
    )

Design Decisions:

- **Context manager per call**: a fresh ``httpx.AsyncClient`` per request keeps
  resource cleanup trivial for a tool that makes one request per analysis.
- **Retries opt-in**: the default is a single attempt so a failed call is
  reported as-is.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

import httpx

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry logic with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (including initial attempt)
        retry_status_codes: HTTP status codes that should trigger a retry
        backoff_factor: Multiplier for exponential backoff (delay = backoff_factor * 2^attempt)
        max_backoff: Maximum backoff delay in seconds
        retry_exceptions: Exception types that should trigger a retry
    """

    max_attempts: int = 3
    retry_status_codes: set[int] = field(default_factory=lambda: {429, 500, 502, 503, 504})
    backoff_factor: float = 2.0
    max_backoff: float = 60.0
    retry_exceptions: tuple[type[Exception], ...] = (
        httpx.ConnectError,
        httpx.ReadTimeout,
        httpx.PoolTimeout,
    )


class AsyncHttpClient:
    """Async HTTP client raising ``httpx`` errors with optional retries.

    Args:
        timeout: Request timeout in seconds
        connect_timeout: Connection timeout in seconds
        retry_config: Retry configuration (None = single attempt)
        transport: Optional ``httpx`` transport, used by tests
    """

    def __init__(
        self,
        timeout: float,
        connect_timeout: float | None = None,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the async HTTP client."""
        self.timeout = timeout
        self.connect_timeout = connect_timeout if connect_timeout is not None else timeout
        self.retry_config = retry_config
        self._transport = transport

    async def post(self, url: str, **kwargs) -> httpx.Response:
        """Perform an async POST request.

        Args:
            url: Target URL
            **kwargs: Additional arguments passed to httpx (json, params, headers, etc.)

        Raises:
            httpx.HTTPStatusError: If the final response is not a success
            httpx.RequestError: If the request could not be completed
        """
        return await self._request("POST", url, **kwargs)

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        if self.retry_config is None or self.retry_config.max_attempts <= 1:
            return await self._execute_once(method, url, **kwargs)
        return await self._execute_with_retry(method, url, **kwargs)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
            transport=self._transport,
        )

    async def _execute_once(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute a single HTTP request."""
        async with self._client() as client:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return response

    async def _execute_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with retry logic and exponential backoff."""
        assert self.retry_config is not None
        last_exception: Exception | None = None

        for attempt in range(self.retry_config.max_attempts):
            try:
                return await self._execute_once(method, url, **kwargs)
            except httpx.HTTPStatusError as e:
                last_exception = e
                if e.response.status_code not in self.retry_config.retry_status_codes:
                    raise
                reason = f"status {e.response.status_code}"
            except self.retry_config.retry_exceptions as e:
                last_exception = e
                reason = type(e).__name__

            # Don't sleep after the last attempt
            if attempt + 1 >= self.retry_config.max_attempts:
                break
            delay = min(
                self.retry_config.backoff_factor * (2**attempt),
                self.retry_config.max_backoff,
            )
            logger.warning(
                f"HTTP {method} failed with {reason}, retrying in {delay:.1f}s "
                f"(attempt {attempt + 1}/{self.retry_config.max_attempts})"
            )
            await asyncio.sleep(delay)

        assert last_exception is not None
        raise last_exception
