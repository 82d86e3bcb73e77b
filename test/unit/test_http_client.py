"""Unit tests for the async HTTP client wrapper and its retries."""

from __future__ import annotations

import asyncio
import logging

import httpx
import pytest

from services.http_client import AsyncHttpClient, RetryConfig


def _build_response(
    status_code: int,
    *,
    json_data: object | None = None,
    method: str = "POST",
    url: str = "http://test.example",
) -> httpx.Response:
    """Create a synthetic httpx response with a bound request."""
    request = httpx.Request(method, url)
    return httpx.Response(status_code=status_code, json=json_data, request=request)


class StubAsyncClient:
    """Async client stub returning configured responses."""

    def __init__(self, responses: list[httpx.Response | Exception]) -> None:
        """Initialize the stub with a sequence of responses or exceptions."""
        self.responses = responses
        self.call_count = 0
        self.kwargs: list[dict] = []

    async def __aenter__(self) -> "StubAsyncClient":
        """Enter the async context manager."""
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        """Exit the async context manager."""
        return None

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Return the next configured response or raise the next configured error."""
        item = self.responses[self.call_count]
        self.call_count += 1
        self.kwargs.append(kwargs)
        if isinstance(item, Exception):
            raise item
        return item


def _install(monkeypatch, stub: StubAsyncClient) -> list[dict]:
    """Route httpx.AsyncClient construction to ``stub`` and record its options."""
    built: list[dict] = []

    def factory(**kwargs):
        built.append(kwargs)
        return stub

    monkeypatch.setattr(httpx, "AsyncClient", factory)
    return built


async def _no_sleep(_delay: float) -> None:
    return None


@pytest.mark.asyncio
async def test_post_success_passes_payload(monkeypatch) -> None:
    """POST returns the response and forwards JSON and headers."""
    stub = StubAsyncClient([_build_response(200, json_data={"ok": True})])
    built = _install(monkeypatch, stub)
    client = AsyncHttpClient(timeout=30, connect_timeout=5)

    response = await client.post("http://test.example", json={"a": 1}, headers={"h": "v"})

    assert response.json() == {"ok": True}
    assert stub.kwargs[0] == {"json": {"a": 1}, "headers": {"h": "v"}}
    timeout = built[0]["timeout"]
    assert timeout.read == 30
    assert timeout.connect == 5


@pytest.mark.asyncio
async def test_no_retry_by_default(monkeypatch) -> None:
    """Without a retry config a failing status raises after one attempt."""
    stub = StubAsyncClient([_build_response(503), _build_response(200)])
    _install(monkeypatch, stub)

    with pytest.raises(httpx.HTTPStatusError):
        await AsyncHttpClient(timeout=30).post("http://test.example")
    assert stub.call_count == 1


@pytest.mark.asyncio
async def test_single_attempt_config_does_not_retry(monkeypatch) -> None:
    """max_attempts=1 behaves like no retry config."""
    stub = StubAsyncClient([_build_response(500), _build_response(200)])
    _install(monkeypatch, stub)
    client = AsyncHttpClient(timeout=30, retry_config=RetryConfig(max_attempts=1))

    with pytest.raises(httpx.HTTPStatusError):
        await client.post("http://test.example")
    assert stub.call_count == 1


@pytest.mark.asyncio
async def test_retry_on_500_then_success(monkeypatch) -> None:
    """Retryable statuses are retried with backoff."""
    stub = StubAsyncClient([_build_response(500), _build_response(200, json_data={})])
    _install(monkeypatch, stub)
    delays: list[float] = []

    async def record_sleep(delay: float) -> None:
        delays.append(delay)

    monkeypatch.setattr(asyncio, "sleep", record_sleep)
    client = AsyncHttpClient(
        timeout=30, retry_config=RetryConfig(max_attempts=3, backoff_factor=0.5)
    )

    response = await client.post("http://test.example")

    assert response.status_code == 200
    assert stub.call_count == 2
    assert delays == [0.5]


@pytest.mark.asyncio
async def test_retry_exhausted_raises_last_error(monkeypatch, caplog) -> None:
    """The last error is raised once attempts run out."""
    stub = StubAsyncClient([_build_response(503)] * 3)
    _install(monkeypatch, stub)
    monkeypatch.setattr(asyncio, "sleep", _no_sleep)
    caplog.set_level(logging.WARNING)
    client = AsyncHttpClient(timeout=30, retry_config=RetryConfig(max_attempts=3))

    with pytest.raises(httpx.HTTPStatusError):
        await client.post("http://test.example?key=secret")

    assert stub.call_count == 3
    warnings = [record for record in caplog.records if record.levelname == "WARNING"]
    assert len(warnings) == 2
    assert all("secret" not in record.getMessage() for record in warnings)


@pytest.mark.asyncio
async def test_no_retry_on_400(monkeypatch) -> None:
    """Client errors are not retried."""
    stub = StubAsyncClient([_build_response(400), _build_response(200)])
    _install(monkeypatch, stub)
    client = AsyncHttpClient(timeout=30, retry_config=RetryConfig(max_attempts=3))

    with pytest.raises(httpx.HTTPStatusError):
        await client.post("http://test.example")
    assert stub.call_count == 1


@pytest.mark.asyncio
async def test_retry_on_connect_error(monkeypatch) -> None:
    """Connection errors are retried."""
    request = httpx.Request("POST", "http://test.example")
    stub = StubAsyncClient(
        [httpx.ConnectError("refused", request=request), _build_response(200)]
    )
    _install(monkeypatch, stub)
    monkeypatch.setattr(asyncio, "sleep", _no_sleep)
    client = AsyncHttpClient(timeout=30, retry_config=RetryConfig(max_attempts=2))

    response = await client.post("http://test.example")

    assert response.status_code == 200
    assert stub.call_count == 2
