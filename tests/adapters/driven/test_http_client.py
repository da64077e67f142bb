"""Tests for the aiohttp transport adapter."""

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from multidict import CIMultiDict

from resilient_dispatch.adapters.driven.http.client import HttpClient
from resilient_dispatch.core.errors import TransportFailure

__all__ = []


def make_response(status: int, body: bytes, headers: list[tuple[str, str]]) -> MagicMock:
    """Create a fake aiohttp response."""
    resp = MagicMock()
    resp.status = status
    resp.read = AsyncMock(return_value=body)
    resp.headers = CIMultiDict(headers)
    return resp


@pytest.mark.asyncio
async def test_http_client_context_manager() -> None:
    """HTTP client should initialize and close its own session."""
    client = HttpClient()
    assert client.session is None

    async with client as c:
        assert c.session is not None
        assert c is client

    assert client.session is None


@pytest.mark.asyncio
async def test_http_client_keeps_injected_session_open() -> None:
    """A session passed in by the caller is not closed on exit."""
    session = AsyncMock()

    async with HttpClient(session=session):
        pass

    session.close.assert_not_called()


@pytest.mark.asyncio
async def test_exchange_returns_fully_read_response() -> None:
    """exchange() should read status, content type, cookies and body."""
    client = HttpClient()
    client.session = MagicMock()
    resp = make_response(
        200,
        b'{"ok": true}',
        [
            ("Content-Type", "application/json"),
            ("Set-Cookie", "sessionid=1; Path=/"),
            ("Set-Cookie", "csrftoken=abc; Path=/"),
        ],
    )
    client.session.request.return_value.__aenter__.return_value = resp

    result = await client.exchange(
        url="http://test/api?a=1",
        method="POST",
        headers={"X-CSRFToken": ""},
        body='{"x": 1}',
    )

    client.session.request.assert_called_once_with(
        "POST", "http://test/api?a=1", headers={"X-CSRFToken": ""}, data='{"x": 1}'
    )
    assert result.status == 200
    assert result.content_type == "application/json"
    assert result.cookies == ("sessionid=1; Path=/", "csrftoken=abc; Path=/")
    assert result.body == b'{"ok": true}'
    assert "Set-Cookie" not in result.headers
    assert result.parsed_body() == {"ok": True}


@pytest.mark.asyncio
async def test_exchange_does_not_treat_error_status_as_failure() -> None:
    """HTTP error statuses are responses, not transport failures."""
    client = HttpClient()
    client.session = MagicMock()
    client.session.request.return_value.__aenter__.return_value = make_response(
        500, b"boom", [("Content-Type", "text/plain")]
    )

    result = await client.exchange(url="http://test", method="GET", headers={}, body=None)

    assert result.status == 500
    assert result.parsed_body() == "boom"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "exc",
    [
        aiohttp.ClientConnectionError("reset"),
        aiohttp.ClientPayloadError("truncated"),
        aiohttp.ClientOSError(104, "Connection reset by peer"),
    ],
)
async def test_exchange_wraps_network_errors(exc: Exception) -> None:
    """aiohttp network errors should surface as TransportFailure."""
    client = HttpClient()
    client.session = MagicMock()
    client.session.request.side_effect = exc

    with pytest.raises(TransportFailure) as exc_info:
        await client.exchange(url="http://test", method="GET", headers={}, body=None)

    assert exc_info.value.__cause__ is exc


@pytest.mark.asyncio
async def test_exchange_requires_session() -> None:
    """Using the client outside its context manager is an error."""
    with pytest.raises(RuntimeError, match="Session not initialized"):
        await HttpClient().exchange(url="http://test", method="GET", headers={}, body=None)
