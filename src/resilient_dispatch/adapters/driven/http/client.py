"""aiohttp transport adapter performing single exchanges."""

import logging
from collections.abc import Mapping
from types import TracebackType

import aiohttp

from resilient_dispatch.core.errors import TransportFailure
from resilient_dispatch.ports.http import TransportPort, TransportResponse

__all__ = ["HttpClient", "TRANSPORT_ERRORS"]

logger = logging.getLogger(__name__)

# aiohttp exceptions reported to the executor as TransportFailure
TRANSPORT_ERRORS = (
    aiohttp.ClientConnectorError,  # Connection refused, DNS failed
    aiohttp.ClientConnectionError,  # Connection reset / closed
    aiohttp.ClientOSError,  # OS-level network error
    aiohttp.ClientPayloadError,  # Streaming error
    aiohttp.ClientResponseError,  # Malformed response
)


class HttpClient(TransportPort):
    """Transport backed by one aiohttp.ClientSession.

    Retries, timeouts and session tokens are handled by the executor;
    this adapter only sends one request and reads the whole response.
    Per-attempt timeouts cancel the exchange from outside, so no
    aiohttp timeout is configured here.
    """

    def __init__(self, session: aiohttp.ClientSession | None = None) -> None:
        """Initialize HTTP client.

        Args:
            session: Existing session to reuse; one is created on enter otherwise.
        """
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "HttpClient":
        """Enter async context manager (start session).

        Returns:
            Self for use in async with statement.
        """
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=None))
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Exit async context manager (close an owned session)."""
        if self.session and self._owns_session:
            await self.session.close()
            self.session = None

    async def exchange(
        self,
        url: str,
        method: str,
        headers: Mapping[str, str],
        body: str | None,
    ) -> TransportResponse:
        """Send one HTTP request.

        Args:
            url: Full URL including query string.
            method: HTTP verb.
            headers: Outgoing headers.
            body: Encoded body, or None.

        Returns:
            Fully read response.

        Raises:
            RuntimeError: If session not initialized.
            TransportFailure: On network-level errors.
        """
        if self.session is None:
            raise RuntimeError("Session not initialized; use 'async with' context manager")

        try:
            async with self.session.request(method, url, headers=dict(headers), data=body) as resp:
                payload = await resp.read()
                return TransportResponse(
                    status=resp.status,
                    content_type=resp.headers.get("Content-Type", ""),
                    cookies=tuple(resp.headers.getall("Set-Cookie", [])),
                    body=payload,
                    headers={k: v for k, v in resp.headers.items() if k.lower() != "set-cookie"},
                )
        except TRANSPORT_ERRORS as e:
            logger.debug(f"{method} {url} failed at transport level: {e!r}")
            raise TransportFailure(f"{method} {url}: {e}") from e
