# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""HTTP transport boundary and the response type returned to callers.

``S3Response`` hides the networking library: it exposes the status, a
case-insensitive header map and a lazily read body. ``HttpxTransport``
is the default implementation on top of ``httpx.AsyncClient``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping
from types import TracebackType
from typing import Protocol

import httpx

from s3lite.errors import TransportError


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_USER_AGENT = "s3lite/0.1.0 (Python)"


class S3Response:
    """Response from the service with a lazily readable body.

    The body is not read until ``read()``/``text()``/``aiter_bytes()`` is
    called. Callers that only inspect headers should ``aclose()`` the
    response (or use it as an async context manager).
    """

    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def ok(self) -> bool:
        """True for 2xx responses."""
        return 200 <= self.status_code < 300

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    @property
    def etag(self) -> str:
        """ETag header with surrounding quotes removed."""
        return self.headers.get("etag", "").replace('"', "")

    @property
    def content_length(self) -> int | None:
        value = self.headers.get("content-length")
        if value is None or not value.isdigit():
            return None
        return int(value)

    async def read(self) -> bytes:
        """Read and return the full body, then release the connection."""
        try:
            return await self._response.aread()
        except httpx.TransportError as e:
            raise TransportError(f"Failed to read response body: {e}") from e
        finally:
            await self._response.aclose()

    async def text(self) -> str:
        """Read the body and decode it as UTF-8."""
        return (await self.read()).decode("utf-8", errors="replace")

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        """Iterate over the body in chunks as they arrive."""
        try:
            async for chunk in self._response.aiter_bytes():
                yield chunk
        except httpx.TransportError as e:
            raise TransportError(f"Failed to read response body: {e}") from e
        finally:
            await self._response.aclose()

    async def aclose(self) -> None:
        await self._response.aclose()

    async def __aenter__(self) -> S3Response:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"<S3Response [{self.status_code}]>"


class Transport(Protocol):
    """Performs one HTTP exchange per ``send`` call."""

    async def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | None,
    ) -> S3Response:
        """Send a request and return the (unread) response."""
        ...

    async def aclose(self) -> None:
        """Release pooled connections."""
        ...


class HttpxTransport:
    """Transport backed by ``httpx.AsyncClient``.

    Args:
        client: Client to use. When omitted, one is created with
            ``timeout`` and owned (closed) by this transport.
        timeout: Request timeout in seconds for the owned client.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | None,
    ) -> S3Response:
        request = self._client.build_request(
            method, url, headers=dict(headers), content=body
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.TransportError as e:
            logger.debug("%s %s failed: %s", method, url, e)
            raise TransportError(f"{method} {url} failed: {e}") from e
        return S3Response(response)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
