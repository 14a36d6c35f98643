# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Fluent request builder.

Example::

    response = await (
        client.executor("GET")
        .bucket("bucket")
        .object("test.txt")
        .query("versionId", "cdabf31a-9752-4265-b137-6b3961fbaf9b")
        .send_ok()
    )

    await (
        client.executor("PUT")
        .bucket("bucket")
        .object("test.txt")
        .body(b"hello")
        .send_ok()
    )
"""

from __future__ import annotations

import base64
import hashlib
import urllib.parse
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Self

import httpx

from s3lite.datatypes import parse_error
from s3lite.errors import ServiceError, ValidationError
from s3lite.transport import S3Response


if TYPE_CHECKING:
    from s3lite.client import S3Client


_STATUS_CODES = {
    403: "AccessDenied",
    405: "MethodNotAllowed",
    409: "ResourceConflict",
    501: "NotImplemented",
}


class RequestBuilder:
    """Single-use accumulator for one signed request.

    Obtain one from ``S3Client.executor()``. Setters return the builder
    so calls chain; ``send()``/``send_ok()`` finalize it.
    """

    def __init__(self, method: str, client: S3Client) -> None:
        self._method = method.upper()
        self._client = client
        self._region = client.region
        self._bucket: str | None = None
        self._object: str | None = None
        self._body: bytes | None = None
        self._headers = httpx.Headers()
        self._query: dict[str, str] = {}
        self._unsigned_payload = False
        self._content_md5 = False
        self._sent = False

    def method(self, method: str) -> Self:
        self._method = method.upper()
        return self

    def bucket(self, name: str) -> Self:
        self._bucket = name
        return self

    def object(self, name: str) -> Self:
        self._object = name
        return self

    def region(self, region: str) -> Self:
        self._region = region
        return self

    def body(self, body: bytes | str) -> Self:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self._body = body
        return self

    def header(self, key: str, value: str) -> Self:
        """Set one header, replacing any existing value."""
        self._headers[key] = value
        return self

    def headers(self, headers: Mapping[str, str]) -> Self:
        """Replace all headers."""
        self._headers = httpx.Headers(headers)
        return self

    def headers_merge(self, headers: Mapping[str, str] | None) -> Self:
        """Merge ``headers`` into the request headers (None is a no-op)."""
        if headers:
            for key, value in headers.items():
                self._headers[key] = value
        return self

    def query(self, key: str, value: str = "") -> Self:
        self._query[key] = value
        return self

    def queries(self, query: Mapping[str, str]) -> Self:
        """Replace all query parameters."""
        self._query = dict(query)
        return self

    def queries_merge(self, query: Mapping[str, str] | None) -> Self:
        if query:
            self._query.update(query)
        return self

    def query_string(self, query: str) -> Self:
        """Merge a raw ``a=1&b`` query string into the query map."""
        for key, value in urllib.parse.parse_qsl(
            query, keep_blank_values=True
        ):
            self._query[key] = value
        return self

    def unsigned_payload(self) -> Self:
        """Sign with ``UNSIGNED-PAYLOAD`` instead of hashing the body."""
        self._unsigned_payload = True
        return self

    def content_md5(self) -> Self:
        """Send a ``Content-MD5`` header computed over the final body."""
        self._content_md5 = True
        return self

    def apply(self, fn: Callable[[Self], Self]) -> Self:
        """Apply a conditional customization without breaking the chain."""
        return fn(self)

    async def send(self) -> S3Response:
        """Sign and send the request.

        Returns whatever the service answered, including error statuses.

        Raises:
            ValidationError: If names are invalid or the builder was used.
            CredentialsError: If no usable credentials are available.
            TransportError: If no response was received.
        """
        if self._sent:
            raise ValidationError("Request builder has already been sent.")
        self._sent = True
        if self._content_md5 and self._body is not None:
            digest = hashlib.md5(self._body).digest()
            self._headers["Content-MD5"] = base64.b64encode(digest).decode()
        return await self._client._execute(
            self._method,
            region=self._region,
            bucket=self._bucket,
            key=self._object,
            query=self._query,
            headers=self._headers,
            body=self._body,
            unsigned_payload=self._unsigned_payload,
        )

    async def send_ok(self) -> S3Response:
        """Send the request and raise on any non-2xx status.

        Raises:
            ServiceError: Parsed from the error response.
            ParseError: If the error response body is not understood.
        """
        response = await self.send()
        if response.ok:
            return response
        body = await response.read()
        raise error_from_response(
            response.status_code,
            body,
            bucket_name=self._bucket or "",
            object_name=self._object or "",
        )

    async def send_text_ok(self) -> str:
        """Send the request, check the status and return the body text."""
        response = await self.send_ok()
        return await response.text()

    async def send_bytes_ok(self) -> bytes:
        """Send the request, check the status and return the raw body."""
        response = await self.send_ok()
        return await response.read()


def error_from_response(
    status_code: int,
    body: bytes,
    *,
    bucket_name: str = "",
    object_name: str = "",
) -> ServiceError:
    """Build a ``ServiceError`` for a non-2xx response.

    Bodiless responses (HEAD requests) get a code derived from the status.

    Raises:
        ParseError: If a non-empty body is not an error document.
    """
    if body.strip():
        return parse_error(
            body,
            status_code=status_code,
            bucket_name=bucket_name,
            object_name=object_name,
        )

    if status_code == 404:
        if object_name:
            code = "NoSuchKey"
        elif bucket_name:
            code = "NoSuchBucket"
        else:
            code = "ResourceNotFound"
    else:
        code = _STATUS_CODES.get(status_code, "UnknownError")
    return ServiceError(
        code,
        f"Service responded with status {status_code}",
        bucket_name=bucket_name,
        object_name=object_name,
        status_code=status_code,
    )
