# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""S3 client.

The client owns the endpoint, the credential provider and the transport.
Every request goes through the same pipeline:

1. Validate bucket and object names.
2. Assemble host, user agent and content length headers.
3. Hash the body (or mark it ``UNSIGNED-PAYLOAD``).
4. Fetch credentials from the provider.
5. Sign with the current timestamp.
6. Send through the transport.

Bucket and object operations are mixed in from ``bucket_ops`` and
``object_ops``; all of them are thin wrappers over ``executor()``.

Example::

    endpoint = Endpoint.parse("https://play.min.io")
    provider = StaticProvider("access", "secret")
    async with S3Client(endpoint, provider) as client:
        await client.put_object("bucket", "hello.txt", b"hello")
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import TracebackType
from typing import TYPE_CHECKING

import httpx

from s3lite.bucket_ops import BucketOperations
from s3lite.credentials import CredentialProvider, Credentials
from s3lite.endpoint import Endpoint
from s3lite.errors import CredentialsError, ValidationError
from s3lite.executor import RequestBuilder
from s3lite.logging import SecretFilter
from s3lite.object_ops import ObjectOperations
from s3lite.signing import (
    UNSIGNED_PAYLOAD,
    PendingRequest,
    SigningContext,
    payload_hash,
    sign_request,
)
from s3lite.transport import (
    DEFAULT_USER_AGENT,
    HttpxTransport,
    S3Response,
    Transport,
)
from s3lite.validation import (
    MIN_PART_SIZE,
    check_bucket_name,
    check_object_name,
    check_part_size,
)


if TYPE_CHECKING:
    from s3lite.config import ClientConfig


logger = logging.getLogger(__name__)

# Methods that always carry a (possibly empty) body
_BODY_METHODS = frozenset({"PUT", "POST"})


class S3Client(BucketOperations, ObjectOperations):
    """Async client for S3-compatible object storage.

    Args:
        endpoint: Service endpoint and addressing style.
        provider: Credential provider, consulted once per request.
        transport: HTTP transport. When omitted, an ``HttpxTransport`` is
            created and closed together with the client.
        user_agent: ``User-Agent`` header value.
        part_size: Part size for uploads that switch to multipart.
        concurrency: Maximum parts in flight during multipart uploads.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        provider: CredentialProvider,
        *,
        transport: Transport | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        part_size: int = MIN_PART_SIZE,
        concurrency: int = 1,
    ) -> None:
        check_part_size(part_size)
        if concurrency < 1:
            raise ValidationError(
                f"Concurrency must be at least 1: {concurrency}"
            )
        self._endpoint = endpoint
        self._provider = provider
        # Secrets of the most recently fetched credentials, for redaction
        self._redacted: tuple[str, str | None] | None = None
        self._owns_transport = transport is None
        self._transport = transport or HttpxTransport()
        self._user_agent = user_agent
        self.part_size = part_size
        self.concurrency = concurrency

    @classmethod
    def from_config(
        cls, config: ClientConfig, *, transport: Transport | None = None
    ) -> S3Client:
        """Build a client from a loaded ``ClientConfig``."""
        endpoint = Endpoint.parse(
            config.endpoint,
            secure=config.secure,
            region=config.region,
            virtual_host_style=config.virtual_host_style,
        )
        owns_transport = transport is None
        if transport is None:
            transport = HttpxTransport(timeout=config.timeout_seconds)
        client = cls(
            endpoint,
            config.credentials_provider(),
            transport=transport,
            user_agent=config.user_agent,
            part_size=config.part_size,
            concurrency=config.concurrency,
        )
        client._owns_transport = owns_transport
        return client

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def region(self) -> str:
        return self._endpoint.region

    def get_region(self, bucket_name: str) -> str:
        """Region used to sign requests for ``bucket_name``.

        The client is bound to one region, so this is the configured
        region for every bucket.
        """
        check_bucket_name(bucket_name)
        return self._endpoint.region

    def executor(self, method: str) -> RequestBuilder:
        """Start building a request with the given HTTP method."""
        return RequestBuilder(method, self)

    async def fetch_credentials(self) -> Credentials:
        """Fetch credentials for one request.

        The secret key and session token are registered for log
        redaction. When the provider rotates them, the previous pair is
        unregistered so the registry stays bounded.

        Raises:
            CredentialsError: If the provider fails or returns empty keys.
        """
        credentials = await self._provider.fetch()
        if not credentials.access_key or not credentials.secret_key:
            raise CredentialsError(
                "Credential provider returned an empty access key or "
                "secret key"
            )
        self._update_redaction(credentials)
        return credentials

    def _update_redaction(self, credentials: Credentials) -> None:
        current = (credentials.secret_key, credentials.session_token)
        previous = self._redacted
        if previous == current:
            return
        SecretFilter.register_secret(credentials.secret_key)
        SecretFilter.register_secret(credentials.session_token)
        if previous is not None:
            for secret in previous:
                if secret not in current:
                    SecretFilter.unregister_secret(secret)
        self._redacted = current

    async def _execute(
        self,
        method: str,
        *,
        region: str,
        bucket: str | None,
        key: str | None,
        query: Mapping[str, str],
        headers: httpx.Headers,
        body: bytes | None,
        unsigned_payload: bool = False,
    ) -> S3Response:
        if bucket is not None:
            check_bucket_name(bucket)
        if key is not None:
            if bucket is None:
                raise ValidationError("Missing bucket name.")
            check_object_name(key)

        request_headers = httpx.Headers(headers)
        request_headers["host"] = self._endpoint.host_for(bucket)
        request_headers["user-agent"] = self._user_agent
        if body is None and method in _BODY_METHODS:
            body = b""
        if body is not None:
            request_headers["content-length"] = str(len(body))

        request = PendingRequest(
            method=method,
            path=self._endpoint.path_for(bucket, key),
            query=dict(query),
            headers=request_headers,
            body=body,
        )
        content_hash = (
            UNSIGNED_PAYLOAD if unsigned_payload else payload_hash(body)
        )

        credentials = await self.fetch_credentials()
        context = SigningContext.now(region, content_hash)
        sign_request(request, credentials, context)

        url = self._endpoint.url_for(bucket, key, request.query)
        logger.debug("%s %s", method, url)
        response = await self._transport.send(
            method, url, request.headers, request.body
        )
        logger.debug("%s %s -> %d", method, url, response.status_code)
        return response

    async def aclose(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport:
            await self._transport.aclose()

    async def __aenter__(self) -> S3Client:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
