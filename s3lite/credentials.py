# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Credential values and providers.

A provider is anything with an ``async fetch()`` returning
``Credentials``. The client calls it once per request and never keeps
the result, so providers are free to rotate keys between calls.

Providers:
    StaticProvider: fixed keys.
    EnvironmentProvider: keys read from the process environment.
    RefreshingProvider: keys from an async callable, cached until they
        expire.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

from s3lite.dotenv_loader import load_dotenv_once
from s3lite.errors import CredentialsError


logger = logging.getLogger(__name__)

# Refresh this long before the provider-reported expiry
_EXPIRY_MARGIN = timedelta(seconds=10)

_ACCESS_KEY_VARS = ("AWS_ACCESS_KEY_ID", "MINIO_ACCESS_KEY")
_SECRET_KEY_VARS = ("AWS_SECRET_ACCESS_KEY", "MINIO_SECRET_KEY")
_SESSION_TOKEN_VARS = ("AWS_SESSION_TOKEN",)


@dataclass(frozen=True)
class Credentials:
    """Access credentials for request signing.

    Attributes:
        access_key: Access key ID.
        secret_key: Secret access key.
        session_token: Temporary session token, if any.
        expiration: When temporary credentials stop being valid.
    """

    access_key: str
    secret_key: str
    session_token: str | None = None
    expiration: datetime | None = None

    def __repr__(self) -> str:
        return (
            f"Credentials(access_key={self.access_key!r}, "
            f"secret_key='***', expiration={self.expiration!r})"
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        """Return True if the credentials are expired or about to expire."""
        if self.expiration is None:
            return False
        now = now or datetime.now(UTC)
        return now + _EXPIRY_MARGIN >= self.expiration


class CredentialProvider(Protocol):
    """Source of credentials for the client."""

    async def fetch(self) -> Credentials:
        """Return valid, non-expired credentials or raise."""
        ...


class StaticProvider:
    """Provider returning the same credentials on every call."""

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        session_token: str | None = None,
    ) -> None:
        self._credentials = Credentials(
            access_key=access_key,
            secret_key=secret_key,
            session_token=session_token,
        )

    async def fetch(self) -> Credentials:
        return self._credentials


class EnvironmentProvider:
    """Provider reading credentials from environment variables.

    Checks ``AWS_ACCESS_KEY_ID``/``AWS_SECRET_ACCESS_KEY`` first, then
    ``MINIO_ACCESS_KEY``/``MINIO_SECRET_KEY``. ``AWS_SESSION_TOKEN`` is
    optional. A ``.env`` file is loaded once before the first lookup.
    The environment is re-read on every fetch.
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ

    async def fetch(self) -> Credentials:
        if self._environ is None:
            load_dotenv_once()
        environ = self._environ if self._environ is not None else os.environ

        access_key = _first_set(environ, _ACCESS_KEY_VARS)
        secret_key = _first_set(environ, _SECRET_KEY_VARS)
        if not access_key or not secret_key:
            raise CredentialsError(
                "No credentials in environment: set "
                "AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY or "
                "MINIO_ACCESS_KEY/MINIO_SECRET_KEY"
            )
        return Credentials(
            access_key=access_key,
            secret_key=secret_key,
            session_token=_first_set(environ, _SESSION_TOKEN_VARS),
        )


class RefreshingProvider:
    """Provider caching credentials from an async source until expiry.

    Concurrent callers share a single in-flight refresh.

    Args:
        refresh: Coroutine function returning fresh credentials, e.g. an
            STS AssumeRole call. Credentials without an expiration are
            cached forever.
    """

    def __init__(self, refresh: Callable[[], Awaitable[Credentials]]) -> None:
        self._refresh = refresh
        self._cached: Credentials | None = None
        self._lock = asyncio.Lock()

    async def fetch(self) -> Credentials:
        cached = self._cached
        if cached is not None and not cached.is_expired():
            return cached

        async with self._lock:
            # Another task may have refreshed while we waited
            cached = self._cached
            if cached is not None and not cached.is_expired():
                return cached

            logger.debug("Refreshing credentials")
            try:
                fresh = await self._refresh()
            except CredentialsError:
                raise
            except Exception as e:
                raise CredentialsError(
                    f"Failed to refresh credentials: {e}"
                ) from e

            if fresh.is_expired():
                raise CredentialsError(
                    f"Refreshed credentials already expired at "
                    f"{fresh.expiration}"
                )
            self._cached = fresh
            return fresh


def _first_set(
    environ: Mapping[str, str], names: tuple[str, ...]
) -> str | None:
    for name in names:
        value = environ.get(name)
        if value:
            return value
    return None
