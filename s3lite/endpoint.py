# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Service endpoint and request addressing."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass

from s3lite.errors import ValidationError
from s3lite.signing import canonical_query_string, canonical_uri


DEFAULT_REGION = "us-east-1"

_HOST_RE = re.compile(r"^(http(s)?://)?[A-Za-z0-9_\-.]+(:\d+)?$")
_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class Endpoint:
    """Where and how requests are addressed.

    Built once per client and shared read-only by every request.

    Attributes:
        scheme: ``http`` or ``https``.
        authority: Hostname with optional ``:port``.
        region: Region used in every credential scope.
        virtual_host_style: Address buckets as ``bucket.host`` instead of
            ``host/bucket``.
    """

    scheme: str
    authority: str
    region: str = DEFAULT_REGION
    virtual_host_style: bool = False

    @classmethod
    def parse(
        cls,
        host: str,
        *,
        secure: bool = True,
        region: str = DEFAULT_REGION,
        virtual_host_style: bool = False,
    ) -> Endpoint:
        """Parse ``[http(s)://]hostname[:port]`` into an endpoint.

        An explicit scheme in ``host`` takes precedence over ``secure``.

        Raises:
            ValidationError: If the host is malformed or region is empty.
        """
        host = host.strip().rstrip("/")
        if not _HOST_RE.match(host):
            raise ValidationError(f"Invalid hostname: {host!r}")
        if not region:
            raise ValidationError("Region cannot be empty.")

        if host.startswith("https://"):
            scheme, authority = "https", host[len("https://") :]
        elif host.startswith("http://"):
            scheme, authority = "http", host[len("http://") :]
        else:
            scheme, authority = ("https" if secure else "http"), host

        return cls(
            scheme=scheme,
            authority=_strip_default_port(scheme, authority),
            region=region,
            virtual_host_style=virtual_host_style,
        )

    @property
    def secure(self) -> bool:
        return self.scheme == "https"

    def _use_virtual_host(self, bucket: str | None) -> bool:
        if not self.virtual_host_style or not bucket:
            return False
        # Wildcard TLS certificates only cover a single label
        return not (self.secure and "." in bucket)

    def host_for(self, bucket: str | None = None) -> str:
        """Value of the ``Host`` header for a request to ``bucket``."""
        if self._use_virtual_host(bucket):
            return f"{bucket}.{self.authority}"
        return self.authority

    def path_for(
        self, bucket: str | None = None, key: str | None = None
    ) -> str:
        """Raw (unencoded) request path for ``bucket``/``key``."""
        if bucket is None:
            return "/"
        if self._use_virtual_host(bucket):
            return f"/{key}" if key is not None else "/"
        if key is None:
            return f"/{bucket}/"
        return f"/{bucket}/{key}"

    def url_for(
        self,
        bucket: str | None = None,
        key: str | None = None,
        query: Mapping[str, str] | None = None,
    ) -> str:
        """Full request URL with the canonical path and query encoding."""
        url = (
            f"{self.scheme}://{self.host_for(bucket)}"
            f"{canonical_uri(self.path_for(bucket, key))}"
        )
        if query:
            url += "?" + canonical_query_string(query)
        return url


def _strip_default_port(scheme: str, authority: str) -> str:
    host, sep, port = authority.rpartition(":")
    if sep and port.isdigit() and int(port) == _DEFAULT_PORTS[scheme]:
        return host
    return authority
