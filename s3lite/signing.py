# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""AWS Signature Version 4 request signing for S3.

Two layers:

- Canonicalization: turns a pending request into the canonical request
  string (method, URI, query, headers, signed-header list, payload hash).
- Signing: derives the per-day signing key from the secret key and
  produces the ``Authorization`` header value.

All functions are pure; the only clock read happens in
``SigningContext.now()``, which callers invoke immediately before send.
"""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import httpx


if TYPE_CHECKING:
    from s3lite.credentials import Credentials


ALGORITHM = "AWS4-HMAC-SHA256"
SERVICE = "s3"

EMPTY_SHA256 = hashlib.sha256(b"").hexdigest()
UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"

AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"
SCOPE_DATE_FORMAT = "%Y%m%d"

_AWS_UNRESERVED = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~"
)

# Headers the service (or an intermediary) may rewrite in transit
_UNSIGNED_HEADERS = frozenset({"authorization", "user-agent"})


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass
class PendingRequest:
    """A request that has been assembled but not yet signed.

    Attributes:
        method: HTTP method (upper-case).
        path: Raw, unencoded request path (``/bucket/key`` or ``/key``).
        query: Query parameters; keys are unique.
        headers: Case-insensitive request headers.
        body: Request body, or None when absent.
    """

    method: str
    path: str
    query: dict[str, str] = field(default_factory=dict)
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: bytes | None = None


@dataclass(frozen=True)
class SigningContext:
    """Per-request signing parameters.

    Attributes:
        timestamp: Signing time (UTC, second precision).
        region: Region the credential scope is bound to.
        payload_hash: Hex SHA-256 of the body or ``UNSIGNED-PAYLOAD``.
        service: Service name in the credential scope.
    """

    timestamp: datetime
    region: str
    payload_hash: str = EMPTY_SHA256
    service: str = SERVICE

    @classmethod
    def now(
        cls, region: str, payload_hash: str = EMPTY_SHA256
    ) -> SigningContext:
        """Build a context stamped with the current time."""
        return cls(
            timestamp=datetime.now(UTC).replace(microsecond=0),
            region=region,
            payload_hash=payload_hash,
        )

    @property
    def amz_date(self) -> str:
        """ISO-8601 basic timestamp for the ``X-Amz-Date`` header."""
        return self.timestamp.astimezone(UTC).strftime(AMZ_DATE_FORMAT)

    @property
    def date_stamp(self) -> str:
        """Date component (YYYYMMDD) of the credential scope."""
        return self.timestamp.astimezone(UTC).strftime(SCOPE_DATE_FORMAT)

    @property
    def credential_scope(self) -> str:
        """Credential scope (date/region/service/aws4_request)."""
        return f"{self.date_stamp}/{self.region}/{self.service}/aws4_request"


def payload_hash(body: bytes | None) -> str:
    """Hex SHA-256 of a request body; absent bodies hash as empty."""
    if not body:
        return EMPTY_SHA256
    return hashlib.sha256(body).hexdigest()


# ---------------------------------------------------------------------------
# URI encoding (AWS-specific RFC 3986 subset)
# ---------------------------------------------------------------------------


def uri_encode(value: str, *, encode_slash: bool = True) -> str:
    """URI-encode a value using AWS's rules.

    - Unreserved characters are not encoded: A-Z, a-z, 0-9, -, _, ., ~
    - Everything else is percent-encoded per UTF-8 byte as %XX
      (upper-case hex)
    - Forward slashes are preserved when ``encode_slash`` is False, which
      is only correct for path segments

    Args:
        value: String to encode.
        encode_slash: If True, encode '/'; if False, preserve '/'.

    Returns:
        URI-encoded string.
    """
    result: list[str] = []
    for ch in value:
        if ch in _AWS_UNRESERVED:
            result.append(ch)
        elif ch == "/" and not encode_slash:
            result.append("/")
        else:
            result.extend(f"%{byte:02X}" for byte in ch.encode("utf-8"))
    return "".join(result)


# ---------------------------------------------------------------------------
# Canonical request construction
# ---------------------------------------------------------------------------


def canonical_uri(path: str) -> str:
    """Build the canonical URI from a raw request path.

    S3 single-encodes and does not normalize, so ``//`` in object keys
    survives verbatim. Keys with ``.`` or ``..`` segments are rejected
    by ``check_object_name`` before they reach this point.

    Args:
        path: Raw (not yet percent-encoded) request path.

    Returns:
        Encoded path, also used verbatim on the wire.
    """
    if not path:
        return "/"
    return uri_encode(path, encode_slash=False)


def canonical_query_string(query: Mapping[str, str]) -> str:
    """Build the canonical query string.

    Keys and values are encoded with ``/`` escaped, then sorted by
    encoded key (and value), so insertion order never matters.

    Args:
        query: Query parameters.

    Returns:
        Canonical query string (``k=v`` pairs joined by ``&``).
    """
    encoded = sorted(
        (uri_encode(str(k)), uri_encode(str(v))) for k, v in query.items()
    )
    return "&".join(f"{k}={v}" for k, v in encoded)


def signed_header_names(headers: Mapping[str, str]) -> list[str]:
    """Return the sorted, lower-cased names of the headers to sign."""
    names = {name.lower() for name in headers}
    return sorted(names - _UNSIGNED_HEADERS)


def canonical_headers_string(
    headers: Mapping[str, str], signed_headers_list: list[str]
) -> str:
    """Build the canonical headers block.

    Args:
        headers: Request headers (name -> value).
        signed_headers_list: Signed header names (lower-case).

    Returns:
        Canonical headers (each line ``name:value`` plus newline).
    """
    lower_headers: dict[str, str] = {}
    for name, value in headers.items():
        lower_headers[name.lower()] = value

    lines: list[str] = []
    for name in sorted(signed_headers_list):
        value = lower_headers.get(name, "")
        # Trim and collapse sequential whitespace
        trimmed = " ".join(value.split())
        lines.append(f"{name}:{trimmed}\n")

    return "".join(lines)


def build_canonical_request(
    method: str,
    path: str,
    query: Mapping[str, str],
    headers: Mapping[str, str],
    payload_hash: str,
) -> tuple[str, str]:
    """Build the canonical request string.

    Args:
        method: HTTP method.
        path: Raw request path.
        query: Query parameters.
        headers: Request headers; all except ``_UNSIGNED_HEADERS`` are
            signed.
        payload_hash: Value of ``x-amz-content-sha256``.

    Returns:
        Tuple of (canonical request, semicolon-joined signed headers).
    """
    signed_list = signed_header_names(headers)
    signed_headers = ";".join(signed_list)

    creq = "\n".join(
        [
            method.upper(),
            canonical_uri(path),
            canonical_query_string(query),
            canonical_headers_string(headers, signed_list),
            signed_headers,
            payload_hash,
        ]
    )
    return creq, signed_headers


# ---------------------------------------------------------------------------
# SigV4 signing
# ---------------------------------------------------------------------------


def _hmac_sha256(key: bytes, msg: str | bytes) -> bytes:
    if isinstance(msg, str):
        msg = msg.encode("utf-8")
    return hmac.new(key, msg, hashlib.sha256).digest()


def derive_signing_key(
    secret_key: str, date: str, region: str, service: str = SERVICE
) -> bytes:
    """Derive the SigV4 signing key.

    Args:
        secret_key: Secret access key.
        date: Date string (YYYYMMDD).
        region: Region name.
        service: Service name.

    Returns:
        Derived signing key bytes.
    """
    k_date = _hmac_sha256(("AWS4" + secret_key).encode("utf-8"), date)
    k_region = _hmac_sha256(k_date, region)
    k_service = _hmac_sha256(k_region, service)
    return _hmac_sha256(k_service, "aws4_request")


def build_string_to_sign(
    timestamp: str, scope: str, canonical_request: str
) -> str:
    """Build the SigV4 string to sign.

    Args:
        timestamp: ISO-8601 basic timestamp (``X-Amz-Date``).
        scope: Credential scope.
        canonical_request: The canonical request string.
    """
    return "\n".join(
        [
            ALGORITHM,
            timestamp,
            scope,
            hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
        ]
    )


def sign(signing_key: bytes, string_to_sign: str) -> str:
    """Compute the hex-encoded SigV4 signature."""
    return hmac.new(
        signing_key, string_to_sign.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def sign_v4_authorization(
    *,
    method: str,
    path: str,
    query: Mapping[str, str],
    headers: Mapping[str, str],
    access_key: str,
    secret_key: str,
    context: SigningContext,
) -> str:
    """Compute the ``Authorization`` header value for a request.

    ``headers`` must already contain every header that will be sent
    (including ``host``, ``x-amz-date`` and ``x-amz-content-sha256``),
    since the signed-header list is derived from it.

    Returns:
        Header value in the ``AWS4-HMAC-SHA256`` scheme.
    """
    creq, signed_headers = build_canonical_request(
        method, path, query, headers, context.payload_hash
    )
    scope = context.credential_scope
    string_to_sign = build_string_to_sign(context.amz_date, scope, creq)
    signing_key = derive_signing_key(
        secret_key, context.date_stamp, context.region, context.service
    )
    signature = sign(signing_key, string_to_sign)
    return (
        f"{ALGORITHM} Credential={access_key}/{scope}, "
        f"SignedHeaders={signed_headers}, "
        f"Signature={signature}"
    )


def sign_request(
    request: PendingRequest,
    credentials: Credentials,
    context: SigningContext,
) -> str:
    """Stamp signing headers onto ``request`` and sign it.

    Sets ``X-Amz-Date``, ``X-Amz-Content-Sha256``, the optional
    ``X-Amz-Security-Token`` and finally ``Authorization``. The token is
    added before canonicalization so it is covered by the signature.

    Returns:
        The ``Authorization`` header value.
    """
    request.headers["x-amz-date"] = context.amz_date
    request.headers["x-amz-content-sha256"] = context.payload_hash
    if credentials.session_token:
        request.headers["x-amz-security-token"] = credentials.session_token
    if "authorization" in request.headers:
        del request.headers["authorization"]

    authorization = sign_v4_authorization(
        method=request.method,
        path=request.path,
        query=request.query,
        headers=request.headers,
        access_key=credentials.access_key,
        secret_key=credentials.secret_key,
        context=context,
    )
    request.headers["authorization"] = authorization
    return authorization
