# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Exception hierarchy for s3lite.

Four failure families are kept distinct so callers can tell them apart:

- ``ValidationError``: bad local input, detected before any network I/O.
- ``ServiceError``: the service answered with a non-2xx status.
- ``ParseError``: the service answered, but the body could not be
  understood.
- ``TransportError``: the request never produced a response.

Local file I/O failures surface as the builtin ``OSError``.
"""


class S3LiteError(Exception):
    """Base exception for all s3lite errors."""


class ValidationError(S3LiteError, ValueError):
    """Raised when arguments are rejected locally."""


class SessionStateError(ValidationError):
    """Raised when a multipart session is used after it terminated."""


class CredentialsError(S3LiteError):
    """Raised when a credential provider cannot supply usable credentials."""


class ParseError(S3LiteError):
    """Raised when a response body does not have the expected shape."""


class TransportError(S3LiteError):
    """Raised when the HTTP transport fails to produce a response."""


class ServiceError(S3LiteError):
    """Error response returned by the service.

    Attributes:
        code: Machine-readable error code (e.g. ``NoSuchKey``).
        message: Human-readable message from the service.
        resource: Resource the error refers to.
        request_id: Service request ID, for support requests.
        host_id: Service host ID.
        bucket_name: Bucket named in the error, if any.
        object_name: Object key named in the error, if any.
        status_code: HTTP status of the response.
    """

    def __init__(
        self,
        code: str,
        message: str = "",
        *,
        resource: str = "",
        request_id: str = "",
        host_id: str = "",
        bucket_name: str = "",
        object_name: str = "",
        status_code: int = 0,
    ) -> None:
        super().__init__(code, message)
        self.code = code
        self.message = message
        self.resource = resource
        self.request_id = request_id
        self.host_id = host_id
        self.bucket_name = bucket_name
        self.object_name = object_name
        self.status_code = status_code

    def __str__(self) -> str:
        text = f"{self.code}: {self.message}" if self.message else self.code
        if self.resource:
            text += f" (resource: {self.resource})"
        if self.request_id:
            text += f" (request id: {self.request_id})"
        return text
