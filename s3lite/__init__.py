# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Async client for S3-compatible object storage.

Provides:
- AWS Signature Version 4 request signing (signing)
- A fluent request builder over an httpx transport (S3Client.executor)
- Bucket and object operations (S3Client)
- Multipart uploads with abort on failure (MultipartSession,
  MultipartUploader)
- YAML configuration with ``!env`` tags (ClientConfig)
"""

from s3lite.client import S3Client
from s3lite.config import ClientConfig, ConfigError
from s3lite.credentials import (
    CredentialProvider,
    Credentials,
    EnvironmentProvider,
    RefreshingProvider,
    StaticProvider,
)
from s3lite.datatypes import (
    Bucket,
    ListObjectsResult,
    ObjectInfo,
    ObjectStat,
    ObjectWriteResult,
    Owner,
    Part,
)
from s3lite.endpoint import Endpoint
from s3lite.errors import (
    CredentialsError,
    ParseError,
    S3LiteError,
    ServiceError,
    SessionStateError,
    TransportError,
    ValidationError,
)
from s3lite.executor import RequestBuilder
from s3lite.multipart import (
    MultipartSession,
    MultipartUploader,
    SessionState,
    split_part_sizes,
)
from s3lite.transport import HttpxTransport, S3Response, Transport


__version__ = "0.1.0"

__all__ = [
    # client
    "S3Client",
    "RequestBuilder",
    "Endpoint",
    # config
    "ClientConfig",
    "ConfigError",
    # credentials
    "CredentialProvider",
    "Credentials",
    "EnvironmentProvider",
    "RefreshingProvider",
    "StaticProvider",
    # datatypes
    "Bucket",
    "ListObjectsResult",
    "ObjectInfo",
    "ObjectStat",
    "ObjectWriteResult",
    "Owner",
    "Part",
    # errors
    "CredentialsError",
    "ParseError",
    "S3LiteError",
    "ServiceError",
    "SessionStateError",
    "TransportError",
    "ValidationError",
    # multipart
    "MultipartSession",
    "MultipartUploader",
    "SessionState",
    "split_part_sizes",
    # transport
    "HttpxTransport",
    "S3Response",
    "Transport",
]
