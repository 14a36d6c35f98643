# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Object-level operations.

Uploads up to the client's part size go out as a single PUT; anything
larger is handed to ``MultipartUploader``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, Mapping
from os import PathLike
from pathlib import Path
from typing import TYPE_CHECKING

from s3lite.datatypes import (
    ObjectStat,
    ObjectWriteResult,
    build_legal_hold,
    build_tags,
    parse_copy_object,
    parse_legal_hold,
    parse_tags,
)
from s3lite.errors import ServiceError, ValidationError
from s3lite.multipart import MultipartUploader
from s3lite.signing import uri_encode
from s3lite.transport import S3Response
from s3lite.validation import (
    check_bucket_name,
    check_object_name,
    check_object_size,
)


if TYPE_CHECKING:
    from s3lite.client import S3Client
    from s3lite.executor import RequestBuilder


logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

_METADATA_PREFIX = "x-amz-meta-"


def _write_headers(
    content_type: str | None,
    metadata: Mapping[str, str] | None,
    headers: Mapping[str, str] | None,
) -> dict[str, str]:
    result = {"Content-Type": content_type or DEFAULT_CONTENT_TYPE}
    for key, value in (metadata or {}).items():
        name = key if key.lower().startswith(_METADATA_PREFIX) else (
            _METADATA_PREFIX + key
        )
        result[name] = value
    if headers:
        result.update(headers)
    return result


class ObjectOperations:
    """Object operations mixed into ``S3Client``."""

    if TYPE_CHECKING:
        part_size: int
        concurrency: int

        def executor(self, method: str) -> RequestBuilder: ...

    def _object_executor(
        self,
        method: str,
        bucket_name: str,
        object_name: str,
        *,
        version_id: str | None = None,
    ) -> RequestBuilder:
        builder = self.executor(method).bucket(bucket_name).object(object_name)
        if version_id:
            builder.query("versionId", version_id)
        return builder

    def _uploader(self) -> MultipartUploader:
        client: S3Client = self  # type: ignore[assignment]
        return MultipartUploader(
            client, part_size=self.part_size, concurrency=self.concurrency
        )

    async def put_object(
        self,
        bucket_name: str,
        object_name: str,
        data: bytes | str,
        *,
        content_type: str | None = None,
        metadata: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ObjectWriteResult:
        """Upload an in-memory payload.

        Payloads larger than the client's part size are uploaded as a
        multipart upload.

        Args:
            content_type: Defaults to ``application/octet-stream``.
            metadata: User metadata, sent as ``x-amz-meta-*`` headers.
            headers: Extra request headers.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        check_object_size(len(data))
        write_headers = _write_headers(content_type, metadata, headers)

        if len(data) > self.part_size:
            return await self._uploader().upload_bytes(
                bucket_name, object_name, data, headers=write_headers
            )

        response = await (
            self._object_executor("PUT", bucket_name, object_name)
            .headers_merge(write_headers)
            .body(data)
            .send_ok()
        )
        await response.read()
        return ObjectWriteResult(
            bucket_name=bucket_name,
            object_name=object_name,
            etag=response.etag,
            version_id=response.headers.get("x-amz-version-id", ""),
        )

    async def put_object_stream(
        self,
        bucket_name: str,
        object_name: str,
        stream: AsyncIterable[bytes],
        *,
        length: int | None = None,
        content_type: str | None = None,
        metadata: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ObjectWriteResult:
        """Upload an async byte stream as a multipart upload.

        Args:
            length: Expected total size, if known. The upload is aborted
                if the stream yields a different number of bytes.
        """
        check_bucket_name(bucket_name)
        check_object_name(object_name)
        return await self._uploader().upload_stream(
            bucket_name,
            object_name,
            stream,
            length=length,
            headers=_write_headers(content_type, metadata, headers),
        )

    async def fput_object(
        self,
        bucket_name: str,
        object_name: str,
        path: str | PathLike[str],
        *,
        content_type: str | None = None,
        metadata: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ObjectWriteResult:
        """Upload a local file.

        Raises:
            OSError: If the file cannot be read.
        """
        path = Path(path)
        size = path.stat().st_size
        check_object_size(size)
        if size <= self.part_size:
            data = await asyncio.to_thread(path.read_bytes)
            return await self.put_object(
                bucket_name,
                object_name,
                data,
                content_type=content_type,
                metadata=metadata,
                headers=headers,
            )
        return await self._uploader().upload_file(
            bucket_name,
            object_name,
            path,
            headers=_write_headers(content_type, metadata, headers),
        )

    async def get_object(
        self,
        bucket_name: str,
        object_name: str,
        *,
        version_id: str | None = None,
        offset: int = 0,
        length: int | None = None,
    ) -> S3Response:
        """Download an object, optionally a byte range of it.

        The body is not read; the caller must read or close the
        returned response.
        """
        if offset < 0 or (length is not None and length <= 0):
            raise ValidationError(
                f"Invalid range: offset={offset}, length={length}"
            )
        builder = self._object_executor(
            "GET", bucket_name, object_name, version_id=version_id
        )
        if length is not None:
            builder.header("Range", f"bytes={offset}-{offset + length - 1}")
        elif offset:
            builder.header("Range", f"bytes={offset}-")
        return await builder.send_ok()

    async def fget_object(
        self,
        bucket_name: str,
        object_name: str,
        path: str | PathLike[str],
        *,
        version_id: str | None = None,
    ) -> int:
        """Download an object into a local file.

        Returns:
            Number of bytes written.
        """
        path = Path(path)
        response = await self.get_object(
            bucket_name, object_name, version_id=version_id
        )
        written = 0
        async with response:
            with path.open("wb") as f:
                async for chunk in response.aiter_bytes():
                    await asyncio.to_thread(f.write, chunk)
                    written += len(chunk)
        logger.debug(
            "Downloaded %s/%s to %s (%d bytes)",
            bucket_name,
            object_name,
            path,
            written,
        )
        return written

    async def stat_object(
        self,
        bucket_name: str,
        object_name: str,
        *,
        version_id: str | None = None,
    ) -> ObjectStat | None:
        """Return object metadata, or None if the HEAD request fails."""
        response = await self._object_executor(
            "HEAD", bucket_name, object_name, version_id=version_id
        ).send()
        await response.aclose()
        if not response.ok:
            return None

        headers = response.headers
        return ObjectStat(
            bucket_name=bucket_name,
            object_name=object_name,
            size=response.content_length or 0,
            etag=response.etag,
            last_modified=headers.get("last-modified", ""),
            content_type=headers.get("content-type", ""),
            version_id=headers.get("x-amz-version-id", ""),
            metadata={
                key[len(_METADATA_PREFIX) :]: value
                for key, value in headers.items()
                if key.lower().startswith(_METADATA_PREFIX)
            },
        )

    async def remove_object(
        self,
        bucket_name: str,
        object_name: str,
        *,
        version_id: str | None = None,
    ) -> None:
        response = await self._object_executor(
            "DELETE", bucket_name, object_name, version_id=version_id
        ).send_ok()
        await response.read()

    async def copy_object(
        self,
        bucket_name: str,
        object_name: str,
        src_bucket_name: str,
        src_object_name: str,
        *,
        src_version_id: str | None = None,
        replace_metadata: bool = False,
        content_type: str | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> ObjectWriteResult:
        """Server-side copy of ``src_bucket_name/src_object_name``.

        Args:
            replace_metadata: Replace the metadata instead of copying it
                from the source. ``content_type`` and ``metadata`` are
                only sent when this is set.
        """
        check_bucket_name(src_bucket_name)
        check_object_name(src_object_name)
        source = "/" + src_bucket_name + "/" + uri_encode(
            src_object_name, encode_slash=False
        )
        if src_version_id:
            source += "?versionId=" + uri_encode(src_version_id)

        builder = self._object_executor(
            "PUT", bucket_name, object_name
        ).header("x-amz-copy-source", source)
        if replace_metadata:
            builder.header("x-amz-metadata-directive", "REPLACE")
            builder.headers_merge(_write_headers(content_type, metadata, None))

        response = await builder.send_ok()
        body = await response.read()
        return ObjectWriteResult(
            bucket_name=bucket_name,
            object_name=object_name,
            etag=parse_copy_object(body, status_code=response.status_code),
            version_id=response.headers.get("x-amz-version-id", ""),
        )

    async def set_content_type(
        self, bucket_name: str, object_name: str, content_type: str
    ) -> ObjectWriteResult | None:
        """Change an object's content type in place.

        Returns None without doing anything if the object does not exist.
        """
        stat = await self.stat_object(bucket_name, object_name)
        if stat is None:
            return None
        return await self.copy_object(
            bucket_name,
            object_name,
            bucket_name,
            object_name,
            replace_metadata=True,
            content_type=content_type,
            metadata=stat.metadata,
        )

    async def get_object_tags(
        self,
        bucket_name: str,
        object_name: str,
        *,
        version_id: str | None = None,
    ) -> dict[str, str]:
        body = await (
            self._object_executor(
                "GET", bucket_name, object_name, version_id=version_id
            )
            .query("tagging")
            .send_bytes_ok()
        )
        return parse_tags(body)

    async def set_object_tags(
        self,
        bucket_name: str,
        object_name: str,
        tags: Mapping[str, str],
        *,
        version_id: str | None = None,
    ) -> None:
        response = await (
            self._object_executor(
                "PUT", bucket_name, object_name, version_id=version_id
            )
            .query("tagging")
            .body(build_tags(tags))
            .content_md5()
            .send_ok()
        )
        await response.read()

    async def delete_object_tags(
        self,
        bucket_name: str,
        object_name: str,
        *,
        version_id: str | None = None,
    ) -> None:
        response = await (
            self._object_executor(
                "DELETE", bucket_name, object_name, version_id=version_id
            )
            .query("tagging")
            .send_ok()
        )
        await response.read()

    async def is_object_legal_hold_enabled(
        self,
        bucket_name: str,
        object_name: str,
        *,
        version_id: str | None = None,
    ) -> bool:
        """Return True if a legal hold is set on the object."""
        try:
            body = await (
                self._object_executor(
                    "GET", bucket_name, object_name, version_id=version_id
                )
                .query("legal-hold")
                .send_bytes_ok()
            )
        except ServiceError as e:
            if e.code == "NoSuchObjectLockConfiguration":
                return False
            raise
        return parse_legal_hold(body)

    async def enable_object_legal_hold(
        self,
        bucket_name: str,
        object_name: str,
        *,
        version_id: str | None = None,
    ) -> None:
        await self._set_legal_hold(bucket_name, object_name, True, version_id)

    async def disable_object_legal_hold(
        self,
        bucket_name: str,
        object_name: str,
        *,
        version_id: str | None = None,
    ) -> None:
        await self._set_legal_hold(bucket_name, object_name, False, version_id)

    async def _set_legal_hold(
        self,
        bucket_name: str,
        object_name: str,
        enabled: bool,
        version_id: str | None,
    ) -> None:
        response = await (
            self._object_executor(
                "PUT", bucket_name, object_name, version_id=version_id
            )
            .query("legal-hold")
            .body(build_legal_hold(enabled))
            .content_md5()
            .send_ok()
        )
        await response.read()
