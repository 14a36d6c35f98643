# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Multipart upload session and orchestrator.

A ``MultipartSession`` tracks one server-side upload::

    INITIATED ──upload_part──> UPLOADING ──complete──> COMPLETED
        │                          │
        └──────────abort───────────┴──────abort──────> ABORTED

``MultipartUploader`` drives sessions from buffers, files or async byte
streams. Any failure after initiation triggers an abort before the error
is propagated. If the abort itself fails, the abort error is raised instead
(chained to the original), so callers always learn that cleanup did not
happen.

Cancelling the calling task mid-upload does not abort: the upload stays
open on the service until a lifecycle rule removes it.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import AsyncIterable, AsyncIterator, Mapping
from os import PathLike
from pathlib import Path
from typing import TYPE_CHECKING

from s3lite.datatypes import (
    ObjectWriteResult,
    Part,
    build_complete_multipart_upload,
    parse_complete_multipart_upload,
    parse_initiate_multipart_upload,
)
from s3lite.errors import ParseError, SessionStateError, ValidationError
from s3lite.validation import (
    MAX_OBJECT_SIZE,
    MAX_PART_COUNT,
    MAX_PART_SIZE,
    MIN_PART_SIZE,
    check_object_size,
    check_part_size,
)


if TYPE_CHECKING:
    from s3lite.client import S3Client


logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    INITIATED = "initiated"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ABORTED = "aborted"


def split_part_sizes(length: int, part_size: int) -> list[int]:
    """Split ``length`` bytes into part sizes.

    Every part but the last is exactly ``part_size``; the last takes the
    remainder. A payload no larger than ``part_size`` is a single part.

    Examples:
        >>> split_part_sizes(12, 5)
        [5, 5, 2]
        >>> split_part_sizes(4, 5)
        [4]
    """
    if part_size <= 0:
        raise ValidationError(f"Part size must be positive: {part_size}")
    if length <= part_size:
        return [length]
    full, remainder = divmod(length, part_size)
    sizes = [part_size] * full
    if remainder:
        sizes.append(remainder)
    return sizes


class MultipartSession:
    """One multipart upload, owned by the task that created it.

    Not safe to share between independent callers; the orchestrator's
    bounded-concurrency mode is the only supported concurrent use.

    Attributes:
        bucket_name: Target bucket.
        object_name: Target object key.
        upload_id: Opaque upload ID assigned by the service.
        state: Current ``SessionState``.
        parts: Parts uploaded so far, in completion order.
    """

    def __init__(
        self,
        client: S3Client,
        bucket_name: str,
        object_name: str,
        upload_id: str,
    ) -> None:
        self._client = client
        self.bucket_name = bucket_name
        self.object_name = object_name
        self.upload_id = upload_id
        self.state = SessionState.INITIATED
        self.parts: list[Part] = []

    @classmethod
    async def initiate(
        cls,
        client: S3Client,
        bucket_name: str,
        object_name: str,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> MultipartSession:
        """Start a multipart upload on the service.

        Raises:
            ServiceError: If the service refuses the upload.
            ParseError: If the response carries no upload ID.
        """
        body = await (
            client.executor("POST")
            .bucket(bucket_name)
            .object(object_name)
            .query("uploads")
            .headers_merge(headers)
            .send_bytes_ok()
        )
        upload_id = parse_initiate_multipart_upload(body)
        logger.info(
            "Initiated multipart upload %s for %s/%s",
            upload_id,
            bucket_name,
            object_name,
        )
        return cls(client, bucket_name, object_name, upload_id)

    @property
    def is_terminal(self) -> bool:
        return self.state in (SessionState.COMPLETED, SessionState.ABORTED)

    @property
    def size(self) -> int:
        """Total bytes uploaded so far."""
        return sum(part.size for part in self.parts)

    def _check_open(self, action: str) -> None:
        if self.is_terminal:
            raise SessionStateError(
                f"Cannot {action} multipart upload {self.upload_id}: "
                f"session is {self.state.value}"
            )

    async def upload_part(self, part_number: int, data: bytes) -> Part:
        """Upload one part and record it.

        Raises:
            SessionStateError: If the session is completed or aborted.
            ValidationError: If the part number or size is out of range.
            ServiceError: If the service rejects the part.
        """
        self._check_open("upload a part to")
        if not 1 <= part_number <= MAX_PART_COUNT:
            raise ValidationError(
                f"Part number must be between 1 and {MAX_PART_COUNT}: "
                f"{part_number}"
            )
        if len(data) > MAX_PART_SIZE:
            raise ValidationError(
                f"Part {part_number} is larger than 5 GiB: {len(data)}"
            )
        if any(part.part_number == part_number for part in self.parts):
            raise ValidationError(
                f"Part {part_number} was already uploaded to "
                f"{self.upload_id}"
            )

        response = await (
            self._client.executor("PUT")
            .bucket(self.bucket_name)
            .object(self.object_name)
            .query("partNumber", str(part_number))
            .query("uploadId", self.upload_id)
            .body(data)
            .send_ok()
        )
        await response.read()
        if not response.etag:
            raise ParseError(
                f"Upload of part {part_number} returned no ETag header"
            )

        # A concurrent abort may have landed while this part was in flight
        self._check_open("record a part in")
        part = Part(part_number=part_number, etag=response.etag, size=len(data))
        self.parts.append(part)
        self.state = SessionState.UPLOADING
        logger.debug(
            "Uploaded part %d (%d bytes) of %s",
            part_number,
            len(data),
            self.upload_id,
        )
        return part

    def sorted_parts(self) -> list[Part]:
        """Validate and return the parts in part-number order.

        Raises:
            ValidationError: If there are no parts, numbering is not
                contiguous from 1, or a non-final part is undersized.
        """
        parts = sorted(self.parts, key=lambda p: p.part_number)
        if not parts:
            raise ValidationError(
                f"Multipart upload {self.upload_id} has no parts"
            )
        for expected, part in enumerate(parts, start=1):
            if part.part_number != expected:
                raise ValidationError(
                    f"Multipart upload {self.upload_id} is missing part "
                    f"{expected}"
                )
        for part in parts[:-1]:
            if part.size < MIN_PART_SIZE:
                raise ValidationError(
                    f"Part {part.part_number} is {part.size} bytes; every "
                    f"part but the last must be at least 5 MiB"
                )
        return parts

    async def complete(self) -> ObjectWriteResult:
        """Assemble the uploaded parts into the final object.

        Raises:
            SessionStateError: If the session is completed or aborted.
            ValidationError: If the part list is not completable.
            ServiceError: If the service rejects the completion.
        """
        self._check_open("complete")
        parts = self.sorted_parts()

        response = await (
            self._client.executor("POST")
            .bucket(self.bucket_name)
            .object(self.object_name)
            .query("uploadId", self.upload_id)
            .header("Content-Type", "application/xml")
            .body(build_complete_multipart_upload(parts))
            .send_ok()
        )
        body = await response.read()
        etag, location = parse_complete_multipart_upload(
            body, status_code=response.status_code
        )
        self.state = SessionState.COMPLETED
        logger.info(
            "Completed multipart upload %s (%d parts, %d bytes)",
            self.upload_id,
            len(parts),
            self.size,
        )
        return ObjectWriteResult(
            bucket_name=self.bucket_name,
            object_name=self.object_name,
            etag=etag,
            version_id=response.headers.get("x-amz-version-id", ""),
            location=location,
        )

    async def abort(self) -> None:
        """Discard the upload and every part stored for it.

        Aborting an already aborted session is a no-op.

        Raises:
            SessionStateError: If the session was completed.
            ServiceError: If the service rejects the abort.
        """
        if self.state is SessionState.ABORTED:
            logger.debug("Multipart upload %s already aborted", self.upload_id)
            return
        if self.state is SessionState.COMPLETED:
            raise SessionStateError(
                f"Cannot abort multipart upload {self.upload_id}: "
                f"session is completed"
            )

        response = await (
            self._client.executor("DELETE")
            .bucket(self.bucket_name)
            .object(self.object_name)
            .query("uploadId", self.upload_id)
            .send_ok()
        )
        await response.read()
        self.state = SessionState.ABORTED
        logger.info("Aborted multipart upload %s", self.upload_id)


class MultipartUploader:
    """Uploads payloads as multipart objects.

    Args:
        client: Client issuing the requests.
        part_size: Size of every part but the last (at least 5 MiB).
        concurrency: Maximum parts in flight. 1 uploads sequentially.
    """

    def __init__(
        self,
        client: S3Client,
        *,
        part_size: int = MIN_PART_SIZE,
        concurrency: int = 1,
    ) -> None:
        check_part_size(part_size)
        if concurrency < 1:
            raise ValidationError(
                f"Concurrency must be at least 1: {concurrency}"
            )
        self._client = client
        self.part_size = part_size
        self.concurrency = concurrency

    def _check_part_count(self, size: int) -> list[int]:
        sizes = split_part_sizes(size, self.part_size)
        if len(sizes) > MAX_PART_COUNT:
            raise ValidationError(
                f"Object of {size} bytes needs {len(sizes)} parts of "
                f"{self.part_size} bytes; the maximum is {MAX_PART_COUNT}"
            )
        return sizes

    async def upload_bytes(
        self,
        bucket_name: str,
        object_name: str,
        data: bytes,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> ObjectWriteResult:
        """Upload an in-memory payload."""
        check_object_size(len(data))
        sizes = self._check_part_count(len(data))

        async def chunks() -> AsyncIterator[bytes]:
            view = memoryview(data)
            offset = 0
            for size in sizes:
                yield bytes(view[offset : offset + size])
                offset += size

        return await self._upload(bucket_name, object_name, chunks(), headers)

    async def upload_file(
        self,
        bucket_name: str,
        object_name: str,
        path: str | PathLike[str],
        *,
        headers: Mapping[str, str] | None = None,
    ) -> ObjectWriteResult:
        """Upload a local file, reading one part at a time.

        Raises:
            OSError: If the file cannot be opened or read.
        """
        path = Path(path)
        size = path.stat().st_size
        check_object_size(size)
        sizes = self._check_part_count(size)

        with path.open("rb") as f:

            async def chunks() -> AsyncIterator[bytes]:
                for expected in sizes:
                    data = await asyncio.to_thread(f.read, expected)
                    if len(data) != expected:
                        raise OSError(
                            f"{path} changed size during upload: expected "
                            f"{expected} bytes, read {len(data)}"
                        )
                    yield data

            return await self._upload(
                bucket_name, object_name, chunks(), headers
            )

    async def upload_stream(
        self,
        bucket_name: str,
        object_name: str,
        stream: AsyncIterable[bytes],
        *,
        length: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ObjectWriteResult:
        """Upload an async byte stream of unknown length.

        Incoming chunks are buffered until a full part is available. The
        remainder at end of stream becomes the (possibly short) final
        part; an empty stream uploads one empty part.

        Args:
            length: Expected total size, if known. Checked against the
                size limit up front and against the bytes actually read;
                a mismatch aborts the upload with ``ValidationError``.
        """
        if length is not None:
            check_object_size(length)
        part_size = self.part_size
        limit = MAX_OBJECT_SIZE if length is None else length

        async def chunks() -> AsyncIterator[bytes]:
            buffer = bytearray()
            total = 0
            emitted = 0
            async for piece in stream:
                total += len(piece)
                if total > limit:
                    raise ValidationError(
                        _stream_overrun_message(total, length)
                    )
                buffer.extend(piece)
                while len(buffer) >= part_size:
                    yield bytes(buffer[:part_size])
                    del buffer[:part_size]
                    emitted += 1
            if length is not None and total != length:
                raise ValidationError(
                    f"Stream ended after {total} bytes; expected {length}"
                )
            if buffer or not emitted:
                yield bytes(buffer)

        return await self._upload(bucket_name, object_name, chunks(), headers)

    async def _upload(
        self,
        bucket_name: str,
        object_name: str,
        chunks: AsyncIterator[bytes],
        headers: Mapping[str, str] | None,
    ) -> ObjectWriteResult:
        # Nothing to clean up if initiation fails
        session = await MultipartSession.initiate(
            self._client, bucket_name, object_name, headers=headers
        )
        try:
            await self._upload_parts(session, chunks)
            return await session.complete()
        except Exception as e:
            logger.warning(
                "Multipart upload %s failed, aborting: %s",
                session.upload_id,
                e,
            )
            try:
                await session.abort()
            except Exception as abort_error:
                logger.error(
                    "Failed to abort multipart upload %s: %s",
                    session.upload_id,
                    abort_error,
                )
                raise abort_error from e
            raise

    async def _upload_parts(
        self, session: MultipartSession, chunks: AsyncIterator[bytes]
    ) -> None:
        part_number = 0
        if self.concurrency == 1:
            async for data in chunks:
                part_number += 1
                await session.upload_part(part_number, data)
            return

        pending: set[asyncio.Task[Part]] = set()
        try:
            async for data in chunks:
                part_number += 1
                pending.add(
                    asyncio.create_task(session.upload_part(part_number, data))
                )
                if len(pending) >= self.concurrency:
                    done, pending = await asyncio.wait(
                        pending, return_when=asyncio.FIRST_COMPLETED
                    )
                    _raise_first_failure(done)
            if pending:
                done, pending = await asyncio.wait(
                    pending, return_when=asyncio.FIRST_EXCEPTION
                )
                _raise_first_failure(done)
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)


def _stream_overrun_message(total: int, length: int | None) -> str:
    if length is None:
        return "Stream exceeds the maximum object size of 5 TiB."
    return f"Stream yielded at least {total} bytes; expected {length}"


def _raise_first_failure(done: set[asyncio.Task[Part]]) -> None:
    # Retrieve every exception so none is reported as unhandled
    errors = [task.exception() for task in done]
    for error in errors:
        if error is not None:
            raise error
