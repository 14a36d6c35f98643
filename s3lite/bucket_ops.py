# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Bucket-level operations."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping
from typing import TYPE_CHECKING

from s3lite.datatypes import (
    Bucket,
    ListObjectsResult,
    ObjectInfo,
    Owner,
    build_create_bucket_configuration,
    build_tags,
    build_versioning,
    parse_list_buckets,
    parse_list_objects,
    parse_tags,
    parse_versioning,
)
from s3lite.endpoint import DEFAULT_REGION
from s3lite.errors import ServiceError, ValidationError


if TYPE_CHECKING:
    from s3lite.executor import RequestBuilder


logger = logging.getLogger(__name__)

_VERSIONING_STATUSES = ("Enabled", "Suspended")


class BucketOperations:
    """Bucket operations mixed into ``S3Client``."""

    if TYPE_CHECKING:
        region: str

        def executor(self, method: str) -> RequestBuilder: ...

    def _bucket_executor(self, method: str, bucket_name: str) -> RequestBuilder:
        return self.executor(method).bucket(bucket_name)

    async def bucket_exists(self, bucket_name: str) -> bool:
        """Return True if the bucket exists and is accessible."""
        response = await self._bucket_executor("HEAD", bucket_name).send()
        await response.aclose()
        return response.ok

    async def make_bucket(
        self, bucket_name: str, *, object_lock: bool = False
    ) -> str:
        """Create a bucket in the client's region.

        Args:
            object_lock: Enable object lock (required for legal holds).

        Returns:
            The ``Location`` header of the response.
        """
        builder = self._bucket_executor("PUT", bucket_name)
        # us-east-1 is the implicit location and is rejected if stated
        if self.region != DEFAULT_REGION:
            builder.header("Content-Type", "application/xml").body(
                build_create_bucket_configuration(self.region)
            )
        if object_lock:
            builder.header("x-amz-bucket-object-lock-enabled", "true")
        response = await builder.send_ok()
        await response.read()
        logger.info("Created bucket %s", bucket_name)
        return response.headers.get("location", "")

    async def remove_bucket(self, bucket_name: str) -> None:
        """Delete an empty bucket."""
        response = await self._bucket_executor(
            "DELETE", bucket_name
        ).send_ok()
        await response.read()
        logger.info("Removed bucket %s", bucket_name)

    async def list_buckets(self) -> tuple[list[Bucket], Owner]:
        body = await self.executor("GET").send_bytes_ok()
        return parse_list_buckets(body)

    async def list_objects(
        self,
        bucket_name: str,
        *,
        prefix: str = "",
        delimiter: str = "",
        max_keys: int = 1000,
        continuation_token: str | None = None,
        start_after: str | None = None,
    ) -> ListObjectsResult:
        """List one page of objects (ListObjectsV2).

        Args:
            prefix: Only keys starting with this prefix.
            delimiter: Group keys sharing a prefix up to this character
                into ``common_prefixes``.
            max_keys: Page size, 1 to 1000.
            continuation_token: ``next_continuation_token`` of the
                previous page.
            start_after: Only keys sorting after this one.
        """
        if not 1 <= max_keys <= 1000:
            raise ValidationError(
                f"max_keys must be between 1 and 1000: {max_keys}"
            )
        builder = (
            self._bucket_executor("GET", bucket_name)
            .query("list-type", "2")
            .query("max-keys", str(max_keys))
            .query("prefix", prefix)
        )
        if delimiter:
            builder.query("delimiter", delimiter)
        if continuation_token:
            builder.query("continuation-token", continuation_token)
        if start_after:
            builder.query("start-after", start_after)
        return parse_list_objects(await builder.send_bytes_ok())

    async def iter_objects(
        self,
        bucket_name: str,
        *,
        prefix: str = "",
        delimiter: str = "",
        page_size: int = 1000,
    ) -> AsyncIterator[ObjectInfo]:
        """Iterate over every matching object, following pagination."""
        token: str | None = None
        while True:
            page = await self.list_objects(
                bucket_name,
                prefix=prefix,
                delimiter=delimiter,
                max_keys=page_size,
                continuation_token=token,
            )
            for info in page.contents:
                yield info
            if not page.is_truncated or not page.next_continuation_token:
                return
            token = page.next_continuation_token

    async def get_bucket_tags(
        self, bucket_name: str
    ) -> dict[str, str] | None:
        """Return the bucket's tags, or None if it has none."""
        try:
            body = await (
                self._bucket_executor("GET", bucket_name)
                .query("tagging")
                .send_bytes_ok()
            )
        except ServiceError as e:
            if e.code == "NoSuchTagSet":
                return None
            raise
        return parse_tags(body)

    async def set_bucket_tags(
        self, bucket_name: str, tags: Mapping[str, str]
    ) -> None:
        response = await (
            self._bucket_executor("PUT", bucket_name)
            .query("tagging")
            .body(build_tags(tags))
            .content_md5()
            .send_ok()
        )
        await response.read()

    async def delete_bucket_tags(self, bucket_name: str) -> None:
        response = await (
            self._bucket_executor("DELETE", bucket_name)
            .query("tagging")
            .send_ok()
        )
        await response.read()

    async def get_bucket_versioning(self, bucket_name: str) -> str:
        """Return ``Enabled``, ``Suspended``, or "" if never configured."""
        body = await (
            self._bucket_executor("GET", bucket_name)
            .query("versioning")
            .send_bytes_ok()
        )
        return parse_versioning(body)

    async def set_bucket_versioning(
        self, bucket_name: str, status: str
    ) -> None:
        if status not in _VERSIONING_STATUSES:
            raise ValidationError(
                f"Versioning status must be Enabled or Suspended: {status!r}"
            )
        response = await (
            self._bucket_executor("PUT", bucket_name)
            .query("versioning")
            .body(build_versioning(status))
            .content_md5()
            .send_ok()
        )
        await response.read()
