# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Local argument validation and protocol size limits.

Everything here runs before a request is signed, so a rejected name or
size never reaches the network.
"""

import re

from s3lite.errors import ValidationError


KiB = 1024
MiB = 1024 * KiB
GiB = 1024 * MiB
TiB = 1024 * GiB

# Smallest allowed size for every part except the last one
MIN_PART_SIZE = 5 * MiB
MAX_PART_SIZE = 5 * GiB
MAX_PART_COUNT = 10000
MAX_OBJECT_SIZE = 5 * TiB

MAX_OBJECT_NAME_BYTES = 1024
_DOT_SEGMENTS = frozenset({".", ".."})

_BUCKET_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9.\-]{1,61}[a-z0-9]$")
_IPV4_RE = re.compile(r"^\d{1,3}(\.\d{1,3}){3}$")


def check_bucket_name(name: str) -> None:
    """Validate a bucket name against the DNS-safe naming rules.

    Args:
        name: Bucket name.

    Raises:
        ValidationError: If the name is not a valid bucket name.
    """
    if not name:
        raise ValidationError("Bucket name cannot be empty.")
    if len(name) < 3:
        raise ValidationError(
            f"Bucket name cannot be shorter than 3 characters: {name!r}"
        )
    if len(name) > 63:
        raise ValidationError(
            f"Bucket name cannot be longer than 63 characters: {name!r}"
        )
    if _IPV4_RE.match(name):
        raise ValidationError(
            f"Bucket name cannot be an IP address: {name!r}"
        )
    if ".." in name or ".-" in name or "-." in name:
        raise ValidationError(
            f"Bucket name contains invalid successive characters: {name!r}"
        )
    if not _BUCKET_NAME_RE.match(name):
        raise ValidationError(
            f"Bucket name contains invalid characters: {name!r}"
        )


def check_object_name(name: str) -> None:
    """Validate an object key.

    HTTP clients collapse ``.`` and ``..`` path segments before sending,
    so such keys would be signed for one path and sent to another.

    Raises:
        ValidationError: If the key is empty, too long, or contains a
            ``.`` or ``..`` segment.
    """
    if not name:
        raise ValidationError("Object name cannot be empty.")
    if len(name.encode("utf-8")) > MAX_OBJECT_NAME_BYTES:
        raise ValidationError(
            f"Object name cannot be longer than {MAX_OBJECT_NAME_BYTES} bytes."
        )
    if any(segment in _DOT_SEGMENTS for segment in name.split("/")):
        raise ValidationError(
            f"Object name cannot contain '.' or '..' path segments: {name!r}"
        )


def check_object_size(size: int) -> None:
    """Reject object sizes beyond the multipart protocol maximum."""
    if size < 0:
        raise ValidationError(f"Object size cannot be negative: {size}")
    if size > MAX_OBJECT_SIZE:
        raise ValidationError(
            f"Object size {size} exceeds the maximum of 5 TiB."
        )


def check_part_size(part_size: int) -> None:
    """Validate a configured multipart part size."""
    if part_size < MIN_PART_SIZE:
        raise ValidationError(
            f"Part size {part_size} is below the minimum of 5 MiB."
        )
    if part_size > MAX_PART_SIZE:
        raise ValidationError(
            f"Part size {part_size} is above the maximum of 5 GiB."
        )
