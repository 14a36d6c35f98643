# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for local argument validation."""

import pytest

from s3lite.errors import ValidationError
from s3lite.validation import (
    MAX_OBJECT_SIZE,
    MIN_PART_SIZE,
    check_bucket_name,
    check_object_name,
    check_object_size,
    check_part_size,
)


class TestCheckBucketName:
    """Tests for check_bucket_name."""

    @pytest.mark.parametrize(
        "name",
        [
            "abc",
            "my-bucket",
            "my-bucket.1",
            "my.bucket.name",
            "a1b2c3",
            "a" * 63,
            "0bucket",
        ],
    )
    def test_valid_names(self, name: str) -> None:
        check_bucket_name(name)

    @pytest.mark.parametrize(
        ("name", "match"),
        [
            ("", "empty"),
            ("ab", "shorter than 3"),
            ("AB", "shorter than 3"),
            ("a", "shorter than 3"),
            ("a" * 64, "longer than 63"),
            ("192.168.5.4", "IP address"),
            ("192.168.0.1", "IP address"),
            ("my..bucket", "successive"),
            ("my.-bucket", "successive"),
            ("my-.bucket", "successive"),
            ("MyBucket", "invalid characters"),
            ("my_bucket", "invalid characters"),
            ("-bucket", "invalid characters"),
            ("-abc", "invalid characters"),
            ("bucket-", "invalid characters"),
        ],
    )
    def test_invalid_names(self, name: str, match: str) -> None:
        with pytest.raises(ValidationError, match=match):
            check_bucket_name(name)

    def test_validation_error_is_value_error(self) -> None:
        """Callers can catch bad names as plain ValueError."""
        with pytest.raises(ValueError):
            check_bucket_name("ab")


class TestCheckObjectName:
    """Tests for check_object_name."""

    def test_valid(self) -> None:
        check_object_name("path/to/object.txt")

    def test_empty(self) -> None:
        with pytest.raises(ValidationError, match="empty"):
            check_object_name("")

    @pytest.mark.parametrize(
        "name", ["a//b", "..a", "a/.b/c", "a..", "~x+y=z", "/leading"]
    )
    def test_dots_inside_segments_allowed(self, name: str) -> None:
        check_object_name(name)

    @pytest.mark.parametrize(
        "name", [".", "..", "a/./b", "a/../b", "../other/x", "a/.", "a/.."]
    )
    def test_dot_segments_rejected(self, name: str) -> None:
        """Keys that HTTP clients would rewrite before sending."""
        with pytest.raises(ValidationError, match="path segments"):
            check_object_name(name)

    def test_limit_counts_utf8_bytes(self) -> None:
        """512 two-byte characters fit, one more does not."""
        check_object_name("ä" * 512)
        with pytest.raises(ValidationError, match="1024 bytes"):
            check_object_name("ä" * 513)


class TestSizes:
    """Tests for check_object_size and check_part_size."""

    def test_object_size_bounds(self) -> None:
        check_object_size(0)
        check_object_size(MAX_OBJECT_SIZE)
        with pytest.raises(ValidationError):
            check_object_size(MAX_OBJECT_SIZE + 1)
        with pytest.raises(ValidationError):
            check_object_size(-1)

    def test_part_size_bounds(self) -> None:
        check_part_size(MIN_PART_SIZE)
        with pytest.raises(ValidationError, match="minimum"):
            check_part_size(MIN_PART_SIZE - 1)
        with pytest.raises(ValidationError, match="maximum"):
            check_part_size(5 * 1024**3 + 1)
