# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Typed records and their XML (de)serialization.

Responses are parsed with ``xml.etree.ElementTree``. Namespaces are
ignored on read, since S3-compatible services disagree on whether they
send one. Any malformed or incomplete body raises ``ParseError``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from xml.etree import ElementTree as ET

from s3lite.errors import ParseError, ServiceError


_S3_NAMESPACE = "http://s3.amazonaws.com/doc/2006-03-01/"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Part:
    """A successfully uploaded multipart part."""

    part_number: int
    etag: str
    size: int


@dataclass(frozen=True)
class Bucket:
    name: str
    creation_date: str = ""


@dataclass(frozen=True)
class Owner:
    id: str = ""
    display_name: str = ""


@dataclass(frozen=True)
class ObjectInfo:
    """One entry of a bucket listing."""

    key: str
    last_modified: str = ""
    etag: str = ""
    size: int = 0
    storage_class: str = ""


@dataclass
class ListObjectsResult:
    """One page of a ListObjectsV2 response."""

    name: str
    prefix: str = ""
    key_count: int = 0
    max_keys: int = 0
    is_truncated: bool = False
    next_continuation_token: str = ""
    contents: list[ObjectInfo] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ObjectStat:
    """Object metadata from a HEAD request."""

    bucket_name: str
    object_name: str
    size: int
    etag: str = ""
    last_modified: str = ""
    content_type: str = ""
    version_id: str = ""
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ObjectWriteResult:
    """Outcome of an upload (single PUT or completed multipart)."""

    bucket_name: str
    object_name: str
    etag: str = ""
    version_id: str = ""
    location: str = ""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _parse(body: bytes | str, expected_root: str | None = None) -> ET.Element:
    if isinstance(body, str):
        body = body.encode("utf-8")
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise ParseError(f"Malformed XML response: {e}") from e
    for element in root.iter():
        element.tag = _local(element.tag)
    if expected_root is not None and root.tag != expected_root:
        raise ParseError(
            f"Expected <{expected_root}> response, got <{root.tag}>"
        )
    return root


def _text(element: ET.Element, path: str, *, required: bool = False) -> str:
    value = element.findtext(path)
    if value is None:
        if required:
            raise ParseError(f"Response is missing <{path}>")
        return ""
    return value


def _int(element: ET.Element, path: str) -> int:
    value = _text(element, path)
    if not value:
        return 0
    try:
        return int(value)
    except ValueError as e:
        raise ParseError(f"<{path}> is not an integer: {value!r}") from e


def _tostring(root: ET.Element) -> bytes:
    return ET.tostring(root, encoding="utf-8", xml_declaration=False)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


def parse_error(
    body: bytes | str,
    *,
    status_code: int = 0,
    bucket_name: str = "",
    object_name: str = "",
) -> ServiceError:
    """Parse an ``<Error>`` body into a ``ServiceError``.

    Raises:
        ParseError: If the body is not an S3 error document.
    """
    root = _parse(body, "Error")
    return ServiceError(
        _text(root, "Code", required=True),
        _text(root, "Message"),
        resource=_text(root, "Resource"),
        request_id=_text(root, "RequestId"),
        host_id=_text(root, "HostId"),
        bucket_name=_text(root, "BucketName") or bucket_name,
        object_name=_text(root, "Key") or object_name,
        status_code=status_code,
    )


# ---------------------------------------------------------------------------
# Multipart
# ---------------------------------------------------------------------------


def parse_initiate_multipart_upload(body: bytes | str) -> str:
    """Return the upload ID from an InitiateMultipartUploadResult."""
    root = _parse(body, "InitiateMultipartUploadResult")
    upload_id = _text(root, "UploadId", required=True)
    if not upload_id:
        raise ParseError("Response contains an empty <UploadId>")
    return upload_id


def build_complete_multipart_upload(parts: Iterable[Part]) -> bytes:
    """Serialize parts (in the given order) as a completion request."""
    root = ET.Element("CompleteMultipartUpload")
    for part in parts:
        tag = ET.SubElement(root, "Part")
        ET.SubElement(tag, "PartNumber").text = str(part.part_number)
        ET.SubElement(tag, "ETag").text = f'"{part.etag}"'
    return _tostring(root)


def parse_complete_multipart_upload(
    body: bytes | str, *, status_code: int = 200
) -> tuple[str, str]:
    """Parse a CompleteMultipartUploadResult into (etag, location).

    The service may answer 200 and still report a failure in an
    ``<Error>`` body, which is raised here as a ``ServiceError``.
    """
    root = _parse(body)
    if root.tag == "Error":
        raise parse_error(body, status_code=status_code)
    if root.tag != "CompleteMultipartUploadResult":
        raise ParseError(
            f"Expected <CompleteMultipartUploadResult> response, "
            f"got <{root.tag}>"
        )
    etag = _text(root, "ETag").replace('"', "")
    return etag, _text(root, "Location")


# ---------------------------------------------------------------------------
# Buckets
# ---------------------------------------------------------------------------


def build_create_bucket_configuration(region: str) -> bytes:
    root = ET.Element("CreateBucketConfiguration", xmlns=_S3_NAMESPACE)
    ET.SubElement(root, "LocationConstraint").text = region
    return _tostring(root)


def parse_list_buckets(body: bytes | str) -> tuple[list[Bucket], Owner]:
    root = _parse(body, "ListAllMyBucketsResult")
    owner = Owner(
        id=_text(root, "Owner/ID"),
        display_name=_text(root, "Owner/DisplayName"),
    )
    buckets = [
        Bucket(
            name=_text(element, "Name", required=True),
            creation_date=_text(element, "CreationDate"),
        )
        for element in root.iterfind("Buckets/Bucket")
    ]
    return buckets, owner


def parse_list_objects(body: bytes | str) -> ListObjectsResult:
    """Parse a ListBucketResult (ListObjectsV2) page."""
    root = _parse(body, "ListBucketResult")
    return ListObjectsResult(
        name=_text(root, "Name"),
        prefix=_text(root, "Prefix"),
        key_count=_int(root, "KeyCount"),
        max_keys=_int(root, "MaxKeys"),
        is_truncated=_text(root, "IsTruncated").lower() == "true",
        next_continuation_token=_text(root, "NextContinuationToken"),
        contents=[
            ObjectInfo(
                key=_text(element, "Key", required=True),
                last_modified=_text(element, "LastModified"),
                etag=_text(element, "ETag").replace('"', ""),
                size=_int(element, "Size"),
                storage_class=_text(element, "StorageClass"),
            )
            for element in root.iterfind("Contents")
        ],
        common_prefixes=[
            _text(element, "Prefix")
            for element in root.iterfind("CommonPrefixes")
        ],
    )


def parse_versioning(body: bytes | str) -> str:
    """Return the versioning status (empty if never enabled)."""
    root = _parse(body, "VersioningConfiguration")
    return _text(root, "Status")


def build_versioning(status: str) -> bytes:
    root = ET.Element("VersioningConfiguration", xmlns=_S3_NAMESPACE)
    ET.SubElement(root, "Status").text = status
    return _tostring(root)


# ---------------------------------------------------------------------------
# Tags and legal hold
# ---------------------------------------------------------------------------


def parse_tags(body: bytes | str) -> dict[str, str]:
    root = _parse(body, "Tagging")
    return {
        _text(element, "Key", required=True): _text(element, "Value")
        for element in root.iterfind("TagSet/Tag")
    }


def build_tags(tags: Mapping[str, str]) -> bytes:
    root = ET.Element("Tagging", xmlns=_S3_NAMESPACE)
    tag_set = ET.SubElement(root, "TagSet")
    for key, value in tags.items():
        tag = ET.SubElement(tag_set, "Tag")
        ET.SubElement(tag, "Key").text = key
        ET.SubElement(tag, "Value").text = value
    return _tostring(root)


def parse_legal_hold(body: bytes | str) -> bool:
    root = _parse(body, "LegalHold")
    return _text(root, "Status") == "ON"


def build_legal_hold(enabled: bool) -> bytes:
    root = ET.Element("LegalHold", xmlns=_S3_NAMESPACE)
    ET.SubElement(root, "Status").text = "ON" if enabled else "OFF"
    return _tostring(root)


# ---------------------------------------------------------------------------
# Copy
# ---------------------------------------------------------------------------


def parse_copy_object(body: bytes | str, *, status_code: int = 200) -> str:
    """Return the new ETag from a CopyObjectResult.

    Like completion, a copy can fail after the 200 status was sent.
    """
    root = _parse(body)
    if root.tag == "Error":
        raise parse_error(body, status_code=status_code)
    if root.tag != "CopyObjectResult":
        raise ParseError(
            f"Expected <CopyObjectResult> response, got <{root.tag}>"
        )
    return _text(root, "ETag").replace('"', "")
