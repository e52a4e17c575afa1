"""Registered compliance cases, one or more per S3 operation.

Each case builds fresh RequestDescriptors per call and states what the
server must answer. Cases that declare uses_shared_fixtures read the
suite's SharedFixtures from the context; all others create and remove
their own fixtures.
"""

import hashlib
import logging
import os
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any, Iterable, Mapping, Optional, Sequence

from s3verify.case_runner import CaseContext, ComplianceCase
from s3verify.errors import FixtureCleanupError
from s3verify.fixtures import (
    MIN_PART_SIZE,
    create_bucket_with_objects,
    initiate_upload,
    make_bucket,
    random_body,
    random_name,
    remove_bucket,
    split_parts,
    teardown_bucket,
    upload_parts,
)
from s3verify.models import Exchange, Expectation, RequestDescriptor

logger = logging.getLogger(__name__)

# A date before any object could have been modified
PAST_DATE = "Thu, 01 Jan 1970 00:00:00 GMT"

# An ETag no object will have
INVALID_ETAG = '"1234567890"'

# Response overrides requested in GetObject and expected back as headers
RESPONSE_OVERRIDES = {
    "response-content-type": "image/gif",
    "response-expires": "Thu, 01 Dec 1994 16:00:00 GMT",
    "response-cache-control": "no-cache",
    "response-content-disposition": 'attachment; filename="s3verify.txt"',
}

S3_XMLNS = "http://s3.amazonaws.com/doc/2006-03-01/"


def request(
    method: str,
    bucket: str = "",
    object_name: str = "",
    headers: Optional[Mapping[str, str]] = None,
    query: Optional[Mapping[str, str]] = None,
    body: Optional[bytes] = None,
) -> RequestDescriptor:
    """Build a new descriptor; nothing is shared between calls."""
    return RequestDescriptor(
        method=method,
        bucket=bucket,
        object_name=object_name,
        headers=dict(headers or {}),
        query=dict(query or {}),
        body=body,
    )


def http_date(value: datetime) -> str:
    """Format a datetime as an RFC 7231 HTTP date."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def md5_etag(body: bytes) -> str:
    return '"' + hashlib.md5(body).hexdigest() + '"'


def bucket_configuration(region: str) -> Optional[bytes]:
    """CreateBucketConfiguration body, needed outside us-east-1."""
    if not region or region == "us-east-1":
        return None
    root = ET.Element("CreateBucketConfiguration", xmlns=S3_XMLNS)
    ET.SubElement(root, "LocationConstraint").text = region
    return ET.tostring(root, encoding="utf-8")


def complete_multipart_body(parts: Sequence[Mapping[str, Any]]) -> bytes:
    root = ET.Element("CompleteMultipartUpload", xmlns=S3_XMLNS)
    for part in parts:
        element = ET.SubElement(root, "Part")
        ET.SubElement(element, "PartNumber").text = str(part["PartNumber"])
        ET.SubElement(element, "ETag").text = part["ETag"]
    return ET.tostring(root, encoding="utf-8")


# === BUCKET CASES ===


class PutBucketCase(ComplianceCase):
    case_id = "put_bucket"
    name = "PutBucket"
    description = "Create a bucket with a signed PUT request."

    def setup(self, ctx: CaseContext) -> str:
        return random_name()

    def exchanges(self, ctx: CaseContext, bucket: str) -> Iterable[Exchange]:
        yield Exchange(
            request("PUT", bucket, body=bucket_configuration(ctx.config.region)),
            Expectation(status=200),
        )
        yield Exchange(request("HEAD", bucket), Expectation(status=200, body=b""))

    def cleanup(self, ctx: CaseContext, bucket: str) -> None:
        remove_bucket(ctx.fixture_client, bucket)


class HeadBucketCase(ComplianceCase):
    case_id = "head_bucket"
    name = "HeadBucket"
    description = "HEAD an existing bucket (200) and a missing one (404)."

    def setup(self, ctx: CaseContext) -> str:
        return make_bucket(ctx.fixture_client, random_name(), ctx.config.region)

    def exchanges(self, ctx: CaseContext, bucket: str) -> Iterable[Exchange]:
        yield Exchange(request("HEAD", bucket), Expectation(status=200, body=b""))
        yield Exchange(request("HEAD", random_name()), Expectation(status=404, body=b""))

    def cleanup(self, ctx: CaseContext, bucket: str) -> None:
        remove_bucket(ctx.fixture_client, bucket)


class RemoveBucketCase(ComplianceCase):
    case_id = "remove_bucket"
    name = "RemoveBucket"
    description = "DELETE an empty bucket (204), after which HEAD returns 404."

    def setup(self, ctx: CaseContext) -> str:
        return make_bucket(ctx.fixture_client, random_name(), ctx.config.region)

    def exchanges(self, ctx: CaseContext, bucket: str) -> Iterable[Exchange]:
        yield Exchange(request("DELETE", bucket), Expectation(status=204, body=b""))
        yield Exchange(request("HEAD", bucket), Expectation(status=404, body=b""))

    def cleanup(self, ctx: CaseContext, bucket: str) -> None:
        remove_bucket(ctx.fixture_client, bucket)


# === OBJECT CASES ===


class PutObjectCase(ComplianceCase):
    case_id = "put_object"
    name = "PutObject"
    description = "PUT an object and read it back byte for byte."

    def setup(self, ctx: CaseContext) -> dict:
        bucket = make_bucket(ctx.fixture_client, random_name(), ctx.config.region)
        return {"bucket": bucket, "key": random_name(), "body": random_body()}

    def exchanges(self, ctx: CaseContext, state: dict) -> Iterable[Exchange]:
        body = state["body"]
        yield Exchange(
            request(
                "PUT",
                state["bucket"],
                state["key"],
                headers={"Content-Type": "binary/octet-stream"},
                body=body,
            ),
            Expectation(status=200, headers={"ETag": md5_etag(body)}),
        )
        yield Exchange(
            request("GET", state["bucket"], state["key"]),
            Expectation(status=200, body=body),
        )

    def cleanup(self, ctx: CaseContext, state: dict) -> None:
        teardown_bucket(ctx.fixture_client, state["bucket"], [state["key"]], ctx.workers)


class RemoveObjectCase(ComplianceCase):
    case_id = "remove_object"
    name = "RemoveObject"
    description = "DELETE objects (204), after which HEAD returns 404."

    object_count = 3

    def setup(self, ctx: CaseContext) -> dict:
        bodies = [random_body() for _ in range(self.object_count)]
        bucket, objects = create_bucket_with_objects(ctx.fixture_client, ctx.config, bodies)
        return {"bucket": bucket, "keys": [obj.key for obj in objects]}

    def exchanges(self, ctx: CaseContext, state: dict) -> Iterable[Exchange]:
        for key in state["keys"]:
            yield Exchange(
                request("DELETE", state["bucket"], key),
                Expectation(status=204, body=b""),
            )
            yield Exchange(
                request("HEAD", state["bucket"], key),
                Expectation(status=404, body=b""),
            )

    def cleanup(self, ctx: CaseContext, state: dict) -> None:
        teardown_bucket(ctx.fixture_client, state["bucket"], state["keys"], ctx.workers)


class HeadObjectCase(ComplianceCase):
    case_id = "head_object"
    name = "HeadObject"
    description = "HEAD each shared object: ETag and Content-Length, empty body."
    uses_shared_fixtures = True

    def exchanges(self, ctx: CaseContext, state: Any) -> Iterable[Exchange]:
        shared = ctx.shared
        for obj in shared.objects:
            yield Exchange(
                request("HEAD", shared.bucket, obj.key),
                Expectation(
                    status=200,
                    headers={"ETag": obj.etag, "Content-Length": str(obj.size)},
                    body=b"",
                ),
            )


class GetObjectCase(ComplianceCase):
    case_id = "get_object"
    name = "GetObject"
    description = "GET each shared object with response-* header overrides."
    uses_shared_fixtures = True

    def exchanges(self, ctx: CaseContext, state: Any) -> Iterable[Exchange]:
        shared = ctx.shared
        for obj in shared.objects:
            yield Exchange(
                request("GET", shared.bucket, obj.key, query=RESPONSE_OVERRIDES),
                Expectation(status=200, headers=RESPONSE_OVERRIDES, body=obj.body),
            )


class GetObjectRangeCase(ComplianceCase):
    case_id = "get_object_range"
    name = "GetObject (Range)"
    description = "GET byte ranges of each shared object (206 Partial Content)."
    uses_shared_fixtures = True

    def exchanges(self, ctx: CaseContext, state: Any) -> Iterable[Exchange]:
        shared = ctx.shared
        for obj in shared.objects:
            last = obj.size - 1
            yield Exchange(
                request("GET", shared.bucket, obj.key, headers={"Range": "bytes=0-9"}),
                Expectation(
                    status=206,
                    headers={"Content-Range": f"bytes 0-9/{obj.size}"},
                    body=obj.body[:10],
                ),
            )
            yield Exchange(
                request("GET", shared.bucket, obj.key, headers={"Range": "bytes=10-"}),
                Expectation(
                    status=206,
                    headers={"Content-Range": f"bytes 10-{last}/{obj.size}"},
                    body=obj.body[10:],
                ),
            )


class GetObjectIfMatchCase(ComplianceCase):
    case_id = "get_object_if_match"
    name = "GetObject (If-Match)"
    description = "Matching ETag returns the object; a wrong ETag returns 412."
    uses_shared_fixtures = True

    def exchanges(self, ctx: CaseContext, state: Any) -> Iterable[Exchange]:
        shared = ctx.shared
        for obj in shared.objects:
            yield Exchange(
                request("GET", shared.bucket, obj.key, headers={"If-Match": obj.etag}),
                Expectation(status=200, body=obj.body),
            )
            yield Exchange(
                request("GET", shared.bucket, obj.key, headers={"If-Match": INVALID_ETAG}),
                Expectation(status=412),
            )


class GetObjectIfNoneMatchCase(ComplianceCase):
    case_id = "get_object_if_none_match"
    name = "GetObject (If-None-Match)"
    description = "Matching ETag returns 304 with no body; a wrong ETag returns the object."
    uses_shared_fixtures = True

    def exchanges(self, ctx: CaseContext, state: Any) -> Iterable[Exchange]:
        shared = ctx.shared
        for obj in shared.objects:
            yield Exchange(
                request("GET", shared.bucket, obj.key, headers={"If-None-Match": obj.etag}),
                Expectation(status=304, body=b""),
            )
            yield Exchange(
                request("GET", shared.bucket, obj.key, headers={"If-None-Match": INVALID_ETAG}),
                Expectation(status=200, body=obj.body),
            )


class _SingleObjectCase(ComplianceCase):
    """Base for cases that need one object in a bucket of their own."""

    def setup(self, ctx: CaseContext) -> dict:
        bucket, objects = create_bucket_with_objects(
            ctx.fixture_client, ctx.config, [random_body()]
        )
        return {"bucket": bucket, "object": objects[0]}

    def cleanup(self, ctx: CaseContext, state: dict) -> None:
        teardown_bucket(ctx.fixture_client, state["bucket"], [state["object"].key], ctx.workers)


class GetObjectIfModifiedSinceCase(_SingleObjectCase):
    case_id = "get_object_if_modified_since"
    name = "GetObject (If-Modified-Since)"
    description = "Last-Modified returns 304 with no body; a 1970 date returns the object."

    def exchanges(self, ctx: CaseContext, state: dict) -> Iterable[Exchange]:
        bucket, obj = state["bucket"], state["object"]
        yield Exchange(
            request(
                "GET", bucket, obj.key,
                headers={"If-Modified-Since": http_date(obj.last_modified)},
            ),
            Expectation(status=304, body=b""),
        )
        yield Exchange(
            request("GET", bucket, obj.key, headers={"If-Modified-Since": PAST_DATE}),
            Expectation(status=200, body=obj.body),
        )


class GetObjectIfUnmodifiedSinceCase(_SingleObjectCase):
    case_id = "get_object_if_unmodified_since"
    name = "GetObject (If-Unmodified-Since)"
    description = "Last-Modified returns the object; a 1970 date returns 412."

    def exchanges(self, ctx: CaseContext, state: dict) -> Iterable[Exchange]:
        bucket, obj = state["bucket"], state["object"]
        yield Exchange(
            request(
                "GET", bucket, obj.key,
                headers={"If-Unmodified-Since": http_date(obj.last_modified)},
            ),
            Expectation(status=200, body=obj.body),
        )
        yield Exchange(
            request("GET", bucket, obj.key, headers={"If-Unmodified-Since": PAST_DATE}),
            Expectation(status=412),
        )


# === MULTIPART CASES ===


class MultipartUploadCase(ComplianceCase):
    case_id = "multipart_upload"
    name = "CompleteMultipartUpload"
    description = "Complete an upload whose parts were sent in parallel, then GET it."

    # Two full parts and a short last part
    data_size = 2 * MIN_PART_SIZE + 64 * 1024

    def setup(self, ctx: CaseContext) -> dict:
        client = ctx.fixture_client
        bucket = make_bucket(client, random_name(), ctx.config.region)
        key = random_name()
        upload_id = None
        try:
            upload_id = initiate_upload(client, bucket, key)
            data = os.urandom(self.data_size)
            parts = upload_parts(client, bucket, key, upload_id, split_parts(data), ctx.workers)
        except Exception:
            # Cleanup does not run after a setup failure
            uploads = [(key, upload_id)] if upload_id is not None else []
            try:
                teardown_bucket(client, bucket, [], ctx.workers, uploads)
            except FixtureCleanupError as e:
                logger.warning("Could not roll back multipart upload in %s: %s", bucket, e)
            raise
        return {
            "bucket": bucket,
            "key": key,
            "upload_id": upload_id,
            "data": data,
            "parts": parts,
        }

    def exchanges(self, ctx: CaseContext, state: dict) -> Iterable[Exchange]:
        bucket, key = state["bucket"], state["key"]
        yield Exchange(
            request(
                "POST", bucket, key,
                headers={"Content-Type": "application/xml"},
                query={"uploadId": state["upload_id"]},
                body=complete_multipart_body(state["parts"]),
            ),
            Expectation(status=200),
        )
        yield Exchange(
            request("GET", bucket, key),
            Expectation(status=200, body=state["data"]),
        )

    def cleanup(self, ctx: CaseContext, state: dict) -> None:
        teardown_bucket(
            ctx.fixture_client,
            state["bucket"],
            [state["key"]],
            ctx.workers,
            uploads=[(state["key"], state["upload_id"])],
        )


# Registration order is execution order
CASE_CLASSES: list[type[ComplianceCase]] = [
    PutBucketCase,
    HeadBucketCase,
    PutObjectCase,
    HeadObjectCase,
    GetObjectCase,
    GetObjectRangeCase,
    GetObjectIfMatchCase,
    GetObjectIfNoneMatchCase,
    GetObjectIfModifiedSinceCase,
    GetObjectIfUnmodifiedSinceCase,
    MultipartUploadCase,
    RemoveObjectCase,
    RemoveBucketCase,
]

CASE_IDS = [case_class.case_id for case_class in CASE_CLASSES]


def default_cases() -> list[ComplianceCase]:
    return [case_class() for case_class in CASE_CLASSES]


def select_cases(case_ids: Iterable[str]) -> list[ComplianceCase]:
    """Instantiate the requested cases in registration order.

    Raises:
        ValueError: If an id is not registered.
    """
    wanted = {case_id.strip() for case_id in case_ids if case_id.strip()}
    unknown = sorted(wanted - set(CASE_IDS))
    if unknown:
        raise ValueError(f"Unknown case id(s): {', '.join(unknown)}")
    return [case_class() for case_class in CASE_CLASSES if case_class.case_id in wanted]
