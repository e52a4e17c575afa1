"""Fixture lifecycle: buckets, objects and multipart parts.

Unit operations here talk to the server through a boto3 client. Batches
of them go through the orchestrator, so N objects or N parts are created
or removed in parallel while their results stay in input order.
"""

import logging
import os
import random
import string
from dataclasses import dataclass, field, replace
from functools import partial
from typing import Any, Sequence

from botocore.exceptions import ClientError

from s3verify.errors import FixtureCleanupError, FixtureSetupError
from s3verify.models import ObjectInfo, ServerConfig
from s3verify.orchestrator import BatchResult, run_batch, run_unit

logger = logging.getLogger(__name__)

NAME_PREFIX = "s3verify"

# Bucket names are limited to 63 characters
NAME_LENGTH = 60

# Random object bodies: just over 32 KiB up to 96 KiB
MIN_OBJECT_SIZE = 32 * 1024
MAX_OBJECT_SIZE = 96 * 1024

# S3 minimum size for every part except the last
MIN_PART_SIZE = 5 * 1024 * 1024

DEFAULT_CONTENT_TYPE = "binary/octet-stream"

_NAME_ALPHABET = string.ascii_lowercase + string.digits


def random_name(prefix: str = NAME_PREFIX, length: int = NAME_LENGTH) -> str:
    """Random lowercase name valid as both bucket and object name."""
    suffix_length = max(length - len(prefix) - 1, 8)
    suffix = "".join(random.choice(_NAME_ALPHABET) for _ in range(suffix_length))
    return f"{prefix}-{suffix}"


def random_body(min_size: int = MIN_OBJECT_SIZE, max_size: int = MAX_OBJECT_SIZE) -> bytes:
    return os.urandom(random.randint(min_size, max_size))


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


# -- Unit operations ---------------------------------------------------------


def make_bucket(client: Any, bucket: str, region: str) -> str:
    """Create a bucket, adding a location constraint outside us-east-1."""
    kwargs: dict[str, Any] = {"Bucket": bucket}
    if region and region != "us-east-1":
        kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
    client.create_bucket(**kwargs)
    logger.debug("Created bucket %s", bucket)
    return bucket


def remove_bucket(client: Any, bucket: str) -> None:
    """Delete a bucket. A bucket that is already gone counts as removed."""
    try:
        client.delete_bucket(Bucket=bucket)
    except ClientError as e:
        if _error_code(e) != "NoSuchBucket":
            raise
    logger.debug("Removed bucket %s", bucket)


def put_object(
    client: Any,
    bucket: str,
    key: str,
    body: bytes,
    content_type: str = DEFAULT_CONTENT_TYPE,
) -> ObjectInfo:
    """Upload an object and read back its ETag and Last-Modified."""
    client.put_object(Bucket=bucket, Key=key, Body=body, ContentType=content_type)
    head = client.head_object(Bucket=bucket, Key=key)
    return ObjectInfo(
        key=key,
        body=body,
        etag=head["ETag"],
        last_modified=head["LastModified"],
        content_type=head.get("ContentType", content_type),
    )


def remove_object(client: Any, bucket: str, key: str) -> None:
    client.delete_object(Bucket=bucket, Key=key)
    logger.debug("Removed object %s/%s", bucket, key)


def initiate_upload(client: Any, bucket: str, key: str) -> str:
    response = client.create_multipart_upload(Bucket=bucket, Key=key)
    return response["UploadId"]


def upload_part(
    client: Any,
    bucket: str,
    key: str,
    upload_id: str,
    part_number: int,
    data: bytes,
) -> dict:
    response = client.upload_part(
        Bucket=bucket,
        Key=key,
        UploadId=upload_id,
        PartNumber=part_number,
        Body=data,
    )
    return {"PartNumber": part_number, "ETag": response["ETag"]}


def abort_upload(client: Any, bucket: str, key: str, upload_id: str) -> None:
    """Abort a multipart upload. An upload that no longer exists is fine."""
    try:
        client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload_id)
    except ClientError as e:
        if _error_code(e) != "NoSuchUpload":
            raise


# -- Batches -----------------------------------------------------------------


def remove_objects(client: Any, bucket: str, keys: Sequence[str], workers: int) -> None:
    """Best-effort removal of many objects.

    Raises:
        FixtureCleanupError: After every removal was attempted, if any failed.
    """
    units = [partial(remove_object, client, bucket, key) for key in keys]
    error = run_batch(units, workers, best_effort=True).cleanup_error()
    if error is not None:
        raise error


def teardown_bucket(
    client: Any,
    bucket: str,
    keys: Sequence[str],
    workers: int,
    uploads: Sequence[tuple[str, str]] = (),
) -> None:
    """Best-effort removal of objects followed by their bucket.

    Pending multipart uploads, given as (key, upload_id) pairs, are aborted
    first. The bucket removal is attempted even if some aborts or object
    removals failed; all failures are reported together.

    Raises:
        FixtureCleanupError: If any upload, object or the bucket could not be removed.
    """
    results = [
        run_unit(index, partial(abort_upload, client, bucket, key, upload_id))
        for index, (key, upload_id) in enumerate(uploads)
    ]
    units = [partial(remove_object, client, bucket, key) for key in keys]
    if units:
        offset = len(results)
        results.extend(
            replace(result, index=offset + result.index)
            for result in run_batch(units, workers, best_effort=True)
        )
    results.append(run_unit(len(results), partial(remove_bucket, client, bucket)))
    error = BatchResult(results).cleanup_error()
    if error is not None:
        raise error


def create_objects(
    client: Any,
    bucket: str,
    bodies: Sequence[bytes],
    workers: int,
    prefix: str = NAME_PREFIX,
) -> list[ObjectInfo]:
    """Upload one object per body in parallel.

    Returns:
        ObjectInfo list in the same order as bodies.

    Raises:
        FixtureSetupError: If any upload failed. Objects that were created
            are removed before the error is raised.
    """
    keys = [random_name(prefix) for _ in bodies]
    units = [partial(put_object, client, bucket, key, body) for key, body in zip(keys, bodies)]
    batch = run_batch(units, workers)
    if not batch.ok:
        created = [result.value.key for result in batch.succeeded]
        try:
            remove_objects(client, bucket, created, workers)
        except FixtureCleanupError as e:
            logger.warning("Could not roll back objects in %s: %s", bucket, e)
        batch.raise_for_setup()
    return batch.values


def create_bucket_with_objects(
    client: Any,
    config: ServerConfig,
    bodies: Sequence[bytes],
    prefix: str = NAME_PREFIX,
) -> tuple[str, list[ObjectInfo]]:
    """Create a fresh bucket holding one object per body.

    Nothing is left behind on failure: the bucket is removed again if its
    objects could not all be created.
    """
    bucket = make_bucket(client, random_name(prefix), config.region)
    try:
        objects = create_objects(client, bucket, bodies, config.workers, prefix)
    except FixtureSetupError:
        try:
            remove_bucket(client, bucket)
        except Exception as e:
            logger.warning("Could not roll back bucket %s: %s", bucket, e)
        raise
    return bucket, objects


def upload_parts(
    client: Any,
    bucket: str,
    key: str,
    upload_id: str,
    chunks: Sequence[bytes],
    workers: int,
) -> list[dict]:
    """Upload multipart parts in parallel.

    Returns:
        [{"PartNumber": n, "ETag": etag}, ...] in part order.

    Raises:
        FixtureSetupError: If any part failed to upload.
    """
    units = [
        partial(upload_part, client, bucket, key, upload_id, number, chunk)
        for number, chunk in enumerate(chunks, start=1)
    ]
    batch = run_batch(units, workers)
    batch.raise_for_setup()
    return batch.values


def split_parts(data: bytes, part_size: int = MIN_PART_SIZE) -> list[bytes]:
    return [data[offset:offset + part_size] for offset in range(0, len(data), part_size)]


@dataclass
class SharedFixtures:
    """A bucket and objects shared by the cases of one suite run.

    Passed explicitly to the cases that declare they use it.
    """

    bucket: str
    objects: list[ObjectInfo] = field(default_factory=list)

    @classmethod
    def create(cls, client: Any, config: ServerConfig, count: int) -> "SharedFixtures":
        """Create the shared bucket and `count` random objects.

        Raises:
            FixtureSetupError: If any object could not be created.
        """
        bodies = [random_body() for _ in range(count)]
        bucket, objects = create_bucket_with_objects(client, config, bodies)
        logger.info("Created shared bucket %s with %d object(s)", bucket, len(objects))
        return cls(bucket=bucket, objects=objects)

    def teardown(self, client: Any, workers: int) -> None:
        """Remove the shared objects and bucket.

        Raises:
            FixtureCleanupError: If anything could not be removed.
        """
        teardown_bucket(client, self.bucket, [obj.key for obj in self.objects], workers)
        logger.info("Removed shared bucket %s", self.bucket)
