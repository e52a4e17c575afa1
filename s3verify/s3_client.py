"""S3 client factory for fixture setup and teardown.

Fixtures (buckets, objects, multipart parts) are created and removed with
a boto3 client so that the requests under test are the only ones built by
s3verify's own signer.
"""

import boto3
from botocore.client import Config

from s3verify.models import ServerConfig


def build_s3_client(config: ServerConfig):
    """Build a boto3 S3 client for the configured endpoint.

    Args:
        config: Server configuration with endpoint, credentials, region,
               addressing style and TLS verification.

    Returns:
        A boto3 S3 client.

    Note:
        The connection pool holds at least one connection per worker.
        botocore retries are disabled; failures surface to the caller.
    """
    boto_config = Config(
        signature_version="s3v4",
        s3={"addressing_style": config.addressing_style},
        max_pool_connections=max(config.workers, 10),
        retries={"max_attempts": 1, "mode": "standard"},
    )

    return boto3.client(
        "s3",
        endpoint_url=config.endpoint_url,
        aws_access_key_id=config.access_key,
        aws_secret_access_key=config.secret_key,
        region_name=config.region,
        verify=config.verify_ssl,
        config=boto_config,
    )
