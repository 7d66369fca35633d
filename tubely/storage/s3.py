import logging
from typing import BinaryIO

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from tubely.core.config import Settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


def create_s3_client(settings: Settings):
    """
    S3 client with bounded timeouts. Transient failures are retried by
    botocore's standard retry mode with exponential backoff.
    """
    config = BotoConfig(
        signature_version="s3v4",
        connect_timeout=settings.S3_CONNECT_TIMEOUT,
        read_timeout=settings.S3_READ_TIMEOUT,
        retries={"max_attempts": settings.S3_MAX_ATTEMPTS, "mode": "standard"},
    )
    return boto3.client(
        "s3",
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        region_name=settings.AWS_REGION,
        config=config,
    )


class S3Storage:
    def __init__(self, s3_client, region: str, cdn_base_url: str = None):
        self.s3_client = s3_client
        self.region = region
        self.cdn_base_url = cdn_base_url.rstrip("/") if cdn_base_url else None

    def put(self, bucket: str, key: str, content_type: str, body: BinaryIO) -> None:
        """
        Upload `body` from its current position to `bucket/key`.

        Raises:
            StorageError: On any S3 or transport failure
        """
        try:
            self.s3_client.put_object(
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to upload s3://{bucket}/{key}") from e

        logger.info("Uploaded object | bucket=%s | key=%s", bucket, key)

    def object_url(self, bucket: str, key: str) -> str:
        # {scheme}://{host}/{key}
        if self.cdn_base_url:
            return f"{self.cdn_base_url}/{key}"
        return f"https://{bucket}.s3.{self.region}.amazonaws.com/{key}"


def get_s3_storage(settings: Settings) -> S3Storage:
    return S3Storage(
        create_s3_client(settings),
        region=settings.AWS_REGION,
        cdn_base_url=settings.S3_CF_DISTRIBUTION,
    )
