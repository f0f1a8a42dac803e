"""
Rice Notes Backend — S3 Object Store
======================================

What:  ObjectStore implementation backed by AWS S3 (boto3).
How:   A single boto3 client (thread-safe) is shared by all requests.
       Blocking SDK calls run in a worker thread via asyncio.to_thread so the
       event loop keeps serving other requests, and a cancelled request stops
       waiting immediately.
Who:   Built once in main.py when S3_BUCKET_NAME is set and mock storage is off.

Timeouts and retries:
    Configured on the botocore Config (connect/read timeouts, standard retry
    mode with S3_MAX_ATTEMPTS). NoteService never adds its own timeout.

Objects are written with ServerSideEncryption=AES256.
"""

import asyncio
import logging
from typing import Any, BinaryIO, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ricenotes.config import Settings
from ricenotes.exceptions import StorageDeleteError, StorageLinkError, StorageUploadError
from ricenotes.services.storage_base import ObjectStore

logger = logging.getLogger(__name__)

S3_ERRORS = (BotoCoreError, ClientError)


class S3ObjectStore(ObjectStore):
    """
    Stores note PDFs in one S3 bucket.

    Args:
        bucket: Target bucket name
        client: Pre-built boto3 S3 client (tests pass a stub); built from
                region/endpoint/timeouts when omitted
    """

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        client: Optional[Any] = None,
        endpoint_url: Optional[str] = None,
        connect_timeout: float = 5.0,
        read_timeout: float = 30.0,
        max_attempts: int = 3,
    ):
        if not bucket:
            raise ValueError("S3 bucket name is required")
        self.bucket = bucket
        self.region = region
        self._client = client or boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url or None,
            config=Config(
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
                retries={"max_attempts": max_attempts, "mode": "standard"},
                signature_version="s3v4",
            ),
        )
        # No HeadBucket here: access is validated on the first upload
        logger.info("S3 object store initialized: bucket=%s region=%s", bucket, region)

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3ObjectStore":
        return cls(
            bucket=settings.s3_bucket_name,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url or None,
            connect_timeout=settings.s3_connect_timeout,
            read_timeout=settings.s3_read_timeout,
            max_attempts=settings.s3_max_attempts,
        )

    async def upload(
        self,
        key: str,
        stream: BinaryIO,
        content_type: str,
        size: int,
    ) -> None:
        logger.debug("Starting S3 upload: key=%s size=%d", key, size)
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=stream,
                ContentType=content_type,
                ContentLength=size,
                ServerSideEncryption="AES256",
            )
        except S3_ERRORS as e:
            logger.error("S3 upload failed for %s: %s", key, str(e))
            raise StorageUploadError(
                context={"key": key, "bucket": self.bucket, "error": str(e)}
            ) from e

        logger.info("File uploaded to S3: key=%s bucket=%s", key, self.bucket)

    async def delete(self, key: str) -> None:
        logger.debug("Deleting S3 object: key=%s", key)
        try:
            await asyncio.to_thread(
                self._client.delete_object,
                Bucket=self.bucket,
                Key=key,
            )
        except S3_ERRORS as e:
            logger.error("S3 delete failed for %s: %s", key, str(e))
            raise StorageDeleteError(
                context={"key": key, "bucket": self.bucket, "error": str(e)}
            ) from e

        logger.info("File deleted from S3: key=%s bucket=%s", key, self.bucket)

    async def presigned_url(self, key: str, expires_in: int) -> str:
        try:
            # generate_presigned_url signs locally; no network round trip
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except S3_ERRORS as e:
            logger.error("Presigned URL generation failed for %s: %s", key, str(e))
            raise StorageLinkError(context={"key": key, "error": str(e)}) from e

    async def health_check(self) -> bool:
        try:
            await asyncio.to_thread(self._client.head_bucket, Bucket=self.bucket)
            return True
        except S3_ERRORS as e:
            logger.warning("S3 health check failed: %s", str(e))
            return False
