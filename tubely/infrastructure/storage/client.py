"""
Object storage client for finished video artifacts.

Talks to S3 or any S3-compatible store (R2, MinIO) through boto3. The same
client serves both jobs the pipeline needs from storage:
- putting the remuxed file under its computed key
- generating presigned GET URLs for private objects

Mock mode keeps objects in memory, enabling API testing without
provisioning a bucket.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import BinaryIO, Optional, Protocol
from uuid import uuid4

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ...core.media.errors import IOFault, SigningFailed, UploadRejected
from ...core.media.models import StoredObjectRef

logger = logging.getLogger(__name__)


@dataclass
class StorageConfig:
    """
    Configuration for S3-compatible storage.

    endpoint_url is only needed for non-AWS stores; leave it unset for S3.
    """
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None


class ObjectStore(Protocol):
    """
    Protocol for object storage operations.

    Using a protocol means tests can provide mocks and we can
    swap storage backends without changing dependent code.
    """

    @property
    def bucket_name(self) -> str:
        ...

    async def upload(
        self,
        source: BinaryIO,
        key: str,
        content_type: str,
    ) -> StoredObjectRef:
        """Upload the whole source under key, replacing any existing object."""
        ...

    async def presign_get(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int,
    ) -> str:
        """Generate a time-limited download URL."""
        ...


class S3ObjectStore:
    """
    S3 object storage client.

    boto3 is synchronous, so calls run on a worker thread. Object writes are
    atomic on the store side: readers see either no object or the complete
    one, never a partial upload.
    """

    def __init__(self, config: StorageConfig, s3_client=None) -> None:
        self._config = config

        if s3_client is None:
            # path-style addressing for custom endpoints (R2, MinIO)
            boto_config = Config(
                signature_version="s3v4",
                s3={"addressing_style": "path" if config.endpoint_url else "auto"},
            )
            s3_client = boto3.client(
                "s3",
                endpoint_url=config.endpoint_url,
                aws_access_key_id=config.access_key_id or None,
                aws_secret_access_key=config.secret_access_key or None,
                region_name=config.region,
                config=boto_config,
            )

        self._s3_client = s3_client

        logger.info(
            "Initialized S3 object store",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url or "aws",
            }
        )

    @property
    def bucket_name(self) -> str:
        return self._config.bucket_name

    async def upload(
        self,
        source: BinaryIO,
        key: str,
        content_type: str,
    ) -> StoredObjectRef:
        try:
            source.seek(0)
            await asyncio.to_thread(
                self._s3_client.put_object,
                Bucket=self._config.bucket_name,
                Key=key,
                Body=source,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "Failed to upload object",
                extra={"key": key, "error": str(e)}
            )
            raise UploadRejected("Failed to upload to S3", diagnostics=str(e))
        except OSError as e:
            raise IOFault("Failed to read file during upload", diagnostics=str(e))

        logger.info(
            "Uploaded object",
            extra={"bucket": self._config.bucket_name, "key": key}
        )

        return StoredObjectRef(bucket=self._config.bucket_name, key=key)

    async def presign_get(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int,
    ) -> str:
        """
        Generate a temporary download URL.

        Signing happens locally from the client's credentials; no request
        reaches the store.
        """
        logger.debug(
            "Generating presigned URL",
            extra={"bucket": bucket, "key": key, "expiry_seconds": expiry_seconds}
        )

        try:
            return await asyncio.to_thread(
                self._s3_client.generate_presigned_url,
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expiry_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "Failed to generate presigned URL",
                extra={"bucket": bucket, "key": key, "error": str(e)}
            )
            raise SigningFailed("Couldn't create presigned URL", diagnostics=str(e))


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockObjectStore:
    """
    In-memory object store for local development and tests.

    Objects live in a dict keyed by (bucket, key). Presigned URLs use a
    mock:// scheme with a fresh signature on every call, like real signing.
    """

    def __init__(self, bucket_name: str = "tubely-mock") -> None:
        self._bucket = bucket_name
        self.objects: dict[tuple[str, str], tuple[bytes, str]] = {}
        logger.info("Initialized mock object store (in-memory)")

    @property
    def bucket_name(self) -> str:
        return self._bucket

    async def upload(
        self,
        source: BinaryIO,
        key: str,
        content_type: str,
    ) -> StoredObjectRef:
        try:
            source.seek(0)
            data = source.read()
        except OSError as e:
            raise IOFault("Failed to read file during upload", diagnostics=str(e))

        self.objects[(self._bucket, key)] = (data, content_type)

        logger.debug(
            "Stored object in mock storage",
            extra={"key": key, "size_bytes": len(data)}
        )

        return StoredObjectRef(bucket=self._bucket, key=key)

    async def presign_get(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int,
    ) -> str:
        expires = int(time.time()) + expiry_seconds
        return f"mock://{bucket}/{key}?expires={expires}&signature={uuid4().hex}"


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_object_store(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> ObjectStore:
    """
    Create object store based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return in-memory store for testing

    Returns:
        ObjectStore implementation (S3 or Mock)
    """
    if mock_mode:
        return MockObjectStore(config.bucket_name if config else "tubely-mock")

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3ObjectStore(config)
