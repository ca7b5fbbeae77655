"""
Object store client for uploaded images.

Talks to MinIO (or any other S3-compatible service) through boto3. Only the
handful of calls the gateway needs are exposed: bucket existence check,
bucket creation, object put, recursive listing and presigned GET URLs.

boto3 is synchronous, so every call is pushed onto a worker thread with
asyncio.to_thread. From a request handler's point of view each store call is
a suspension point and other requests keep being served meanwhile.

Mock mode keeps buckets and objects in memory, enabling API testing without
running a store.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, BinaryIO, Optional, Protocol

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when object store operations fail."""

    def __init__(self, message: str, code: str = "InternalError") -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def to_dict(self) -> dict[str, Any]:
        """Raw error payload returned to HTTP clients."""
        return {"code": self.code, "message": self.message}


@dataclass
class StorageConfig:
    """Connection settings for an S3-compatible store."""
    endpoint_url: str
    access_key: str
    secret_key: str
    region: str = "us-east-1"


class ObjectStoreClient(Protocol):
    """
    Protocol for object store operations.

    Route handlers only see this protocol, so tests can hand in the
    in-memory client or a fake that fails on demand.
    """

    async def bucket_exists(self, bucket: str) -> bool:
        """Return True if the bucket exists."""
        ...

    async def make_bucket(self, bucket: str, region: str = "us-east-1") -> None:
        """Create a bucket."""
        ...

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: BinaryIO,
        length: int,
    ) -> None:
        """Stream `length` bytes from `data` into bucket/key."""
        ...

    async def list_objects(
        self,
        bucket: str,
        prefix: str = "",
    ) -> list[str]:
        """Return every key under prefix, at any depth, in listing order."""
        ...

    async def presigned_get_object(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int = 3600,
    ) -> str:
        """Generate a temporary download URL."""
        ...


def _error_code(exc: Exception) -> str:
    """Pull the S3 error code out of a botocore ClientError, if any."""
    response = getattr(exc, "response", None)
    if isinstance(response, dict):
        return str(response.get("Error", {}).get("Code", "InternalError"))
    return "InternalError"


class S3ObjectStoreClient:
    """
    MinIO / S3 object store client backed by boto3.

    Path-style addressing is forced because MinIO serves buckets under the
    endpoint path rather than as virtual hosts.
    """

    def __init__(self, config: StorageConfig) -> None:
        """
        Initialize the boto3 client.

        boto3 is imported here so that mock mode does not need it.
        """
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for S3 storage. Install with: pip install boto3"
            )

        self._config = config

        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'},
        )

        self._s3_client = boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key,
            aws_secret_access_key=config.secret_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized S3 object store client",
            extra={"endpoint": config.endpoint_url}
        )

    async def bucket_exists(self, bucket: str) -> bool:
        """
        Check whether a bucket exists with HEAD bucket.

        A 404 means "absent"; any other failure (auth, connectivity) is an
        error, not a negative answer.
        """
        try:
            await asyncio.to_thread(self._s3_client.head_bucket, Bucket=bucket)
            return True
        except Exception as e:
            code = _error_code(e)
            if code in ("404", "NoSuchBucket", "NotFound"):
                return False
            logger.error(
                "Failed to check bucket",
                extra={"bucket": bucket, "error": str(e)}
            )
            raise StorageError(f"Bucket check failed: {e}", code=code)

    async def make_bucket(self, bucket: str, region: str = "us-east-1") -> None:
        """Create a bucket. us-east-1 must not be sent as a location constraint."""
        params: dict[str, Any] = {"Bucket": bucket}
        if region and region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}

        try:
            await asyncio.to_thread(self._s3_client.create_bucket, **params)
        except Exception as e:
            logger.error(
                "Failed to create bucket",
                extra={"bucket": bucket, "region": region, "error": str(e)}
            )
            raise StorageError(f"Bucket creation failed: {e}", code=_error_code(e))

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: BinaryIO,
        length: int,
    ) -> None:
        """Stream a file object into the store with an explicit length."""
        try:
            await asyncio.to_thread(
                self._s3_client.put_object,
                Bucket=bucket,
                Key=key,
                Body=data,
                ContentLength=length,
            )

            logger.debug(
                "Uploaded object",
                extra={"bucket": bucket, "key": key, "size_bytes": length}
            )

        except Exception as e:
            logger.error(
                "Failed to upload object",
                extra={"bucket": bucket, "key": key, "error": str(e)}
            )
            raise StorageError(f"Upload failed: {e}", code=_error_code(e))

    async def list_objects(
        self,
        bucket: str,
        prefix: str = "",
    ) -> list[str]:
        """
        List keys under a prefix with ListObjectsV2.

        No delimiter is sent, so every key below the prefix is returned,
        following continuation tokens across pages.
        """
        def _collect() -> list[str]:
            paginator = self._s3_client.get_paginator('list_objects_v2')

            keys: list[str] = []
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                keys.extend(obj['Key'] for obj in page.get('Contents', []))
            return keys

        try:
            return await asyncio.to_thread(_collect)
        except Exception as e:
            logger.error(
                "Failed to list objects",
                extra={"bucket": bucket, "prefix": prefix, "error": str(e)}
            )
            raise StorageError(f"Listing failed: {e}", code=_error_code(e))

    async def presigned_get_object(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int = 3600,
    ) -> str:
        """
        Generate a temporary download URL.

        Signing happens locally; the object is not looked up, so a URL is
        returned even for keys that were never stored.
        """
        try:
            return await asyncio.to_thread(
                self._s3_client.generate_presigned_url,
                'get_object',
                Params={'Bucket': bucket, 'Key': key},
                ExpiresIn=expiry_seconds,
            )
        except Exception as e:
            logger.error(
                "Failed to generate presigned URL",
                extra={"bucket": bucket, "key": key, "error": str(e)}
            )
            raise StorageError(
                f"Presigned URL generation failed: {e}", code=_error_code(e)
            )


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockObjectStoreClient:
    """
    In-memory object store for local development and tests.

    Buckets are dictionaries of key -> bytes. Error codes mirror the ones
    S3 returns so callers see the same StorageError shape in both modes.
    """

    def __init__(self) -> None:
        self._buckets: dict[str, dict[str, bytes]] = {}
        logger.info("Initialized mock object store client (in-memory)")

    def _bucket(self, bucket: str) -> dict[str, bytes]:
        if bucket not in self._buckets:
            raise StorageError(
                f"The specified bucket does not exist: {bucket}",
                code="NoSuchBucket",
            )
        return self._buckets[bucket]

    async def bucket_exists(self, bucket: str) -> bool:
        return bucket in self._buckets

    async def make_bucket(self, bucket: str, region: str = "us-east-1") -> None:
        if bucket in self._buckets:
            raise StorageError(
                f"Bucket already owned by you: {bucket}",
                code="BucketAlreadyOwnedByYou",
            )
        self._buckets[bucket] = {}

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: BinaryIO,
        length: int,
    ) -> None:
        """Store object bytes in memory. Last write to a key wins."""
        objects = self._bucket(bucket)
        body = data.read(length)
        if len(body) != length:
            raise StorageError(
                f"Stream ended after {len(body)} of {length} bytes",
                code="IncompleteBody",
            )
        objects[key] = body

        logger.debug(
            "Stored object in mock store",
            extra={"bucket": bucket, "key": key, "size_bytes": length}
        )

    async def list_objects(
        self,
        bucket: str,
        prefix: str = "",
    ) -> list[str]:
        return sorted(k for k in self._bucket(bucket) if k.startswith(prefix))

    async def presigned_get_object(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int = 3600,
    ) -> str:
        """Return a mock URL. Like real signing, the key is not checked."""
        self._bucket(bucket)
        return f"mock://storage/{bucket}/{key}?expires={expiry_seconds}"


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> ObjectStoreClient:
    """
    Create an object store client.

    Args:
        config: Store connection settings (required if not mock_mode)
        mock_mode: If True, return the in-memory client

    Returns:
        ObjectStoreClient implementation (S3 or Mock)
    """
    if mock_mode:
        return MockObjectStoreClient()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3ObjectStoreClient(config)
