"""
Gateway orchestration: staged uploads in, object keys and presigned URLs out.

This module is framework-agnostic. It doesn't know about HTTP, multipart
parsing or boto3; it sequences calls against an object store and a staging
area given to it through the protocols below.

Failure semantics:
- No retries. Store errors propagate to the caller unchanged.
- Grouped uploads stop at the first failing file. Files stored before the
  failure stay stored.
- Staging files are deleted only after their store write succeeded.
"""

import asyncio
import logging
from pathlib import Path
from typing import BinaryIO, Optional, Protocol

from .models import (
    BUCKET_REGION,
    BUCKETS,
    MULTIPLE_IMAGE_BUCKET,
    PRESIGNED_URL_EXPIRY_SECONDS,
    SINGLE_IMAGE_BUCKET,
    BucketStatus,
    ProvisioningPolicy,
    StoredObject,
    group_object_key,
    group_prefix,
    is_directory_marker,
    member_filename,
    resolve_group_id,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class ObjectStore(Protocol):
    """The subset of the object store client the gateway relies on."""

    async def bucket_exists(self, bucket: str) -> bool:
        ...

    async def make_bucket(self, bucket: str, region: str = "us-east-1") -> None:
        ...

    async def put_object(self, bucket: str, key: str, data: BinaryIO, length: int) -> None:
        ...

    async def list_objects(self, bucket: str, prefix: str = "") -> list[str]:
        ...

    async def presigned_get_object(self, bucket: str, key: str, expiry_seconds: int = 3600) -> str:
        ...


class StagedUpload(Protocol):
    """A file sitting in the staging area."""

    @property
    def path(self) -> Path:
        ...

    @property
    def name(self) -> str:
        ...

    @property
    def extension(self) -> str:
        ...

    @property
    def size(self) -> int:
        ...


class Staging(Protocol):
    """Staging area operations the gateway drives."""

    async def create_group_dir(self, group_id: str) -> Path:
        ...

    async def discard(self, staged: StagedUpload) -> None:
        ...


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------

class ImageGateway:
    """
    Pushes staged uploads into the two image buckets and hands out URLs.

    One instance is created per application and shared by all requests.
    It holds no per-request state.
    """

    def __init__(
        self,
        store: ObjectStore,
        staging: Staging,
        region: str = BUCKET_REGION,
    ) -> None:
        self._store = store
        self._staging = staging
        self._region = region

    async def ensure_buckets_exist(
        self,
        policy: ProvisioningPolicy = ProvisioningPolicy.BEST_EFFORT,
    ) -> dict[str, BucketStatus]:
        """
        Create the single- and multi-image buckets if they are missing.

        New buckets are created in the region the gateway was built with.

        Safe to call repeatedly: existing buckets are left alone. Under
        BEST_EFFORT the first error is logged and provisioning stops without
        raising; under FAIL_FAST the error propagates.

        Returns the status of every bucket that was handled.
        """
        results: dict[str, BucketStatus] = {}

        try:
            for bucket in BUCKETS:
                if await self._store.bucket_exists(bucket):
                    results[bucket] = BucketStatus.EXISTS
                    logger.info(f"Bucket '{bucket}' already exists.")
                else:
                    await self._store.make_bucket(bucket, self._region)
                    results[bucket] = BucketStatus.CREATED
                    logger.info(f"Bucket '{bucket}' created successfully.")
        except Exception as e:
            logger.error(
                "Error ensuring buckets exist or creating buckets",
                extra={"error": str(e), "policy": policy.value},
            )
            if policy is ProvisioningPolicy.FAIL_FAST:
                raise

        return results

    async def _put_staged(self, bucket: str, key: str, staged: StagedUpload) -> None:
        stream = await asyncio.to_thread(open, staged.path, "rb")
        with stream:
            await self._store.put_object(bucket, key, stream, staged.size)

    async def store_single(self, staged: StagedUpload) -> str:
        """
        Store one staged upload in the single-image bucket.

        The object key is the staging name: the requested name or a
        generated id, followed by the original extension.
        """
        key = staged.name
        await self._put_staged(SINGLE_IMAGE_BUCKET, key, staged)
        await self._staging.discard(staged)

        logger.info(
            "Stored single image",
            extra={"bucket": SINGLE_IMAGE_BUCKET, "key": key, "size_bytes": staged.size}
        )
        return key

    async def start_group(self, requested_group_id: Optional[str] = None) -> str:
        """Pick the group id and create its staging marker directory."""
        group_id = resolve_group_id(requested_group_id)
        await self._staging.create_group_dir(group_id)
        return group_id

    async def store_group(
        self,
        group_id: str,
        staged_files: list[StagedUpload],
        requested_names: Optional[dict[int, str]] = None,
    ) -> list[StoredObject]:
        """
        Store staged uploads under "{group_id}/" in request order.

        `requested_names` maps 1-based positions to caller-chosen member
        names; positions without an entry are named "{i}{ext}". Each file is
        stored, its staging file removed and a presigned URL generated before
        the next file is touched.
        """
        requested_names = requested_names or {}
        stored: list[StoredObject] = []

        for index, staged in enumerate(staged_files, start=1):
            name = member_filename(index, staged.extension, requested_names.get(index))
            key = group_object_key(group_id, name)

            await self._put_staged(MULTIPLE_IMAGE_BUCKET, key, staged)
            await self._staging.discard(staged)

            url = await self._store.presigned_get_object(
                MULTIPLE_IMAGE_BUCKET, key, PRESIGNED_URL_EXPIRY_SECONDS
            )
            stored.append(StoredObject(filename=key, url=url))

        logger.info(
            "Stored image group",
            extra={"bucket": MULTIPLE_IMAGE_BUCKET, "group_id": group_id, "count": len(stored)}
        )
        return stored

    async def list_group(self, group_id: str) -> list[StoredObject]:
        """
        Presigned URLs for every image stored under a group.

        URLs are generated concurrently. An object whose URL cannot be
        generated is logged and left out; a failing listing raises.
        """
        keys = await self._store.list_objects(MULTIPLE_IMAGE_BUCKET, group_prefix(group_id))
        keys = [key for key in keys if not is_directory_marker(key)]

        async def _presign(key: str) -> Optional[StoredObject]:
            try:
                url = await self._store.presigned_get_object(
                    MULTIPLE_IMAGE_BUCKET, key, PRESIGNED_URL_EXPIRY_SECONDS
                )
            except Exception as e:
                logger.error(
                    f"Error generating URL for {key}",
                    extra={"bucket": MULTIPLE_IMAGE_BUCKET, "key": key, "error": str(e)}
                )
                return None
            return StoredObject(filename=key, url=url)

        results = await asyncio.gather(*(_presign(key) for key in keys))
        return [obj for obj in results if obj is not None]

    async def download_url(self, filename: str) -> str:
        """
        Presigned URL for an object in the single-image bucket.

        The key is not checked for existence first.
        """
        return await self._store.presigned_get_object(
            SINGLE_IMAGE_BUCKET, filename, PRESIGNED_URL_EXPIRY_SECONDS
        )
