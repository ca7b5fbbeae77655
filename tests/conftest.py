"""Shared fixtures: in-memory stores that fail on demand, settings, test clients."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from image_gateway.config.settings import Settings
from image_gateway.infrastructure.storage.client import MockObjectStoreClient, StorageError
from image_gateway.main import create_app


class FaultyStore(MockObjectStoreClient):
    """
    In-memory store with switchable failures.

    - fail_make_bucket: every make_bucket raises
    - fail_put_after: put_object raises once this many puts have succeeded
    - fail_presign_keys: presigned_get_object raises for these keys
    - fail_list: list_objects raises

    Also records the region each bucket was created in and reads objects
    back for assertions.
    """

    def __init__(self) -> None:
        super().__init__()
        self.fail_make_bucket = False
        self.fail_put_after: int | None = None
        self.fail_presign_keys: set[str] = set()
        self.fail_list = False
        self.puts = 0
        self.bucket_regions: dict[str, str] = {}

    async def make_bucket(self, bucket, region="us-east-1"):
        if self.fail_make_bucket:
            raise StorageError("Access Denied.", code="AccessDenied")
        await super().make_bucket(bucket, region)
        self.bucket_regions[bucket] = region

    async def put_object(self, bucket, key, data, length):
        if self.fail_put_after is not None and self.puts >= self.fail_put_after:
            raise StorageError("We encountered an internal error.", code="InternalError")
        await super().put_object(bucket, key, data, length)
        self.puts += 1

    async def list_objects(self, bucket, prefix=""):
        if self.fail_list:
            raise StorageError("Connection refused", code="InternalError")
        return await super().list_objects(bucket, prefix)

    async def presigned_get_object(self, bucket, key, expiry_seconds=3600):
        if key in self.fail_presign_keys:
            raise StorageError("Signature does not match", code="SignatureDoesNotMatch")
        return await super().presigned_get_object(bucket, key, expiry_seconds)

    def get_object(self, bucket, key):
        objects = self._bucket(bucket)
        if key not in objects:
            raise StorageError(f"Object not found: {key}", code="NoSuchKey")
        return objects[key]


@pytest.fixture
def staging_dir(tmp_path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def settings(staging_dir) -> Settings:
    """Settings for an app backed by the in-memory store."""
    return Settings(
        storage_mock_mode=True,
        staging_dir=str(staging_dir),
        bucket_provisioning="best_effort",
    )


@pytest.fixture
def store() -> FaultyStore:
    return FaultyStore()


@pytest.fixture
def app(settings, store):
    """App whose store is swapped for the faulty in-memory one before startup."""
    application = create_app(settings)
    application.state.storage_client = store
    return application


@pytest.fixture
def client(app):
    """Test client with the lifespan (bucket provisioning) run."""
    with TestClient(app) as test_client:
        yield test_client
