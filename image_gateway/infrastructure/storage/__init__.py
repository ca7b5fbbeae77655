"""
Object store integration for uploaded images.

Supports MinIO and other S3-compatible services via boto3.
Includes mock mode for local development without a running store.
"""

from .client import (
    MockObjectStoreClient,
    ObjectStoreClient,
    S3ObjectStoreClient,
    StorageConfig,
    StorageError,
    create_storage_client,
)

__all__ = [
    "MockObjectStoreClient",
    "ObjectStoreClient",
    "S3ObjectStoreClient",
    "StorageConfig",
    "StorageError",
    "create_storage_client",
]
