"""
Core gateway logic.

This package is framework-agnostic - it doesn't import FastAPI or boto3.
It holds the bucket and key naming rules and the orchestration that moves
staged uploads into the object store.
"""

from .gateway import ImageGateway
from .models import (
    BUCKETS,
    MAX_FILES_PER_UPLOAD,
    MULTIPLE_IMAGE_BUCKET,
    PRESIGNED_URL_EXPIRY_SECONDS,
    SINGLE_IMAGE_BUCKET,
    BucketStatus,
    ProvisioningPolicy,
    StoredObject,
)

__all__ = [
    "BUCKETS",
    "MAX_FILES_PER_UPLOAD",
    "MULTIPLE_IMAGE_BUCKET",
    "PRESIGNED_URL_EXPIRY_SECONDS",
    "SINGLE_IMAGE_BUCKET",
    "BucketStatus",
    "ImageGateway",
    "ProvisioningPolicy",
    "StoredObject",
]
