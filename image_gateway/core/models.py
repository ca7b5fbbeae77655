"""
Domain models for the image gateway.

Bucket names, URL lifetime and the object-key naming rules live here. They
have no dependencies on HTTP, boto3 or the filesystem.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import uuid4


SINGLE_IMAGE_BUCKET = "single-image-bucket"
MULTIPLE_IMAGE_BUCKET = "multiple-image-bucket"
BUCKETS = (SINGLE_IMAGE_BUCKET, MULTIPLE_IMAGE_BUCKET)

BUCKET_REGION = "us-east-1"
PRESIGNED_URL_EXPIRY_SECONDS = 3600
MAX_FILES_PER_UPLOAD = 10


class ProvisioningPolicy(Enum):
    """What startup does when bucket provisioning fails."""
    BEST_EFFORT = "best_effort"  # log and keep serving
    FAIL_FAST = "fail_fast"      # abort startup


class BucketStatus(Enum):
    CREATED = "created"
    EXISTS = "exists"


@dataclass(frozen=True)
class StoredObject:
    """
    An object in the store plus a presigned URL for reading it.

    `filename` is the full object key, e.g. "trip/1.png".
    """
    filename: str
    url: str

    def to_dict(self) -> dict[str, str]:
        return {"filename": self.filename, "url": self.url}


def generate_id() -> str:
    """Unique identifier used when the caller does not name an upload."""
    return str(uuid4())


def resolve_group_id(requested: Optional[str]) -> str:
    """Group id is the caller's choice, or a generated id."""
    return requested or generate_id()


def member_filename(index: int, extension: str, requested: Optional[str] = None) -> str:
    """
    Name of the index-th file (1-based) inside a group.

    Defaults to the position plus the original extension: "1.png", "2.jpg".
    """
    if index < 1:
        raise ValueError("index is 1-based")
    return requested or f"{index}{extension}"


def group_object_key(group_id: str, filename: str) -> str:
    """Object key for a grouped file: "{group}/{filename}"."""
    return f"{group_id}/{filename}"


def group_prefix(group_id: str) -> str:
    """Listing prefix for everything stored under a group."""
    return f"{group_id}/"


def is_directory_marker(key: str) -> bool:
    """Keys ending in "/" are directory placeholders, not images."""
    return key.endswith("/")
