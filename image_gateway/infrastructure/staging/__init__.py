"""
Upload staging on local disk.

Uploads are written here before they are forwarded to the object store.
"""

from .area import (
    StagedFile,
    StagingArea,
    StagingError,
    TooManyFilesError,
)

__all__ = [
    "StagedFile",
    "StagingArea",
    "StagingError",
    "TooManyFilesError",
]
