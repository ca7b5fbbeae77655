"""
Local staging area for incoming uploads.

Multipart parsing itself is done by Starlette (python-multipart). This module
takes the parsed upload streams and writes them to a staging directory on
local disk, where they sit until the gateway has pushed them to the object
store. It also enforces the per-request file cap.

The staging directory is shared by every request in the process. Names are
either generated (uuid4) or supplied by the caller, and caller-supplied names
are not locked: two concurrent requests asking for the same name write to
the same staging path and the last writer wins.

Staging files are only removed after a successful store write. Error paths
leave them behind, so long-running deployments should sweep the directory.
"""

import asyncio
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)


class StagingError(Exception):
    """Raised when an upload cannot be staged."""
    pass


class TooManyFilesError(StagingError):
    """Raised when a request carries more files than the intake accepts."""

    def __init__(self, count: int, limit: int) -> None:
        super().__init__(f"Too many files: {count} received, at most {limit} allowed")
        self.count = count
        self.limit = limit


@dataclass
class StagedFile:
    """An upload persisted to the staging directory."""
    path: Path
    original_filename: str
    size: int

    @property
    def name(self) -> str:
        """Name of the staging file (generated or requested id + extension)."""
        return self.path.name

    @property
    def extension(self) -> str:
        """Extension of the client's original file name, including the dot."""
        return os.path.splitext(self.original_filename)[1]


def _check_name(name: str) -> str:
    """Reject names that would escape the staging directory."""
    if (
        not name
        or name in (".", "..")
        or "/" in name
        or "\\" in name
        or os.sep in name
    ):
        raise StagingError(f"Invalid name: {name!r}")
    return name


class StagingArea:
    """
    Writes upload streams to disk and cleans them up afterwards.

    All filesystem work runs on a worker thread so the event loop keeps
    serving other requests while large files are copied.
    """

    def __init__(self, root: str | Path, max_files: int = 10) -> None:
        self.root = Path(root)
        self.max_files = max_files

    def check_count(self, count: int) -> None:
        """Reject a request that carries more files than allowed."""
        if count > self.max_files:
            logger.warning(
                "Rejected upload with too many files",
                extra={"count": count, "limit": self.max_files}
            )
            raise TooManyFilesError(count, self.max_files)

    async def stage(
        self,
        source: BinaryIO,
        original_filename: str,
        requested_name: Optional[str] = None,
    ) -> StagedFile:
        """
        Copy an upload stream into the staging directory.

        The staging file is named `{requested_name or uuid4}{extension}` where
        the extension comes from the client's original file name.
        """
        base = _check_name(requested_name) if requested_name else str(uuid4())
        extension = os.path.splitext(original_filename or "")[1]
        path = self.root / f"{base}{extension}"

        def _write() -> int:
            self.root.mkdir(parents=True, exist_ok=True)
            source.seek(0)
            with open(path, "wb") as out:
                shutil.copyfileobj(source, out)
            return os.stat(path).st_size

        size = await asyncio.to_thread(_write)

        logger.debug(
            "Staged upload",
            extra={"path": str(path), "original_filename": original_filename, "size_bytes": size}
        )

        return StagedFile(path=path, original_filename=original_filename or "", size=size)

    async def create_group_dir(self, group_id: str) -> Path:
        """
        Create `{root}/{group_id}/` for a grouped upload.

        Nothing is written into this directory; files are pushed to the store
        from their own staging paths.
        """
        path = self.root / _check_name(group_id)
        await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)
        return path

    async def discard(self, staged: StagedFile) -> None:
        """Delete a staging file."""
        await asyncio.to_thread(os.remove, staged.path)
        logger.debug("Removed staging file", extra={"path": str(staged.path)})
