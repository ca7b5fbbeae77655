"""
Upload endpoints.

Both endpoints follow the same flow:
1. Starlette parses the multipart body
2. Each file is written to the local staging directory
3. The gateway streams the staging file into the object store
4. The staging file is deleted once the store write succeeded

Single uploads go to the single-image bucket under one key. Grouped uploads
go to the multi-image bucket under "{group}/{name}" keys and come back with
presigned URLs.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, Request, UploadFile, status
from pydantic import BaseModel, Field

from ...infrastructure.staging.area import StagingError, TooManyFilesError
from ...infrastructure.storage.client import StorageError
from ..dependencies import ImageGatewayDep, StagingAreaDep
from ..errors import ApiError

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class SingleUploadResponse(BaseModel):
    """Response after storing one image."""
    message: str = Field(description="Status message")
    filename: str = Field(description="Object key the image was stored under")


class StoredFile(BaseModel):
    """One stored image with a temporary download link."""
    filename: str = Field(description="Object key, e.g. 'trip/1.png'")
    url: str = Field(description="Presigned GET URL, valid for one hour")


class MultiUploadResponse(BaseModel):
    """Response after storing a group of images."""
    message: str = Field(description="Status message")
    folder: str = Field(description="Group id used as the key prefix")
    files: list[StoredFile] = Field(description="Stored images in upload order")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    response_model=SingleUploadResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload one image",
    description="Store one image in the single-image bucket",
)
async def upload_image(
    image: Annotated[Optional[UploadFile], File(description="Image file")] = None,
    filename: Annotated[Optional[str], Form(description="Name to store the image under")] = None,
    staging: StagingAreaDep = None,
    gateway: ImageGatewayDep = None,
) -> SingleUploadResponse:
    """
    Upload a single image.

    The object key is `filename` (or a generated id) followed by the
    extension of the uploaded file.
    """
    if image is None:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "No file uploaded")

    try:
        staged = await staging.stage(image.file, image.filename or "", requested_name=filename or None)
    except StagingError as e:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid upload", error=str(e))

    try:
        key = await gateway.store_single(staged)
    except StorageError as e:
        logger.error(
            "Error uploading file to MinIO",
            extra={"staging_path": str(staged.path), "error": str(e)}
        )
        raise ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Error uploading file to MinIO",
            error=e.to_dict(),
        )

    return SingleUploadResponse(
        message="Image uploaded successfully to bucket1",
        filename=key,
    )


@router.post(
    "/upload-multiple",
    response_model=MultiUploadResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload a group of images",
    description="Store up to 10 images under one group prefix in the multi-image bucket",
)
async def upload_images(
    request: Request,
    images: Annotated[Optional[list[UploadFile]], File(description="Image files (max 10)")] = None,
    filename: Annotated[Optional[str], Form(description="Group id")] = None,
    staging: StagingAreaDep = None,
    gateway: ImageGatewayDep = None,
) -> MultiUploadResponse:
    """
    Upload a group of images.

    Optional form fields `filename1`, `filename2`, ... rename individual
    files; the rest are stored as "{position}{extension}". Files are stored
    one after another in upload order. If one fails, the request fails and
    the files before it stay stored.
    """
    if not images:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "No files uploaded")

    try:
        staging.check_count(len(images))
    except TooManyFilesError as e:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Too many files", error=str(e))

    # Per-file names are dynamic fields, so read them from the parsed form
    form = await request.form()
    requested_names: dict[int, str] = {}
    for index in range(1, len(images) + 1):
        value = form.get(f"filename{index}")
        if isinstance(value, str) and value:
            requested_names[index] = value

    try:
        group_id = await gateway.start_group(filename or None)
    except StagingError as e:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid upload", error=str(e))

    staged_files = [
        await staging.stage(upload.file, upload.filename or "")
        for upload in images
    ]

    logger.info(
        "Group upload started",
        extra={"group_id": group_id, "count": len(staged_files)}
    )

    try:
        stored = await gateway.store_group(group_id, staged_files, requested_names)
    except StorageError as e:
        logger.error(
            "Error uploading files to MinIO",
            extra={"group_id": group_id, "error": str(e)}
        )
        raise ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Error uploading files to MinIO",
            error=e.to_dict(),
        )

    return MultiUploadResponse(
        message="Images uploaded successfully to bucket2",
        folder=group_id,
        files=[StoredFile(**obj.to_dict()) for obj in stored],
    )
