"""
Download link endpoints.

Links are presigned GET URLs valid for one hour. They are generated fresh on
every call and never stored.
"""

import logging

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from ...infrastructure.storage.client import StorageError
from ..dependencies import ImageGatewayDep
from ..errors import ApiError
from .uploads import StoredFile

logger = logging.getLogger(__name__)

router = APIRouter()


class ImageListResponse(BaseModel):
    """Images stored under a group."""
    message: str = Field(description="Status message")
    files: list[StoredFile] = Field(description="Images with presigned URLs")


class DownloadResponse(BaseModel):
    """A presigned link for one image."""
    message: str = Field(description="Status message")
    url: str = Field(description="Presigned GET URL, valid for one hour")


@router.get(
    "/get-images/{folder}",
    response_model=ImageListResponse,
    summary="List a group of images",
    description="Presigned URLs for every image stored under a group id",
)
async def get_images(folder: str, gateway: ImageGatewayDep = None) -> ImageListResponse:
    """
    List the images stored under `folder/`.

    Images whose URL could not be generated are left out of the result
    rather than failing the request.
    """
    try:
        stored = await gateway.list_group(folder)
    except StorageError as e:
        logger.error(
            "Error retrieving images",
            extra={"folder": folder, "error": str(e)}
        )
        raise ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Error retrieving images",
            error=e.to_dict(),
        )

    return ImageListResponse(
        message="Successfully retrieved all images in the folder",
        files=[StoredFile(**obj.to_dict()) for obj in stored],
    )


@router.get(
    "/download/{filename}",
    response_model=DownloadResponse,
    summary="Get a download link",
    description="Presigned URL for one image in the single-image bucket",
)
async def download_image(filename: str, gateway: ImageGatewayDep = None) -> DownloadResponse:
    """
    Generate a download link.

    The object is not looked up first: a key that was never stored still
    gets a URL, which the store will answer with 404.
    """
    try:
        url = await gateway.download_url(filename)
    except StorageError as e:
        logger.error(
            "Error generating presigned URL",
            extra={"key": filename, "error": str(e)}
        )
        raise ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Error generating presigned URL",
            error=e.to_dict(),
        )

    return DownloadResponse(
        message="Presigned URL generated successfully from bucket1",
        url=url,
    )
