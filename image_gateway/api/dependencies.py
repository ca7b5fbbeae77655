"""
FastAPI dependency injection.

The object store client is created once per application (see main.py) and
kept on app.state. Handlers never reach for it directly; they ask for it
through these dependencies, which tests can replace with
app.dependency_overrides.
"""

import logging
from typing import Annotated

from fastapi import Depends, Request

from ..config.settings import Settings
from ..core.gateway import ImageGateway
from ..core.models import MAX_FILES_PER_UPLOAD
from ..infrastructure.staging.area import StagingArea
from ..infrastructure.storage.client import ObjectStoreClient

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application-scoped handles
# ---------------------------------------------------------------------------

def get_app_settings(request: Request) -> Settings:
    """Settings the running application was created with."""
    return request.app.state.settings


def get_storage_client(request: Request) -> ObjectStoreClient:
    """
    Provide the process-wide object store client.

    The same client serves every request; boto3 clients are safe to share
    across threads.
    """
    return request.app.state.storage_client


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_staging_area(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> StagingArea:
    """Staging area rooted at the configured directory."""
    return StagingArea(settings.staging_dir, max_files=MAX_FILES_PER_UPLOAD)


def get_image_gateway(
    storage: Annotated[ObjectStoreClient, Depends(get_storage_client)],
    staging: Annotated[StagingArea, Depends(get_staging_area)],
) -> ImageGateway:
    """
    Provide an ImageGateway wired to the shared store client.

    The gateway is stateless, so a new instance per request is fine.
    """
    return ImageGateway(store=storage, staging=staging)


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

SettingsDep = Annotated[Settings, Depends(get_app_settings)]
StorageClientDep = Annotated[ObjectStoreClient, Depends(get_storage_client)]
StagingAreaDep = Annotated[StagingArea, Depends(get_staging_area)]
ImageGatewayDep = Annotated[ImageGateway, Depends(get_image_gateway)]
