"""
FastAPI application entry point.

This module creates and configures the FastAPI application. The object store
client is built once in create_app() and stored on app.state; the lifespan
makes sure both buckets exist before traffic is served.

For local development:
    uvicorn image_gateway.main:app --reload --port 3001

Or simply:
    python -m image_gateway.main
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.errors import ApiError, api_error_handler
from .api.routes import health, images, uploads
from .config.settings import Settings, get_settings
from .core.gateway import ImageGateway
from .core.models import MAX_FILES_PER_UPLOAD, ProvisioningPolicy
from .infrastructure.staging.area import StagingArea
from .infrastructure.storage.client import StorageConfig, create_storage_client

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    On startup, provisions the two buckets. With the default best_effort
    policy a provisioning failure is logged and the service starts anyway;
    with fail_fast the error aborts startup.
    """
    settings: Settings = app.state.settings

    logger.info(
        "Image gateway starting",
        extra={
            "version": __version__,
            "storage_mock_mode": settings.storage_mock_mode,
            "endpoint": settings.minio_endpoint_url,
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    gateway = ImageGateway(
        store=app.state.storage_client,
        staging=StagingArea(settings.staging_dir, max_files=MAX_FILES_PER_UPLOAD),
        region=settings.minio_region,
    )
    await gateway.ensure_buckets_exist(ProvisioningPolicy(settings.bucket_provisioning))

    yield

    logger.info("Image gateway shutting down")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Tests pass their own Settings (mock store, temporary staging directory);
    production uses the cached environment settings.
    """
    settings = settings or get_settings()

    logging.getLogger().setLevel(settings.log_level.upper())

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Upload images to an S3-compatible object store and get presigned
        download links back.

        - `POST /upload`: one image, stored in the single-image bucket
        - `POST /upload-multiple`: up to 10 images under one group id
        - `GET /get-images/{folder}`: links for every image in a group
        - `GET /download/{filename}`: link for one single-bucket image
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.storage_client = create_storage_client(
        config=StorageConfig(
            endpoint_url=settings.minio_endpoint_url,
            access_key=settings.minio_access_key,
            secret_key=settings.minio_secret_key,
            region=settings.minio_region,
        ),
        mock_mode=settings.storage_mock_mode,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(uploads.router, tags=["Uploads"])
    app.include_router(images.router, tags=["Images"])

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - points at the docs."""
        return {
            "message": "Image Gateway API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    app.add_exception_handler(ApiError, api_error_handler)

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        Logs the full error server-side and returns a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"message": "Internal server error"}
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn imports
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "image_gateway.main:app",
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
