"""
Image Gateway - upload images to an S3-compatible store, get presigned links back.

This package contains the complete application:
- core: Framework-agnostic bucket/key rules and upload orchestration
- infrastructure: Object store client and local upload staging
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
