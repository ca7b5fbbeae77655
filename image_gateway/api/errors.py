"""
JSON error envelope for the HTTP API.

Every failure is reported as {"message": ..., "error": ...}: a free-text
message plus, for store failures, the raw error returned by the store.
"""

import logging
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Raised by route handlers to return a non-2xx JSON response."""

    def __init__(self, status_code: int, message: str, error: Optional[Any] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.error = error


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    content: dict[str, Any] = {"message": exc.message}
    if exc.error is not None:
        content["error"] = exc.error

    logger.info(
        "Request failed",
        extra={
            "path": request.url.path,
            "method": request.method,
            "status_code": exc.status_code,
        }
    )

    return JSONResponse(status_code=exc.status_code, content=content)
