from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .base import AppException
from stratix.core.logging import get_logger

logger = get_logger(__name__)


def error_envelope(status_code: int, message: str, details: Optional[Dict[str, Any]] = None) -> JSONResponse:
    content: Dict[str, Any] = {"success": False, "error": message}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle application exceptions."""

    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"Application exception: {exc.message}",
        extra={
            "status_code": exc.status_code,
            "details": exc.details,
            "path": request.url.path,
            "method": request.method
        }
    )
    return error_envelope(exc.status_code, exc.message, exc.details)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render body/query validation failures as 400 with the issue list."""
    issues = [
        {
            "path": [str(part) for part in error.get("loc", ()) if part not in ("body", "query")],
            "message": error.get("msg", ""),
            "code": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    logger.info(f"Request validation failed on {request.method} {request.url.path}: {len(issues)} issue(s)")
    return error_envelope(400, "Invalid request data", {"issues": issues})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_envelope(exc.status_code, message)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle general exceptions."""

    logger.exception(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method
        }
    )
    return error_envelope(500, "Internal server error")

