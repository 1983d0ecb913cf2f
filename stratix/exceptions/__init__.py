from .base import (
    AppException,
    ValidationError,
    UnauthorizedError,
    ForbiddenError,
    NotFoundError,
    ConflictError,
    RateLimitError,
    AIServiceError,
)
from .handlers import (
    app_exception_handler,
    request_validation_handler,
    http_exception_handler,
    general_exception_handler,
)

__all__ = [
    "AppException",
    "ValidationError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "RateLimitError",
    "AIServiceError",
    "app_exception_handler",
    "request_validation_handler",
    "http_exception_handler",
    "general_exception_handler",
]
