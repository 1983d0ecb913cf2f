from typing import Optional, Dict, Any


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppException):
    """Request or business-rule validation failure."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=400, details=details)


class UnauthorizedError(AppException):
    """Missing or invalid credentials."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status_code=401)


class ForbiddenError(AppException):
    """Authenticated caller lacks the required role or scope."""

    def __init__(self, message: str = "Insufficient permissions", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=403, details=details)


class NotFoundError(AppException):
    """Resource not found exception."""

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        if resource_id is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} with id '{resource_id}' not found"
        super().__init__(message, status_code=404)


class ConflictError(AppException):
    """Resource conflict exception."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=409, details=details)


class RateLimitError(AppException):
    """Caller exceeded a rate limit window."""

    def __init__(self, message: str = "Rate limit exceeded", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=429, details=details)


class AIServiceError(Exception):
    """AI collaborator failed; callers degrade instead of surfacing it."""
