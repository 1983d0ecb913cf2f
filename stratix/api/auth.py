from typing import Any, Callable, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from stratix.core import settings, get_logger
from stratix.core.rate_limit import rate_limiter
from stratix.core.roles import RoleType
from stratix.db import get_db
from stratix.exceptions import ForbiddenError, RateLimitError
from stratix.models import Profile
from stratix.repositories import ProfileRepository

logger = get_logger(__name__)


def _session_token(request: Request) -> Optional[str]:
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        return token
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


def verify_session_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify and decode a session token."""
    if not settings.token_secret:
        return None

    try:
        return jwt.decode(token, settings.token_secret, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        logger.warning("Session token expired")
        return None
    except jwt.InvalidTokenError:
        logger.warning("Invalid session token")
        return None


# Dependency for authenticated routes
def get_current_user_dep(request: Request) -> dict:
    """Dependency to get current authenticated user with user_id."""
    token = _session_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    token_data = verify_session_token(token)
    if not token_data:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    user_id = token_data.get("user_id") or token_data.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    return {
        "user_id": user_id,
        "email": token_data.get("email"),
        "name": token_data.get("name"),
    }


def get_current_profile_dep(
    current_user: Dict[str, Any] = Depends(get_current_user_dep),
    db: Session = Depends(get_db),
) -> Profile:
    """The caller's active profile; authenticated users without one are forbidden."""
    profile = ProfileRepository(db).get_active(current_user["user_id"])
    if profile is None:
        raise ForbiddenError("User profile not found")
    return profile


def require_roles(*roles: RoleType, message: str = "Admin access required") -> Callable[..., Profile]:
    """Dependency factory admitting only profiles with one of ``roles``."""

    def dependency(profile: Profile = Depends(get_current_profile_dep)) -> Profile:
        if profile.role_type not in roles:
            raise ForbiddenError(message)
        return profile

    return dependency


require_admin = require_roles(RoleType.corporativo)
require_admin_or_manager = require_roles(
    RoleType.corporativo, RoleType.gerente, message="Admin or Manager access required"
)


def route_template(request: Request) -> str:
    """Matched route path (``/api/onboarding/session/{session_id}``), not the concrete URL."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def rate_limit(category: str) -> Callable[..., None]:
    """Dependency factory counting one hit per call for the caller in ``category``."""

    def dependency(request: Request, current_user: Dict[str, Any] = Depends(get_current_user_dep)) -> None:
        if not settings.rate_limit_enabled:
            return
        result = rate_limiter.hit(category, current_user["user_id"], route_template(request))
        if not result.allowed:
            raise RateLimitError(details={"category": category, "resetAt": int(result.reset_at)})

    return dependency
