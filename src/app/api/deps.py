"""FastAPI dependency injection for authentication and lifespan-built services.

These dependencies are used in endpoint function signatures to inject the
authenticated user and the services the lifespan stored on app.state.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from fastapi import Depends, HTTPException, Request, status

from src.app.config import get_settings
from src.app.core.security import CurrentUser, Role, user_from_claims, verify_token


def _token_from_request(request: Request) -> str | None:
    """Bearer token from the Authorization header, else the session cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]
    return request.cookies.get(get_settings().SESSION_COOKIE_NAME)


async def get_current_user(request: Request) -> CurrentUser:
    """Extract and validate the current user from the JWT.

    Checks the Authorization header first, then the session cookie.

    Raises:
        HTTPException(401): If no valid token is provided.
    """
    token = _token_from_request(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = verify_token(token, token_type="access")
    return user_from_claims(payload)


def require_roles(*roles: Role) -> Callable[..., Any]:
    """Dependency factory: the current user must hold one of roles.

    Raises:
        HTTPException(403): If the user's role is not allowed.
    """

    async def _check(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not user.has_role(*roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return _check


# Alias for mentor/admin-only endpoints
require_mentor = require_roles(Role.MENTOR, Role.ADMIN)


def _from_app_state(request: Request, name: str, label: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} not available",
        )
    return service


def get_live_session_repository(request: Request) -> Any:
    """Retrieve LiveSessionRepository from app.state, 503 if not available."""
    return _from_app_state(request, "live_session_repository", "Live session store")


def get_video_conferencing(request: Request) -> Any:
    """Retrieve VideoConferencingService from app.state, 503 if not available."""
    return _from_app_state(request, "video_conferencing", "Video conferencing service")
