"""JWT authentication and role primitives.

Tokens are issued by the platform's auth service; this service only verifies
them. The same HS256 token is accepted from the Authorization header or from
the session cookie, and carries the user id (sub) and role claims.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum

from fastapi import HTTPException, status
from jose import JWTError, jwt
from pydantic import BaseModel

from src.app.config import get_settings


class Role(str, Enum):
    """Fixed platform role set. Users without a role claim are students."""

    STUDENT = "student"
    MENTOR = "mentor"
    ADMIN = "admin"


class CurrentUser(BaseModel):
    """Authenticated caller, built from verified token claims."""

    id: str
    role: Role = Role.STUDENT
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def has_role(self, *roles: Role) -> bool:
        return self.role in roles


# ── JWT Token Creation ────────────────────────────────────────────────────────


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token.

    Used by tests and local tooling; production tokens come from the
    platform's auth service with the same claims:
    - sub: user_id (str)
    - role: "student" | "mentor" | "admin"
    """
    settings = get_settings()
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(hours=12))
    to_encode.update({
        "exp": expire,
        "iat": now,
        "type": "access",
    })
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


# ── JWT Token Verification ────────────────────────────────────────────────────


def verify_token(token: str, token_type: str = "access") -> dict:
    """Decode and validate a JWT token.

    Args:
        token: The JWT string.
        token_type: Expected token type.

    Returns:
        The decoded payload dict.

    Raises:
        HTTPException(401): If the token is invalid, expired, or wrong type.
    """
    settings = get_settings()
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
        if payload.get("type") != token_type:
            raise credentials_exception
        if not payload.get("sub"):
            raise credentials_exception
        return payload
    except JWTError:
        raise credentials_exception


def user_from_claims(payload: dict) -> CurrentUser:
    """Build a CurrentUser from verified claims; unknown roles fall back to student."""
    try:
        role = Role(payload.get("role") or Role.STUDENT.value)
    except ValueError:
        role = Role.STUDENT
    return CurrentUser(id=str(payload["sub"]), role=role, email=payload.get("email"))
