"""
Authentication Helpers

Password hashing (bcrypt) and JWT access tokens (PyJWT), plus the FastAPI
dependencies every router uses to authenticate and authorize requests.

Token claims:
    userId, email, role, exp (now + JWT_EXPIRES_DAYS)
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import get_settings
from marketplace.database import get_db
from marketplace.models import User, UserRole

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class TokenConfigError(RuntimeError):
    """Raised when tokens are requested without a signing secret."""


# =============================================================================
# PASSWORDS
# =============================================================================

def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# =============================================================================
# TOKENS
# =============================================================================

def _secret() -> str:
    secret = get_settings().jwt_secret
    if not secret:
        raise TokenConfigError("JWT_SECRET is not configured")
    return secret


def create_access_token(user: User) -> str:
    """Sign an access token for the given user."""
    settings = get_settings()
    payload = {
        "userId": user.id,
        "email": user.email,
        "role": user.role.value,
        "exp": datetime.now(timezone.utc) + timedelta(days=settings.jwt_expires_days),
    }
    return jwt.encode(payload, _secret(), algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict:
    """
    Verify signature and expiry.

    Raises:
        jwt.InvalidTokenError: bad signature, malformed or expired token
    """
    settings = get_settings()
    return jwt.decode(token, _secret(), algorithms=[settings.jwt_algorithm])


# =============================================================================
# FASTAPI DEPENDENCIES
# =============================================================================

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the Bearer token to a User, or answer 401."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user_id = payload.get("userId")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    return user


def require_roles(*roles: UserRole):
    """Dependency factory allowing only the given roles."""

    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return user

    return checker


def ensure_self_or_admin(user: User, user_id: str) -> None:
    if user.role != UserRole.ADMIN and user.id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
