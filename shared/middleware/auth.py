"""
shared/middleware/auth.py
FastAPI dependency functions for authentication and authorization.
Access tokens are issued by the external identity service; they are
verified here and mapped onto the caller's Profile row.
"""

import uuid
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.redis_client import RedisCache, get_redis
from config.settings import settings
from shared.models.models import AppRole, Profile, UserRoleAssignment
from shared.utils.security import get_token_remaining_ttl, verify_access_token

security = HTTPBearer(auto_error=False)

# Clients follow the Location header to the sign-in page.
AUTH_REQUIRED_HEADERS = {
    "WWW-Authenticate": "Bearer",
    "Location": settings.AUTH_REDIRECT_PATH,
}


class TokenData:
    def __init__(self, payload: dict):
        self.user_id: uuid.UUID = uuid.UUID(payload["sub"])
        self.email: str = payload.get("email") or ""
        self.jti: Optional[str] = payload.get("jti") or payload.get("session_id")
        self.metadata: dict = payload.get("user_metadata") or {}
        self.ttl: int = get_token_remaining_ttl(payload)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers=AUTH_REQUIRED_HEADERS,
    )


async def get_token_data(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    redis=Depends(get_redis),
) -> TokenData:
    """
    Extract and validate the bearer token from the Authorization header.
    Checks the Redis deny-list so signed-out tokens stop working immediately.
    """
    if not credentials:
        raise _unauthorized("Authentication required")

    try:
        payload = verify_access_token(credentials.credentials)
        token = TokenData(payload)
    except (JWTError, ValueError):
        raise _unauthorized("Invalid or expired token")

    if token.jti and await RedisCache(redis).is_token_revoked(token.jti):
        raise _unauthorized("Token has been revoked")

    return token


async def get_current_user(
    token_data: TokenData = Depends(get_token_data),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    """Load the caller's Profile using the token's sub claim."""
    result = await db.execute(select(Profile).where(Profile.id == token_data.user_id))
    profile = result.scalar_one_or_none()

    if not profile:
        raise _unauthorized("Profile not found")
    return profile


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
) -> Optional[Profile]:
    """Returns current user if authenticated, None otherwise. For public endpoints."""
    if not credentials:
        return None
    try:
        token = TokenData(verify_access_token(credentials.credentials))
    except (JWTError, ValueError):
        return None
    if token.jti and await RedisCache(redis).is_token_revoked(token.jti):
        return None
    result = await db.execute(select(Profile).where(Profile.id == token.user_id))
    return result.scalar_one_or_none()


async def has_role(db: AsyncSession, user_id: uuid.UUID, role: AppRole) -> bool:
    """Role lookup against user_roles. Never cached."""
    found = await db.scalar(
        select(UserRoleAssignment.id).where(
            UserRoleAssignment.user_id == user_id,
            UserRoleAssignment.role == role,
        )
    )
    return found is not None


class RoleRequired:
    """Dependency factory for role-based access control."""

    def __init__(self, *roles: AppRole):
        self.roles = roles

    async def __call__(
        self,
        current_user: Profile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> Profile:
        for role in self.roles:
            if await has_role(db, current_user.id, role):
                return current_user
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
        )


# Convenience role dependencies
require_admin = RoleRequired(AppRole.ADMIN)


async def require_verified_host(
    current_user: Profile = Depends(get_current_user),
) -> Profile:
    if not current_user.host_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You must be a verified host to create classes",
        )
    return current_user
