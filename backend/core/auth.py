"""
Authentication and Authorization

Tokens are issued by the identity provider; this service only verifies
them and resolves the user. Every failure fails closed.
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError
from datetime import datetime, timezone, timedelta
from typing import Optional
import logging
import jwt

from .config import settings
from .database import get_db
from .models import UserRole
from .exceptions import UnauthorizedException, ForbiddenException

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def create_token(user_id: str, email: str, role: str) -> str:
    """Create a JWT token for a user"""
    payload = {
        "sub": user_id,
        "email": email,
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRATION_HOURS),
        "iat": datetime.now(timezone.utc)
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token"""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedException("Token expired")
    except jwt.InvalidTokenError:
        raise UnauthorizedException("Invalid token")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncIOMotorDatabase = Depends(get_db)
) -> dict:
    """
    Get the current authenticated user from the JWT token.
    This is the primary authentication dependency.
    """
    if credentials is None:
        raise UnauthorizedException("Authentication required")

    payload = decode_token(credentials.credentials)

    try:
        user = await db.users.find_one(
            {"id": payload.get("sub"), "archived": {"$ne": True}},
            {"_id": 0}
        )
    except PyMongoError as e:
        logger.error(f"User lookup failed, denying access: {e}")
        raise UnauthorizedException("Unable to verify user")

    if not user:
        raise UnauthorizedException("User not found")

    if not user.get("is_active", True):
        raise UnauthorizedException("Account disabled")

    return user


def require_roles(*roles: UserRole):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/admin-only")
        async def admin_endpoint(user = Depends(require_roles(UserRole.ADMIN))):
            ...
    """
    async def role_checker(user: dict = Depends(get_current_user)):
        user_role = user.get("role")
        allowed_roles = [r.value for r in roles]

        if user_role not in allowed_roles:
            raise ForbiddenException(
                f"This action requires one of the following roles: {', '.join(allowed_roles)}"
            )

        return user

    return role_checker


require_admin = require_roles(UserRole.ADMIN)
