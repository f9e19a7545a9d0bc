"""
Authentication and admin authorization.

Tokens are HS256 JWTs signed with JWT_SECRET whose `userId` claim is the
user's id. Decoding and permission checks are pure; loading the user is the
only read.
"""

import logging
import os
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..db import get_admin_client
from ..models import AdminPermission, Role, User
from .errors import AuthError, ForbiddenError, NotFoundError


logger = logging.getLogger(__name__)

security = HTTPBearer()

ADMIN_ROLES = (Role.ADMIN, Role.OWNER)


def decode_token(token: str, secret: Optional[str] = None) -> int:
    """Verify the token signature and expiry, return the user id."""
    secret = secret or os.environ.get("JWT_SECRET")
    if not secret:
        raise AuthError("Token verification is not configured")

    try:
        payload = jwt.decode(token, secret, algorithms=["HS256"])
    except jwt.ExpiredSignatureError as e:
        raise AuthError("Token has expired") from e
    except jwt.PyJWTError as e:
        raise AuthError() from e

    subject = payload.get("userId", payload.get("sub"))
    try:
        return int(subject)
    except (TypeError, ValueError) as e:
        raise AuthError("Token has no user id") from e


def load_user(client, user_id: int) -> User:
    result = (
        client.table("users")
        .select("*")
        .eq("id", user_id)
        .limit(1)
        .execute()
    )

    if not result.data:
        raise NotFoundError("User not found")

    return User.model_validate(result.data[0])


def authenticate(token: str, client=None) -> User:
    """Decode the token and load the acting user."""
    user_id = decode_token(token)
    return load_user(client or get_admin_client(), user_id)


def has_permission(user: User, permission: AdminPermission) -> bool:
    """OWNER has everything, non-admins nothing, ADMIN what its map says."""
    if user.role == Role.OWNER:
        return True
    if user.role != Role.ADMIN:
        return False
    return user.admin_permissions.get(permission) is True


def authorize(user: User, permission: Optional[AdminPermission] = None) -> User:
    """
    Require an admin role and, for ADMIN, the given permission flag.
    Returns the user so calls can be chained.
    """
    if user.role not in ADMIN_ROLES:
        raise ForbiddenError("Access denied. Admin privileges required.")

    if permission is not None and not has_permission(user, permission):
        logger.info(f"User {user.id} denied: missing {permission.value}")
        raise ForbiddenError(f"You do not have the {permission.value} permission")

    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> User:
    """Resolve the bearer token to a user record."""
    return authenticate(credentials.credentials)
