"""
FastAPI dependencies for authentication.

Route handlers use these to resolve the calling user from a Bearer token and
to restrict admin-only endpoints.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from taskflow.database import get_db
from taskflow.models import User, UserRole
from taskflow.auth.security import verify_token

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme for JWT authentication
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def resolve_user_from_token(token: Optional[str], db: Session) -> User:
    """
    Resolve an active user from a raw access token.

    Shared by the HTTP dependency and the live notification socket.

    Raises:
        HTTPException: 401 on a missing, invalid, expired or malformed token,
            an unknown user, or a deactivated account
    """
    if not token:
        logger.info("No authentication credentials provided")
        raise _unauthorized("Not authenticated")

    payload = verify_token(token)
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    token_type = payload.get("type")
    if token_type != "access":
        logger.info(f"Invalid token type: {token_type}")
        raise _unauthorized("Invalid token type")

    # Malformed subjects are a 401, never a 500
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        logger.info(f"Invalid user_id format in token: {payload.get('sub')}")
        raise _unauthorized("Invalid token payload")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        logger.info(f"User not found for id: {user_id}")
        raise _unauthorized("User not found")

    if not user.is_active:
        logger.info(f"Inactive user attempted access: {user_id}")
        raise _unauthorized("User account is disabled")

    logger.debug(f"User authenticated via JWT: {user.email}")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Extract and validate the current user from the Authorization header.

    Example:
        @router.get("/api/protected")
        async def protected_route(user: User = Depends(get_current_user)):
            return {"user_id": user.id}
    """
    token = credentials.credentials if credentials else None
    return resolve_user_from_token(token, db)


def require_role(required_role: UserRole):
    """
    Create a dependency that requires a specific global role.

    Example:
        @router.delete("/api/users/{id}")
        async def delete_user(user_id: int, current_user: User = Depends(require_role(UserRole.ADMIN))):
            ...
    """

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role != required_role:
            logger.info(
                f"Access denied: user {current_user.email} has role '{current_user.role.value}', "
                f"but '{required_role.value}' is required"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Admin access required" if required_role == UserRole.ADMIN
                else f"Access denied. Required role: {required_role.value}",
            )
        return current_user

    return role_checker


async def get_current_admin(current_user: User = Depends(require_role(UserRole.ADMIN))) -> User:
    """Shortcut for Depends(require_role(UserRole.ADMIN))."""
    return current_user
