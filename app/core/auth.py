"""Authentication dependencies for FastAPI routes."""

from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.jwt import jwt_verifier
from app.schemas.auth import CurrentUser, JWTClaims
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

security = HTTPBearer(auto_error=False)

DEFAULT_ROLE = "researcher"


def portal_role(claims: JWTClaims) -> str:
    """Portal role from the token's app_metadata. The top-level claim is the Postgres role."""
    metadata = claims.app_metadata or {}
    return metadata.get("role") or DEFAULT_ROLE


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> CurrentUser:
    """Get the current authenticated user from the Bearer token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    if not credentials:
        LOGGER.warning("No authorization credentials provided")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        claims = await jwt_verifier.verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        LOGGER.warning(f"Invalid token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    user = CurrentUser(
        id=claims.sub,
        email=claims.email,
        role=portal_role(claims),
        app_metadata=claims.app_metadata,
        user_metadata=claims.user_metadata,
    )
    LOGGER.debug(f"Authenticated user: {user.id} ({user.role})")
    return user


def require_any_role(*required_roles: str):
    """Create a dependency that requires any of the specified roles.

    Example:
        reviewers = require_any_role("staff", "admin")

        @router.post("/verifications")
        async def verify(user: CurrentUser = Depends(reviewers)):
            ...
    """
    async def role_checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in required_roles:
            LOGGER.warning(
                f"Access denied for user {user.id}: role '{user.role}' not in allowed roles {required_roles}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required roles: {', '.join(required_roles)}",
            )
        return user

    return role_checker


require_reviewer = require_any_role("staff", "admin")
require_secretariat = require_any_role("staff", "secretariat", "admin")
