from math import ceil
from typing import Annotated, Optional
import uuid
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database import get_db
from storefront.core.security import verify_access_token
from storefront.models.user import User, UserRole, ADMIN_ROLES
from storefront.schemas.auth import AuthContext


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme; missing credentials are reported as 401 below
security = HTTPBearer(auto_error=False)


async def get_auth_context(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> AuthContext:
    """
    Dependency that resolves the caller's identity from the bearer token.

    The role claim is trusted as issued at login; handlers and services get
    an AuthContext rather than touching the request.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    payload = verify_access_token(credentials.credentials)
    if payload is None:
        logger.warning("Token verification failed - invalid or expired token")
        raise credentials_exception

    try:
        user_id = uuid.UUID(payload["sub"])
    except ValueError:
        logger.warning(f"Invalid user_id in token: {payload['sub']}")
        raise credentials_exception

    return AuthContext(user_id=user_id, role=payload["role"])


async def get_current_user(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Load the caller's user row (for profile endpoints)."""
    user = await db.get(User, auth.user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated"
        )
    return user


def require_roles(*roles: str):
    """
    Dependency factory to require one of the given roles.

    Usage:
        @router.get("/", dependencies=[Depends(require_roles("ADMIN", "OWNER"))])
        async def admin_endpoint():
            ...
    """
    allowed = {r.value if isinstance(r, UserRole) else r for r in roles}

    async def role_dependency(
        auth: Annotated[AuthContext, Depends(get_auth_context)],
    ) -> AuthContext:
        if auth.role not in allowed:
            logger.warning(f"User {auth.user_id} with role {auth.role} denied; requires {sorted(allowed)}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden: insufficient permissions"
            )
        return auth

    return role_dependency


def page_count(total: int, limit: int) -> int:
    return ceil(total / limit) if total > 0 else 1


# Type aliases for cleaner endpoint signatures
DB = Annotated[AsyncSession, Depends(get_db)]
CurrentAuth = Annotated[AuthContext, Depends(get_auth_context)]
CurrentUser = Annotated[User, Depends(get_current_user)]
AdminAuth = Annotated[AuthContext, Depends(require_roles(*ADMIN_ROLES))]
DistributorAuth = Annotated[AuthContext, Depends(require_roles(UserRole.DISTRIBUTOR))]
