"""FastAPI dependencies."""

from collections.abc import Callable
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_auth_config
from app.core.exceptions import ForbiddenException, UnauthorizedException
from app.database import get_db
from app.schemas.auth import AccessClaims, ClientContext
from app.schemas.users import UserRole
from app.services.auth_service import AuthService

# Security
security = HTTPBearer(auto_error=False)


@lru_cache
def get_auth_service() -> AuthService:
    """Get the process-wide auth service built from the token configuration."""
    return AuthService(get_auth_config())


def get_client_context(request: Request) -> ClientContext:
    """Capture advisory client metadata for refresh token issuance."""
    return ClientContext(
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        device=request.headers.get("x-device"),
    )


async def get_current_claims(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> AccessClaims:
    """
    Verify the bearer access token.

    Raises:
        UnauthorizedException: If no bearer token was sent
        TokenExpiredException: If the token has expired
        TokenInvalidException: If the token is invalid
    """
    if credentials is None:
        raise UnauthorizedException("Access denied. No token provided.")

    return auth_service.verify_access_token(credentials.credentials)


def require_roles(*roles: UserRole) -> Callable:
    """Build a dependency that only admits access tokens carrying one of ``roles``."""

    async def checker(
        claims: Annotated[AccessClaims, Depends(get_current_claims)],
    ) -> AccessClaims:
        if claims.role not in roles:
            raise ForbiddenException("Access denied. Insufficient permissions.")
        return claims

    return checker


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
CurrentClaims = Annotated[AccessClaims, Depends(get_current_claims)]
ClientContextDep = Annotated[ClientContext, Depends(get_client_context)]
AdminClaims = Annotated[AccessClaims, Depends(require_roles(UserRole.ADMIN))]
