"""Authentication service: registration, login, external login and token refresh."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.config import AuthConfig
from app.core.exceptions import InternalException, NotFoundException
from app.core.security import PasswordHasher
from app.schemas.auth import (
    AccessClaims,
    ClientContext,
    EmailStatusResponse,
    ExternalProfile,
    LocalLogin,
    LocalRegistration,
    Token,
)
from app.services.identity_service import IdentityResolver, ResolutionOutcome
from app.services.refresh_token_service import RefreshTokenService
from app.services.token_service import TokenIssuer
from app.services.user_service import UserService

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthResult:
    """Resolved user with a new access token and refresh token value."""

    user: dict
    access_token: str
    refresh_token: str
    outcome: ResolutionOutcome


@asynccontextmanager
async def collaborator_errors(
    operation: str, db: AsyncSession | None = None
) -> AsyncIterator[None]:
    """
    Turn unexpected store or hasher failures into ``InternalException``.

    When ``db`` is given, any failure rolls back its uncommitted writes so a
    user row is never left behind without the session that was started for it.
    """
    try:
        yield
    except (SQLAlchemyError, ValueError) as e:
        if db is not None:
            await db.rollback()
        logger.error("auth_operation_failed", operation=operation, error=str(e), exc_info=True)
        raise InternalException() from e
    except Exception:
        if db is not None:
            await db.rollback()
        raise


class AuthService:
    """Boundary operations for authentication."""

    def __init__(
        self,
        config: AuthConfig,
        hasher: PasswordHasher | None = None,
        user_service: UserService | None = None,
    ):
        """Initialize auth service and its collaborators from token configuration."""
        self.config = config
        self.hasher = hasher or PasswordHasher(rounds=config.bcrypt_rounds)
        self.users = user_service or UserService()
        self.resolver = IdentityResolver(self.hasher, self.users)
        self.issuer = TokenIssuer(config)
        self.refresh_tokens = RefreshTokenService(config, self.issuer)

    async def _start_session(
        self,
        db: AsyncSession,
        user: dict,
        context: ClientContext,
        outcome: ResolutionOutcome,
    ) -> AuthResult:
        issued = self.issuer.issue(user)
        # Stale sessions of the user are dropped so tokens do not accumulate
        await self.refresh_tokens.persist(
            db, user["id"], issued.refresh_token, context, revoke_existing=True
        )
        return AuthResult(
            user=user,
            access_token=issued.access_token,
            refresh_token=issued.refresh_token,
            outcome=outcome,
        )

    async def register(
        self, db: AsyncSession, registration: LocalRegistration, context: ClientContext
    ) -> AuthResult:
        """
        Register a local account and start a session.

        Raises:
            ConflictException: If the email is already registered
        """
        async with collaborator_errors("register", db):
            resolution = await self.resolver.resolve(db, registration)
            return await self._start_session(db, resolution.user, context, resolution.outcome)

    async def login(self, db: AsyncSession, login: LocalLogin, context: ClientContext) -> AuthResult:
        """
        Log in with email and password.

        Raises:
            UnauthorizedException: Unknown email, wrong password, or external-only account
        """
        async with collaborator_errors("login", db):
            resolution = await self.resolver.resolve(db, login)
            result = await self._start_session(db, resolution.user, context, resolution.outcome)

        logger.info("user_logged_in", user_id=str(result.user["id"]))
        return result

    async def complete_external_login(
        self, db: AsyncSession, profile: ExternalProfile, context: ClientContext
    ) -> AuthResult:
        """
        Resolve an externally authenticated profile and start a session.

        Raises:
            ConflictException: If the email is linked to a different external account
        """
        async with collaborator_errors("external_login", db):
            resolution = await self.resolver.resolve(db, profile)
            result = await self._start_session(db, resolution.user, context, resolution.outcome)

        logger.info(
            "external_login_completed",
            user_id=str(result.user["id"]),
            outcome=resolution.outcome.value,
        )
        return result

    async def refresh(self, db: AsyncSession, refresh_token: str, context: ClientContext) -> Token:
        """
        Rotate a refresh token.

        Raises:
            TokenInvalidException: If the token is absent, expired or already rotated
        """
        async with collaborator_errors("refresh"):
            rotation = await self.refresh_tokens.rotate(db, refresh_token, context)

        return Token(access_token=rotation.access_token, refresh_token=rotation.refresh_token)

    async def logout(self, db: AsyncSession, refresh_token: str | None) -> None:
        """Revoke one refresh token. A missing or unknown token is not an error."""
        if not refresh_token:
            return

        async with collaborator_errors("logout"):
            revoked = await self.refresh_tokens.revoke(db, refresh_token)

        if not revoked:
            logger.debug("logout_token_already_gone")

    async def logout_all(self, db: AsyncSession, user_id: UUID) -> int:
        """Revoke every refresh token of a user ("sign out everywhere")."""
        async with collaborator_errors("logout_all"):
            return await self.refresh_tokens.revoke_all(db, user_id)

    def verify_access_token(self, access_token: str) -> AccessClaims:
        """
        Verify an access token without touching the store.

        Raises:
            TokenExpiredException: If the token has expired
            TokenInvalidException: If the token is malformed or tampered with
        """
        return self.issuer.verify_access_token(access_token)

    async def check_email(self, db: AsyncSession, email: str) -> EmailStatusResponse:
        """Report whether an email is registered and which sign-in methods it has."""
        async with collaborator_errors("check_email"):
            user = await self.users.get_user_by_email(db, email)

        if not user:
            return EmailStatusResponse(exists=False)

        return EmailStatusResponse(
            exists=True,
            has_password=user["password_hash"] is not None,
            has_external_identity=user["external_id"] is not None,
        )

    async def get_profile(self, db: AsyncSession, user_id: UUID) -> dict:
        """
        Get the current user's record.

        Raises:
            NotFoundException: If the user no longer exists
        """
        async with collaborator_errors("get_profile"):
            user = await self.users.get_user_by_id(db, user_id)

        if not user:
            raise NotFoundException("User not found")
        return user
