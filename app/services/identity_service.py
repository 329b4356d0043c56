"""Identity resolution: map an inbound credential to one canonical user."""

import asyncio
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.core.exceptions import ConflictException, UnauthorizedException
from app.core.security import PasswordHasher
from app.schemas.auth import Credential, ExternalProfile, LocalLogin, LocalRegistration
from app.schemas.users import UserRole
from app.services.user_service import UserService

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
EXTERNAL_ONLY_ACCOUNT = "This account was created with Google. Please use Google sign-in."


class ResolutionOutcome(str, Enum):
    """Which branch of identity resolution produced the user."""

    CREATED = "created"
    AUTHENTICATED = "authenticated"
    MATCHED_EXTERNAL_ID = "matched_external_id"
    LINKED_BY_EMAIL = "linked_by_email"


@dataclass(frozen=True)
class Resolution:
    """Resolved user row and the branch that resolved it."""

    user: dict
    outcome: ResolutionOutcome


class IdentityResolver:
    """Resolve local credentials or external profiles to a single user record."""

    def __init__(self, hasher: PasswordHasher, user_service: UserService | None = None):
        """Initialize resolver with a password hasher."""
        self.hasher = hasher
        self.users = user_service or UserService()

    async def resolve(self, db: AsyncSession, credential: Credential) -> Resolution:
        """
        Resolve a credential to a user.

        Created or linked rows are left uncommitted so the caller can store
        the first refresh token in the same transaction and commit once.

        Args:
            db: Database session
            credential: Local registration, local login or external profile

        Returns:
            Resolution with the user row and the branch taken

        Raises:
            ConflictException: Duplicate email on registration, or conflicting link
            UnauthorizedException: Bad local login
        """
        if isinstance(credential, LocalRegistration):
            return await self._register(db, credential)
        if isinstance(credential, LocalLogin):
            return await self._login(db, credential)
        if isinstance(credential, ExternalProfile):
            return await self._resolve_external(db, credential)
        raise TypeError(f"Unsupported credential: {type(credential).__name__}")

    async def _register(self, db: AsyncSession, registration: LocalRegistration) -> Resolution:
        if await self.users.get_user_by_email(db, registration.email):
            raise ConflictException("User with this email already exists")

        password_hash = await asyncio.to_thread(self.hasher.hash, registration.password)

        user = await self.users.create_user(
            db,
            name=registration.name,
            email=registration.email,
            phone=registration.phone,
            role=registration.role.value,
            password_hash=password_hash,
            is_verified=False,
            gender=registration.gender,
            date_of_birth=registration.date_of_birth,
            commit=False,
        )

        logger.info("user_registered", user_id=str(user["id"]), role=user["role"])
        return Resolution(user=user, outcome=ResolutionOutcome.CREATED)

    async def _login(self, db: AsyncSession, login: LocalLogin) -> Resolution:
        user = await self.users.get_user_by_email(db, login.email)
        if not user:
            raise UnauthorizedException(INVALID_CREDENTIALS)

        if not user["password_hash"]:
            raise UnauthorizedException(EXTERNAL_ONLY_ACCOUNT)

        valid = await asyncio.to_thread(self.hasher.verify, login.password, user["password_hash"])
        if not valid:
            logger.info("login_failed", user_id=str(user["id"]))
            raise UnauthorizedException(INVALID_CREDENTIALS)

        return Resolution(user=user, outcome=ResolutionOutcome.AUTHENTICATED)

    async def _resolve_external(
        self, db: AsyncSession, profile: ExternalProfile, *, retry: bool = True
    ) -> Resolution:
        # 1. Already linked
        user = await self.users.get_user_by_external_id(db, profile.external_id)
        if user:
            return Resolution(user=user, outcome=ResolutionOutcome.MATCHED_EXTERNAL_ID)

        # 2. Existing account with the same email: link it
        user = await self.users.get_user_by_email(db, profile.email)
        if user:
            linked = await self.users.link_external_identity(
                db, user["id"], profile.external_id, commit=False
            )
            if not linked:
                raise ConflictException(
                    "This email is already linked to a different external account"
                )

            merged = await self.users.get_user_by_id(db, user["id"])
            if merged is None:
                raise ConflictException("Account was removed while linking")

            logger.info("external_identity_linked", user_id=str(merged["id"]))
            return Resolution(user=merged, outcome=ResolutionOutcome.LINKED_BY_EMAIL)

        # 3. New account
        try:
            user = await self.users.create_user(
                db,
                name=profile.display_name,
                email=profile.email,
                role=UserRole.CLIENT.value,
                external_id=profile.external_id,
                is_verified=True,
                gender=profile.gender,
                date_of_birth=profile.date_of_birth,
                commit=False,
            )
        except ConflictException:
            # A concurrent resolution created or linked the row first
            if not retry:
                raise
            return await self._resolve_external(db, profile, retry=False)

        logger.info("external_user_created", user_id=str(user["id"]))
        return Resolution(user=user, outcome=ResolutionOutcome.CREATED)
