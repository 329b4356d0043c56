"""User data access helpers."""

from datetime import UTC, date, datetime
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException
from app.models.users import users


class UserService:
    """Service for user table operations."""

    async def create_user(
        self,
        db: AsyncSession,
        *,
        name: str,
        email: str,
        role: str = "client",
        phone: str | None = None,
        password_hash: str | None = None,
        external_id: str | None = None,
        is_verified: bool = False,
        gender: str | None = None,
        date_of_birth: date | None = None,
        commit: bool = True,
    ) -> dict:
        """
        Create a new user.

        With ``commit=False`` the insert joins the caller's transaction and
        the caller commits or rolls back.

        Raises:
            ConflictException: If the email or external id is already taken
        """
        query = (
            users.insert()
            .values(
                name=name,
                email=email,
                role=role,
                phone=phone,
                password_hash=password_hash,
                external_id=external_id,
                is_verified=is_verified,
                gender=gender,
                date_of_birth=date_of_birth,
            )
            .returning(users)
        )

        try:
            result = await db.execute(query)
            user = result.mappings().first()
            if commit:
                await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictException("User with this email already exists")

        if not user:
            raise ValueError("Failed to create user")

        return dict(user)

    async def get_user_by_id(self, db: AsyncSession, user_id: UUID) -> dict | None:
        """Get user by internal ID."""
        query = select(users).where(users.c.id == user_id)
        result = await db.execute(query)
        user = result.mappings().first()
        return dict(user) if user else None

    async def get_user_by_email(self, db: AsyncSession, email: str) -> dict | None:
        """Get user by email."""
        query = select(users).where(users.c.email == email)
        result = await db.execute(query)
        user = result.mappings().first()
        return dict(user) if user else None

    async def get_user_by_external_id(self, db: AsyncSession, external_id: str) -> dict | None:
        """Get user by external identity provider subject id."""
        query = select(users).where(users.c.external_id == external_id)
        result = await db.execute(query)
        user = result.mappings().first()
        return dict(user) if user else None

    async def link_external_identity(
        self, db: AsyncSession, user_id: UUID, external_id: str, *, commit: bool = True
    ) -> bool:
        """
        Attach an external identity to an existing user and mark it verified.

        The update only applies while the row is unlinked or already linked to
        the same external id.

        Returns:
            True if the row was updated

        Raises:
            ConflictException: If the external id belongs to another user
        """
        query = (
            update(users)
            .where(users.c.id == user_id)
            .where((users.c.external_id.is_(None)) | (users.c.external_id == external_id))
            .values(
                external_id=external_id,
                is_verified=True,
                updated_at=datetime.now(UTC),
            )
        )

        try:
            result = await db.execute(query)
            if commit:
                await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictException("External identity is already linked to another account")

        return result.rowcount > 0  # type: ignore[attr-defined]

    async def delete_user(self, db: AsyncSession, user_id: UUID) -> bool:
        """Delete a user (hard delete). Refresh tokens cascade."""
        query = delete(users).where(users.c.id == user_id)
        result = await db.execute(query)
        await db.commit()

        return result.rowcount > 0  # type: ignore[attr-defined]
