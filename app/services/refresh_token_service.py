"""Refresh token persistence, rotation and revocation."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.config import AuthConfig
from app.core.exceptions import TokenInvalidException
from app.models.refresh_tokens import refresh_tokens
from app.models.users import users
from app.schemas.auth import ClientContext
from app.services.token_service import TokenIssuer

logger = get_logger(__name__)

INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"


@dataclass(frozen=True)
class RotationResult:
    """Outcome of a successful refresh token rotation."""

    access_token: str
    refresh_token: str
    user: dict


class RefreshTokenService:
    """
    Owns the refresh token table lifecycle.

    A refresh token value moves from issued to exactly one of rotated,
    revoked or expired. Rotation deletes the presented row and inserts a new
    one for the same user in a single transaction. The delete is a
    compare-and-delete: when it affects no rows another caller already
    consumed the value, and the caller gets ``TokenInvalidException``.
    """

    def __init__(self, config: AuthConfig, issuer: TokenIssuer):
        """Initialize service with immutable token configuration and an issuer."""
        self.config = config
        self.issuer = issuer

    async def _insert(
        self, db: AsyncSession, user_id: UUID, token: str, context: ClientContext
    ) -> dict:
        issued_at = datetime.now(UTC)
        query = (
            refresh_tokens.insert()
            .values(
                user_id=user_id,
                token=token,
                ip=context.ip,
                user_agent=context.user_agent,
                device=context.device,
                issued_at=issued_at,
                expires_at=issued_at + self.config.refresh_token_ttl,
            )
            .returning(refresh_tokens)
        )
        result = await db.execute(query)
        row = result.mappings().first()
        if not row:
            raise ValueError("Failed to store refresh token")
        return dict(row)

    async def persist(
        self,
        db: AsyncSession,
        user_id: UUID,
        token: str,
        context: ClientContext,
        *,
        revoke_existing: bool = False,
    ) -> dict:
        """
        Store a refresh token value for a user.

        Args:
            db: Database session
            user_id: Owning user
            token: Refresh token value
            context: Client metadata captured at issuance
            revoke_existing: Delete the user's other refresh tokens in the same transaction

        Returns:
            Stored refresh token row
        """
        try:
            if revoke_existing:
                await db.execute(delete(refresh_tokens).where(refresh_tokens.c.user_id == user_id))
            row = await self._insert(db, user_id, token, context)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "refresh_token_issued",
            user_id=str(user_id),
            ip=context.ip,
            device=context.device,
            revoked_existing=revoke_existing,
        )
        return row

    async def rotate(
        self, db: AsyncSession, token: str, context: ClientContext
    ) -> RotationResult:
        """
        Exchange a live refresh token for a new access token and refresh token.

        Args:
            db: Database session
            token: Presented refresh token value
            context: Current client metadata, bound to the new token

        Returns:
            New access token, new refresh token value and the owning user

        Raises:
            TokenInvalidException: If the token is unknown, expired or already used
        """
        now = datetime.now(UTC)

        try:
            query = (
                select(users)
                .select_from(users.join(refresh_tokens, refresh_tokens.c.user_id == users.c.id))
                .where(refresh_tokens.c.token == token)
                .where(refresh_tokens.c.expires_at > now)
            )
            result = await db.execute(query)
            user = result.mappings().first()

            if not user:
                await db.rollback()
                logger.info("refresh_token_rejected", reason="absent_or_expired")
                raise TokenInvalidException(INVALID_REFRESH_TOKEN)

            user = dict(user)

            deleted = await db.execute(
                delete(refresh_tokens)
                .where(refresh_tokens.c.token == token)
                .where(refresh_tokens.c.expires_at > now)
            )
            if deleted.rowcount == 0:  # type: ignore[attr-defined]
                # The row either crossed its expiry since the lookup or was consumed
                still_stored = await db.scalar(
                    select(refresh_tokens.c.id).where(refresh_tokens.c.token == token)
                )
                await db.rollback()
                if still_stored is not None:
                    logger.info(
                        "refresh_token_rejected",
                        reason="expired_during_rotation",
                        user_id=str(user["id"]),
                    )
                else:
                    logger.warning("refresh_token_reuse_rejected", user_id=str(user["id"]))
                raise TokenInvalidException(INVALID_REFRESH_TOKEN)

            issued = self.issuer.issue(user)
            await self._insert(db, user["id"], issued.refresh_token, context)
            await db.commit()
        except TokenInvalidException:
            raise
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "refresh_token_rotated",
            user_id=str(user["id"]),
            ip=context.ip,
            user_agent=context.user_agent,
            device=context.device,
        )
        return RotationResult(
            access_token=issued.access_token,
            refresh_token=issued.refresh_token,
            user=user,
        )

    async def revoke(self, db: AsyncSession, token: str) -> bool:
        """
        Delete exactly one refresh token.

        Returns:
            True if a row was deleted, False if the token was already gone
        """
        result = await db.execute(delete(refresh_tokens).where(refresh_tokens.c.token == token))
        await db.commit()
        return result.rowcount > 0  # type: ignore[attr-defined]

    async def revoke_all(self, db: AsyncSession, user_id: UUID) -> int:
        """Delete every refresh token of a user and return how many were removed."""
        result = await db.execute(
            delete(refresh_tokens).where(refresh_tokens.c.user_id == user_id)
        )
        await db.commit()

        count = result.rowcount  # type: ignore[attr-defined]
        logger.info("refresh_tokens_revoked", user_id=str(user_id), count=count)
        return count

    async def sweep_expired(self, db: AsyncSession) -> int:
        """Delete refresh tokens whose expiry has passed and return the count."""
        result = await db.execute(
            delete(refresh_tokens).where(refresh_tokens.c.expires_at <= datetime.now(UTC))
        )
        await db.commit()
        return result.rowcount  # type: ignore[attr-defined]
