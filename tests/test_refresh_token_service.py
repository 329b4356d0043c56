"""Tests for refresh token persistence, rotation, revocation and sweeping."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy import Delete, func, select

from app.core.exceptions import TokenInvalidException
from app.models.refresh_tokens import refresh_tokens
from app.schemas.auth import ClientContext, LocalLogin
from app.services import refresh_token_service
from app.services.user_service import UserService


async def token_rows(db_session, user_id=None) -> list[dict]:
    query = select(refresh_tokens)
    if user_id is not None:
        query = query.where(refresh_tokens.c.user_id == user_id)
    result = await db_session.execute(query)
    return [dict(row) for row in result.mappings().all()]


@pytest.fixture
async def signed_in(db_session, auth_service, registration, context):
    """A registered user with one live refresh token."""
    return await auth_service.register(db_session, registration, context)


def before_first_delete(db_session, monkeypatch, statement_factory) -> dict:
    """Run a competing statement right before the first DELETE the session executes."""
    real_execute = db_session.execute
    raced = {"done": False}

    async def execute(statement, *args, **kwargs):
        if isinstance(statement, Delete) and not raced["done"]:
            raced["done"] = True
            await real_execute(statement_factory())
        return await real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db_session, "execute", execute)
    return raced


@pytest.mark.asyncio
class TestPersist:
    """Tests for storing refresh tokens."""

    async def test_persist_records_lifetime_and_context(self, db_session, signed_in, context):
        """Test a stored token carries its lifetime and client metadata."""
        rows = await token_rows(db_session, signed_in.user["id"])

        assert len(rows) == 1
        row = rows[0]
        assert row["token"] == signed_in.refresh_token
        assert row["expires_at"] - row["issued_at"] == timedelta(days=15)
        assert row["ip"] == context.ip
        assert row["user_agent"] == context.user_agent
        assert row["device"] == context.device

    async def test_new_login_revokes_previous_sessions(
        self, db_session, auth_service, signed_in, context
    ):
        """Test logging in again replaces the user's earlier refresh tokens."""
        result = await auth_service.login(
            db_session, LocalLogin(email="alice@example.com", password="Passw0rd1"), context
        )

        rows = await token_rows(db_session, signed_in.user["id"])
        assert [row["token"] for row in rows] == [result.refresh_token]

        with pytest.raises(TokenInvalidException):
            await auth_service.refresh_tokens.rotate(db_session, signed_in.refresh_token, context)

    async def test_deleting_user_cascades_to_refresh_tokens(self, db_session, signed_in):
        """Test removing a user removes their refresh tokens."""
        assert await UserService().delete_user(db_session, signed_in.user["id"]) is True

        result = await db_session.execute(select(func.count()).select_from(refresh_tokens))
        assert result.scalar_one() == 0


@pytest.mark.asyncio
class TestRotation:
    """Tests for refresh token rotation."""

    async def test_rotation_is_single_use(self, db_session, auth_service, signed_in, context):
        """Test a rotated token cannot be presented again."""
        service = auth_service.refresh_tokens

        rotated = await service.rotate(db_session, signed_in.refresh_token, context)

        assert rotated.refresh_token != signed_in.refresh_token
        assert rotated.user["id"] == signed_in.user["id"]
        claims = auth_service.verify_access_token(rotated.access_token)
        assert claims.sub == str(signed_in.user["id"])

        with pytest.raises(TokenInvalidException):
            await service.rotate(db_session, signed_in.refresh_token, context)

        # The successor stays valid after the replay was rejected
        again = await service.rotate(db_session, rotated.refresh_token, context)
        assert again.user["id"] == signed_in.user["id"]

    async def test_rotation_binds_new_context(self, db_session, auth_service, signed_in):
        """Test the new token records the client that rotated it."""
        roaming = ClientContext(ip="198.51.100.20", user_agent="mobile/2.0", device="phone")

        rotated = await auth_service.refresh_tokens.rotate(
            db_session, signed_in.refresh_token, roaming
        )

        rows = await token_rows(db_session, signed_in.user["id"])
        assert [row["token"] for row in rows] == [rotated.refresh_token]
        assert rows[0]["ip"] == "198.51.100.20"
        assert rows[0]["device"] == "phone"

    async def test_concurrent_rotation_is_logged_as_reuse(
        self, db_session, auth_service, signed_in, context, monkeypatch
    ):
        """Test losing the compare-and-delete to another caller is reported as reuse."""
        logger = MagicMock()
        monkeypatch.setattr(refresh_token_service, "logger", logger)
        raced = before_first_delete(
            db_session,
            monkeypatch,
            lambda: refresh_tokens.delete().where(
                refresh_tokens.c.token == signed_in.refresh_token
            ),
        )

        with pytest.raises(TokenInvalidException):
            await auth_service.refresh_tokens.rotate(db_session, signed_in.refresh_token, context)

        assert raced["done"]
        logger.warning.assert_called_once_with(
            "refresh_token_reuse_rejected", user_id=str(signed_in.user["id"])
        )

    async def test_expiry_during_rotation_is_not_logged_as_reuse(
        self, db_session, auth_service, signed_in, context, monkeypatch
    ):
        """Test a token expiring between lookup and delete is rejected as expired."""
        logger = MagicMock()
        monkeypatch.setattr(refresh_token_service, "logger", logger)
        now = datetime.now(UTC)
        raced = before_first_delete(
            db_session,
            monkeypatch,
            lambda: refresh_tokens.update()
            .where(refresh_tokens.c.token == signed_in.refresh_token)
            .values(issued_at=now - timedelta(days=15), expires_at=now - timedelta(minutes=1)),
        )

        with pytest.raises(TokenInvalidException):
            await auth_service.refresh_tokens.rotate(db_session, signed_in.refresh_token, context)

        assert raced["done"]
        logger.info.assert_any_call(
            "refresh_token_rejected",
            reason="expired_during_rotation",
            user_id=str(signed_in.user["id"]),
        )
        logger.warning.assert_not_called()

    async def test_unknown_token_is_invalid(self, db_session, auth_service, context):
        """Test a value that was never issued is rejected."""
        with pytest.raises(TokenInvalidException):
            await auth_service.refresh_tokens.rotate(db_session, "never-issued", context)

    async def test_expired_token_is_rejected_and_swept(
        self, db_session, auth_service, signed_in, context
    ):
        """Test an expired token is rejected and later removed by the sweep."""
        issued_at = datetime.now(UTC) - timedelta(days=20)
        await db_session.execute(
            refresh_tokens.insert().values(
                user_id=signed_in.user["id"],
                token="stale-token",
                issued_at=issued_at,
                expires_at=issued_at + timedelta(days=15),
            )
        )
        await db_session.commit()

        with pytest.raises(TokenInvalidException):
            await auth_service.refresh_tokens.rotate(db_session, "stale-token", context)

        assert await auth_service.refresh_tokens.sweep_expired(db_session) == 1

        remaining = await token_rows(db_session, signed_in.user["id"])
        assert [row["token"] for row in remaining] == [signed_in.refresh_token]


@pytest.mark.asyncio
class TestRevocation:
    """Tests for refresh token revocation."""

    async def test_revoke_is_idempotent(self, db_session, auth_service, signed_in, context):
        """Test revoking twice reports whether a row was removed."""
        service = auth_service.refresh_tokens

        assert await service.revoke(db_session, signed_in.refresh_token) is True
        assert await service.revoke(db_session, signed_in.refresh_token) is False

        with pytest.raises(TokenInvalidException):
            await service.rotate(db_session, signed_in.refresh_token, context)

    async def test_revoke_all_removes_every_session(
        self, db_session, auth_service, signed_in, context
    ):
        """Test signing out everywhere removes every token of the user."""
        service = auth_service.refresh_tokens
        await service.persist(db_session, signed_in.user["id"], "second-device-token", context)
        await service.persist(db_session, signed_in.user["id"], "third-device-token", context)

        assert await service.revoke_all(db_session, signed_in.user["id"]) == 3
        assert await token_rows(db_session, signed_in.user["id"]) == []
        assert await service.revoke_all(db_session, signed_in.user["id"]) == 0
