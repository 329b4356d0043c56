"""Tests for authentication endpoints."""

from datetime import date, timedelta
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import AuthConfig
from app.core.google_people import ProfileExtras
from app.core.security import create_access_token
from app.services.auth_service import AuthService

AUTH = "/api/v1/auth"

ALICE = {
    "name": "Alice Example",
    "email": "alice@example.com",
    "phone": "+1 555 010 2030",
    "password": "Passw0rd1",
}

FIREBASE_CLAIMS = {
    "uid": "firebase-uid-1001",
    "email": "alice@example.com",
    "name": "Alice G.",
}


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def registered(client: AsyncClient) -> dict:
    """Register alice and return the response body."""
    response = await client.post(f"{AUTH}/register", json=ALICE)
    assert response.status_code == 201
    return response.json()


@pytest.fixture
async def admin_token(db_session: AsyncSession, auth_service: AuthService) -> str:
    """Access token of a stored admin user."""
    admin = await auth_service.users.create_user(
        db_session,
        name="Site Admin",
        email="admin@example.com",
        role="admin",
        password_hash=auth_service.hasher.hash("Adm1nPass"),
    )
    return auth_service.issuer.issue(admin).access_token


@pytest.mark.asyncio
class TestLocalAuthEndpoints:
    """Tests for registration, login, refresh and logout."""

    async def test_register(self, client: AsyncClient):
        """Test registering a local account returns a token pair and the user."""
        response = await client.post(f"{AUTH}/register", json=ALICE, headers={"X-Device": "web"})

        assert response.status_code == 201
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["user"]["email"] == "alice@example.com"
        assert data["user"]["role"] == "client"
        assert data["user"]["is_verified"] is False
        assert data["user"]["has_password"] is True
        assert "password_hash" not in data["user"]

    async def test_register_duplicate_email(self, client: AsyncClient, registered: dict):
        """Test registering the same email twice is a conflict."""
        response = await client.post(
            f"{AUTH}/register", json={**ALICE, "email": "Alice@Example.com"}
        )

        assert response.status_code == 409
        assert response.json()["code"] == "conflict"

    async def test_register_weak_password(self, client: AsyncClient):
        """Test password strength is validated."""
        response = await client.post(f"{AUTH}/register", json={**ALICE, "password": "password"})

        assert response.status_code == 422
        data = response.json()
        assert data["code"] == "validation_error"
        assert any(detail["field"].endswith("password") for detail in data["details"])
        assert all(set(detail) == {"field", "message"} for detail in data["details"])

    async def test_register_invalid_role(self, client: AsyncClient):
        """Test unknown roles are rejected."""
        response = await client.post(f"{AUTH}/register", json={**ALICE, "role": "superuser"})

        assert response.status_code == 422

    async def test_login(self, client: AsyncClient, registered: dict):
        """Test logging in with the registered password."""
        response = await client.post(
            f"{AUTH}/login", json={"email": ALICE["email"], "password": ALICE["password"]}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["id"] == registered["user"]["id"]
        assert data["refresh_token"] != registered["refresh_token"]

    async def test_login_wrong_password(self, client: AsyncClient, registered: dict):
        """Test a wrong password is unauthenticated."""
        response = await client.post(
            f"{AUTH}/login", json={"email": ALICE["email"], "password": "Wr0ngPass"}
        )

        assert response.status_code == 401
        data = response.json()
        assert data["code"] == "unauthenticated"
        assert data["message"] == "Invalid email or password"

    async def test_login_unknown_email(self, client: AsyncClient):
        """Test an unknown email gets the same answer as a wrong password."""
        response = await client.post(
            f"{AUTH}/login", json={"email": "ghost@example.com", "password": "Passw0rd1"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    async def test_refresh_rotates_and_rejects_replay(self, client: AsyncClient, registered: dict):
        """Test a refresh token can be exchanged exactly once."""
        login = await client.post(
            f"{AUTH}/login", json={"email": ALICE["email"], "password": ALICE["password"]}
        )
        first = login.json()["refresh_token"]

        response = await client.post(f"{AUTH}/refresh", json={"refresh_token": first})

        assert response.status_code == 200
        rotated = response.json()
        assert rotated["refresh_token"] != first
        assert rotated["access_token"]

        replay = await client.post(f"{AUTH}/refresh", json={"refresh_token": first})

        assert replay.status_code == 401
        assert replay.json()["code"] == "token_invalid"

        follow_up = await client.post(
            f"{AUTH}/refresh", json={"refresh_token": rotated["refresh_token"]}
        )
        assert follow_up.status_code == 200

    async def test_refresh_with_superseded_token(self, client: AsyncClient, registered: dict):
        """Test logging in again invalidates the refresh token from registration."""
        await client.post(
            f"{AUTH}/login", json={"email": ALICE["email"], "password": ALICE["password"]}
        )

        response = await client.post(
            f"{AUTH}/refresh", json={"refresh_token": registered["refresh_token"]}
        )

        assert response.status_code == 401
        assert response.json()["code"] == "token_invalid"

    async def test_refresh_from_cookie(self, client: AsyncClient, registered: dict):
        """Test the refresh token is read from the refreshToken cookie."""
        client.cookies.set("refreshToken", registered["refresh_token"])

        response = await client.post(f"{AUTH}/refresh")

        assert response.status_code == 200
        assert response.json()["refresh_token"] != registered["refresh_token"]

    async def test_refresh_without_token(self, client: AsyncClient):
        """Test refreshing without a token is rejected."""
        response = await client.post(f"{AUTH}/refresh")

        assert response.status_code == 401
        assert response.json()["code"] == "token_invalid"

    async def test_logout_is_idempotent(self, client: AsyncClient, registered: dict):
        """Test logout revokes the token and can be repeated."""
        body = {"refresh_token": registered["refresh_token"]}

        first = await client.post(f"{AUTH}/logout", json=body)
        second = await client.post(f"{AUTH}/logout", json=body)

        assert first.status_code == 204
        assert second.status_code == 204

        response = await client.post(f"{AUTH}/refresh", json=body)
        assert response.status_code == 401

    async def test_logout_without_token(self, client: AsyncClient):
        """Test logout with nothing to revoke still succeeds."""
        response = await client.post(f"{AUTH}/logout")

        assert response.status_code == 204

    async def test_logout_all(self, client: AsyncClient, registered: dict):
        """Test signing out everywhere revokes the user's refresh tokens."""
        response = await client.post(
            f"{AUTH}/logout-all", headers=bearer(registered["access_token"])
        )

        assert response.status_code == 200
        assert response.json() == {"revoked": 1}

        refresh = await client.post(
            f"{AUTH}/refresh", json={"refresh_token": registered["refresh_token"]}
        )
        assert refresh.status_code == 401


@pytest.mark.asyncio
class TestProfileEndpoints:
    """Tests for access token protected endpoints."""

    async def test_get_profile(self, client: AsyncClient, registered: dict):
        """Test the profile of the bearer is returned."""
        response = await client.get(f"{AUTH}/profile", headers=bearer(registered["access_token"]))

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == registered["user"]["id"]
        assert data["name"] == "Alice Example"

    async def test_get_profile_without_token(self, client: AsyncClient):
        """Test protected endpoints require a bearer token."""
        response = await client.get(f"{AUTH}/profile")

        assert response.status_code == 401
        assert response.json()["code"] == "unauthenticated"

    async def test_get_profile_with_expired_token(
        self, client: AsyncClient, registered: dict, auth_config: AuthConfig
    ):
        """Test an expired access token is reported as expired."""
        user = registered["user"]
        token = create_access_token(
            {"sub": user["id"], "email": user["email"], "role": user["role"]},
            auth_config,
            expires_delta=timedelta(seconds=-1),
        )

        response = await client.get(f"{AUTH}/profile", headers=bearer(token))

        assert response.status_code == 401
        assert response.json()["code"] == "token_expired"

    async def test_get_profile_with_tampered_token(self, client: AsyncClient, registered: dict):
        """Test a modified access token is invalid."""
        header_and_payload = registered["access_token"].rsplit(".", 1)[0]
        token = f"{header_and_payload}.forged-signature"

        response = await client.get(f"{AUTH}/profile", headers=bearer(token))

        assert response.status_code == 401
        assert response.json()["code"] == "token_invalid"

    async def test_check_email(self, client: AsyncClient, registered: dict):
        """Test the sign-in methods of a registered and an unknown email."""
        known = await client.post(f"{AUTH}/check-email", json={"email": "ALICE@example.com"})
        unknown = await client.post(f"{AUTH}/check-email", json={"email": "bob@example.com"})

        assert known.json() == {
            "exists": True,
            "has_password": True,
            "has_external_identity": False,
        }
        assert unknown.json()["exists"] is False


@pytest.mark.asyncio
class TestRevokeSessionsEndpoint:
    """Tests for the admin session revocation endpoint."""

    async def test_revoke_sessions_as_admin(
        self, client: AsyncClient, registered: dict, admin_token: str
    ):
        """Test an admin can sign a user out everywhere."""
        user_id = registered["user"]["id"]

        response = await client.post(
            f"{AUTH}/users/{user_id}/revoke-sessions", headers=bearer(admin_token)
        )

        assert response.status_code == 200
        assert response.json() == {"revoked": 1}

    async def test_revoke_sessions_as_client(self, client: AsyncClient, registered: dict):
        """Test non-admins are forbidden."""
        user_id = registered["user"]["id"]

        response = await client.post(
            f"{AUTH}/users/{user_id}/revoke-sessions",
            headers=bearer(registered["access_token"]),
        )

        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"


@pytest.mark.asyncio
class TestFirebaseEndpoint:
    """Tests for Firebase ID token sign-in."""

    async def test_firebase_creates_user(self, client: AsyncClient, monkeypatch):
        """Test an unknown Firebase identity creates a verified client."""
        monkeypatch.setattr(
            "app.api.v1.endpoints.auth.verify_firebase_token",
            AsyncMock(return_value=FIREBASE_CLAIMS),
        )

        response = await client.post(f"{AUTH}/firebase/verify", json={"id_token": "id-token"})

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["email"] == "alice@example.com"
        assert user["name"] == "Alice G."
        assert user["is_verified"] is True
        assert user["has_password"] is False

    async def test_firebase_links_existing_account(
        self, client: AsyncClient, registered: dict, monkeypatch
    ):
        """Test a Firebase identity with a registered email links to that account."""
        monkeypatch.setattr(
            "app.api.v1.endpoints.auth.verify_firebase_token",
            AsyncMock(return_value=FIREBASE_CLAIMS),
        )

        response = await client.post(f"{AUTH}/firebase/verify", json={"id_token": "id-token"})

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["id"] == registered["user"]["id"]
        assert user["is_verified"] is True
        assert user["has_password"] is True

        check = await client.post(f"{AUTH}/check-email", json={"email": ALICE["email"]})
        assert check.json()["has_external_identity"] is True

    async def test_firebase_reads_profile_extras(self, client: AsyncClient, monkeypatch):
        """Test birthday and gender from the People API are stored on creation."""
        monkeypatch.setattr(
            "app.api.v1.endpoints.auth.verify_firebase_token",
            AsyncMock(return_value=FIREBASE_CLAIMS),
        )
        fetch = AsyncMock(
            return_value=ProfileExtras(gender="female", date_of_birth=date(1990, 4, 12))
        )
        monkeypatch.setattr("app.api.v1.endpoints.auth.fetch_profile_extras", fetch)

        response = await client.post(
            f"{AUTH}/firebase/verify",
            json={"id_token": "id-token", "google_access_token": "ya29.token"},
        )

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["gender"] == "female"
        assert user["date_of_birth"] == "1990-04-12"
        assert fetch.await_args.args[0] == "ya29.token"

    async def test_firebase_invalid_token(self, client: AsyncClient, monkeypatch):
        """Test an unverifiable ID token is unauthenticated."""
        monkeypatch.setattr(
            "app.api.v1.endpoints.auth.verify_firebase_token",
            AsyncMock(side_effect=ValueError("Invalid Firebase ID token: expired")),
        )

        response = await client.post(f"{AUTH}/firebase/verify", json={"id_token": "bad"})

        assert response.status_code == 401
        assert response.json()["code"] == "unauthenticated"

    async def test_firebase_token_without_email(self, client: AsyncClient, monkeypatch):
        """Test identities without an email cannot sign in."""
        monkeypatch.setattr(
            "app.api.v1.endpoints.auth.verify_firebase_token",
            AsyncMock(return_value={"uid": "phone-only-user"}),
        )

        response = await client.post(f"{AUTH}/firebase/verify", json={"id_token": "id-token"})

        assert response.status_code == 401


@pytest.mark.asyncio
class TestHealthEndpoints:
    """Tests for health endpoints."""

    async def test_health(self, client: AsyncClient):
        """Test basic health check."""
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_ping(self, client: AsyncClient):
        """Test ping."""
        response = await client.get("/api/v1/ping")

        assert response.status_code == 200
        assert response.json() == {"message": "pong"}

    async def test_request_id_header(self, client: AsyncClient):
        """Test the request id is echoed back."""
        response = await client.get("/api/v1/ping", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"
