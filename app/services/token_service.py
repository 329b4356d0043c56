"""Access token and refresh token value issuance."""

import secrets
from dataclasses import dataclass
from datetime import UTC, datetime

from pydantic import ValidationError

from app.config import AuthConfig
from app.core.exceptions import TokenInvalidException
from app.core.security import create_access_token, decode_access_token
from app.schemas.auth import AccessClaims


@dataclass(frozen=True)
class IssuedTokens:
    """A freshly minted access token and refresh token value."""

    access_token: str
    refresh_token: str
    access_expires_at: datetime


class TokenIssuer:
    """Mint signed access tokens and opaque refresh token values."""

    def __init__(self, config: AuthConfig):
        """Initialize issuer with immutable token configuration."""
        self.config = config

    def issue(self, user: dict) -> IssuedTokens:
        """
        Create an access token and a refresh token value for a user.

        Args:
            user: User row with id, email and role

        Returns:
            Issued token pair; the refresh value is not persisted here
        """
        access_expires_at = datetime.now(UTC) + self.config.access_token_ttl
        access_token = create_access_token(
            data={
                "sub": str(user["id"]),
                "email": user["email"],
                "role": user["role"],
            },
            config=self.config,
        )

        return IssuedTokens(
            access_token=access_token,
            refresh_token=self.new_refresh_value(),
            access_expires_at=access_expires_at,
        )

    def new_refresh_value(self) -> str:
        """Generate an opaque, cryptographically random refresh token value."""
        return secrets.token_urlsafe(self.config.refresh_token_bytes)

    def verify_access_token(self, token: str) -> AccessClaims:
        """
        Verify an access token without any store lookup.

        Raises:
            TokenExpiredException: If the token is past its expiry
            TokenInvalidException: If the token is malformed, tampered with or lacks claims
        """
        payload = decode_access_token(token, self.config)
        try:
            return AccessClaims.model_validate(payload)
        except ValidationError:
            raise TokenInvalidException("Invalid token.")
