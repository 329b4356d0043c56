"""Security utilities for JWT and password handling."""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.config import AuthConfig
from app.core.exceptions import TokenExpiredException, TokenInvalidException


class PasswordHasher:
    """One-way password hashing with constant-time verification."""

    def __init__(self, rounds: int = 12):
        """Initialize the bcrypt context with the given work factor."""
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        """Hash a password."""
        return self._context.hash(password)

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against a hash."""
        return self._context.verify(plain_password, hashed_password)


def create_access_token(
    data: dict[str, Any],
    config: AuthConfig,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data to encode
        config: Token configuration holding the signing secret
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()

    now = datetime.now(UTC)
    expire = now + (expires_delta if expires_delta is not None else config.access_token_ttl)

    to_encode.update(
        {
            "exp": expire,
            "iat": now,
            "type": "access",
        }
    )

    return jwt.encode(
        to_encode,
        config.jwt_secret_key,
        algorithm=config.jwt_algorithm,
    )


def decode_access_token(token: str, config: AuthConfig) -> dict[str, Any]:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token to decode
        config: Token configuration holding the signing secret

    Returns:
        Decoded payload

    Raises:
        TokenExpiredException: If the signature is valid but the token expired
        TokenInvalidException: If the token is malformed, tampered with or not an access token
    """
    try:
        payload = jwt.decode(
            token,
            config.jwt_secret_key,
            algorithms=[config.jwt_algorithm],
        )
    except ExpiredSignatureError:
        raise TokenExpiredException("Token expired. Please refresh your token.")
    except JWTError:
        raise TokenInvalidException("Invalid token.")

    # Verify token type
    if payload.get("type") != "access":
        raise TokenInvalidException("Invalid token.")

    return payload
