"""Authentication schemas."""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Annotated, Literal

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.schemas.users import UserResponse, UserRole, validate_date_of_birth, validate_phone

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


def normalize_email(v: str) -> str:
    """Lower-case and trim an email address."""
    return v.strip().lower()


# Credential variants accepted by the identity resolver


class LocalRegistration(BaseModel):
    """Local registration credential."""

    kind: Literal["register"] = "register"
    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    phone: str | None = Field(None, max_length=20)
    role: UserRole = UserRole.CLIENT
    password: str = Field(..., min_length=8, max_length=72)
    gender: str | None = Field(None, max_length=50)
    date_of_birth: date | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        """Trim surrounding whitespace and re-check length."""
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be between 2 and 255 characters")
        return v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        """Normalize the email address."""
        return normalize_email(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str | None) -> str | None:
        """Validate phone number format."""
        return validate_phone(v)

    @field_validator("password")
    @classmethod
    def check_password_strength(cls, v: str) -> str:
        """Require at least one lowercase letter, one uppercase letter and one digit."""
        if not PASSWORD_PATTERN.match(v):
            raise ValueError(
                "Password must contain at least one uppercase letter, "
                "one lowercase letter, and one number"
            )
        return v

    @field_validator("date_of_birth")
    @classmethod
    def check_date_of_birth(cls, v: date | None) -> date | None:
        """Reject birth dates in the future."""
        return validate_date_of_birth(v)


class LocalLogin(BaseModel):
    """Local email/password login credential."""

    kind: Literal["login"] = "login"
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        """Normalize the email address."""
        return normalize_email(v)


class ExternalProfile(BaseModel):
    """Profile of a caller already authenticated by the external identity provider."""

    kind: Literal["external"] = "external"
    external_id: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    display_name: str = Field(..., min_length=1, max_length=255)
    gender: str | None = Field(None, max_length=50)
    date_of_birth: date | None = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        """Normalize the email address."""
        return normalize_email(v)

    @field_validator("date_of_birth")
    @classmethod
    def check_date_of_birth(cls, v: date | None) -> date | None:
        """Reject birth dates in the future."""
        return validate_date_of_birth(v)


Credential = Annotated[
    LocalRegistration | LocalLogin | ExternalProfile,
    Field(discriminator="kind"),
]


@dataclass(frozen=True)
class ClientContext:
    """Client metadata recorded with a refresh token. Advisory only."""

    ip: str | None = None
    user_agent: str | None = None
    device: str | None = None


class AccessClaims(BaseModel):
    """Verified claims of an access token."""

    sub: str
    email: str
    role: UserRole
    iat: datetime
    exp: datetime


# Request schemas


class TokenRefresh(BaseModel):
    """Token refresh / logout request schema."""

    refresh_token: str | None = Field(
        None,
        min_length=1,
        description="Refresh token; falls back to the refreshToken cookie when omitted",
    )


class FirebaseAuthRequest(BaseModel):
    """Firebase ID token authentication request."""

    id_token: str = Field(..., description="Firebase ID token from the client app")
    google_access_token: str | None = Field(
        None,
        description="Optional Google OAuth access token used to read birthday and gender",
    )


class CheckEmailRequest(BaseModel):
    """Email availability check request."""

    email: EmailStr

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        """Normalize the email address."""
        return normalize_email(v)


# Response schemas


class Token(BaseModel):
    """JWT token response schema."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResponse(Token):
    """Authentication response with tokens and user info."""

    user: UserResponse


class EmailStatusResponse(BaseModel):
    """Which sign-in methods exist for an email address."""

    exists: bool
    has_password: bool = False
    has_external_identity: bool = False


class RevokedSessionsResponse(BaseModel):
    """Number of refresh tokens revoked."""

    revoked: int
