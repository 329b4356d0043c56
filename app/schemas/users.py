"""User schemas for request/response validation."""

from datetime import UTC, date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class UserRole(str, Enum):
    """User role enumeration, least privileged first."""

    CLIENT = "client"
    TRAINER = "trainer"
    ADMIN = "admin"


def validate_phone(v: str | None) -> str | None:
    """Validate phone number format."""
    if v is None:
        return v
    # Remove common separators
    cleaned = v.replace("-", "").replace(" ", "").replace("(", "").replace(")", "").replace("+", "")
    if not cleaned.isdigit():
        raise ValueError("Phone number must contain only digits and separators")
    if len(cleaned) < 7:
        raise ValueError("Phone number must have at least 7 digits")
    return v


def validate_date_of_birth(v: date | None) -> date | None:
    """Reject birth dates in the future."""
    if v is not None and v > datetime.now(UTC).date():
        raise ValueError("Date of birth cannot be in the future")
    return v


class UserResponse(BaseModel):
    """User schema for API responses."""

    id: UUID
    name: str
    phone: str | None = None
    email: str
    role: UserRole
    gender: str | None = None
    date_of_birth: date | None = None
    is_verified: bool = False
    has_password: bool = Field(False, description="Whether local password sign-in is available")
    created_at: datetime | None = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_row(cls, user: dict) -> "UserResponse":
        """Build a response from a users table row, hiding credentials."""
        return cls(
            id=user["id"],
            name=user["name"],
            phone=user.get("phone"),
            email=user["email"],
            role=user["role"],
            gender=user.get("gender"),
            date_of_birth=user.get("date_of_birth"),
            is_verified=user["is_verified"],
            has_password=user.get("password_hash") is not None,
            created_at=user.get("created_at"),
        )
