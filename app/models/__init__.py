"""Database models."""

from app.models.refresh_tokens import refresh_tokens
from app.models.users import USER_ROLES, metadata, users

__all__ = [
    "USER_ROLES",
    "metadata",
    "refresh_tokens",
    "users",
]
