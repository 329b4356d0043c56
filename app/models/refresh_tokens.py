"""Refresh tokens model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    Table,
    Text,
    Uuid,
)

from app.models.users import metadata

refresh_tokens = Table(
    "refresh_tokens",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True, default=uuid4),
    Column(
        "user_id",
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("token", String(255), nullable=False, unique=True),
    # Client context captured at issuance, advisory only
    Column("ip", String(45)),
    Column("user_agent", Text),
    Column("device", String(255)),
    Column("issued_at", DateTime(timezone=True), nullable=False),
    Column("expires_at", DateTime(timezone=True), nullable=False, index=True),
    CheckConstraint(
        "expires_at > issued_at",
        name="refresh_tokens_expiry_check",
    ),
)
