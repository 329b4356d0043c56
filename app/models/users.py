"""User model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    false,
    func,
    text,
)

metadata = MetaData()

USER_ROLES = ("client", "trainer", "admin")

users = Table(
    "users",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True, default=uuid4),
    # Profile
    Column("name", String(255), nullable=False),
    Column("phone", String(20)),
    Column("email", String(255), nullable=False, unique=True, index=True),
    Column("role", String(20), nullable=False, server_default=text("'client'")),
    Column("gender", Text),
    Column("date_of_birth", Date),
    # Credentials: local password and/or external identity
    Column("password_hash", String(255)),
    Column("external_id", String(255), unique=True, index=True),
    Column("is_verified", Boolean, nullable=False, server_default=false()),
    # Audit
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "role IN ('client', 'trainer', 'admin')",
        name="users_role_check",
    ),
    CheckConstraint(
        "password_hash IS NOT NULL OR external_id IS NOT NULL",
        name="users_credential_check",
    ),
)
