"""SQLAlchemy table definitions for Passage.

They match the schema defined in Alembic migrations.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Index,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

# Constraint names are matched when translating IntegrityErrors
PROFILES_PKEY = "profiles_pkey"
PROFILES_HANDLE_KEY = "uq_profiles_handle"

metadata = MetaData()

# ============================================================================
# PROFILES TABLE (one row per credential authority user)
# ============================================================================
profiles_table = Table(
    "profiles",
    metadata,
    Column("id", UUID(as_uuid=True), nullable=False),  # Authority user id
    Column("email", String(320), nullable=False),
    Column("handle", String(64), nullable=False),
    Column("display_name", String(255), nullable=False),
    Column("avatar", Text, nullable=True),
    Column("bio", Text, nullable=True),
    Column("is_online", Boolean, nullable=False, server_default="false"),
    Column(
        "last_active", TIMESTAMP(timezone=True), nullable=False, server_default="NOW()"
    ),
    Column("settings", JSONB, nullable=False, server_default=text("'{}'::jsonb")),
    Column("stats", JSONB, nullable=False, server_default=text("'{}'::jsonb")),
    # provider -> {id, username, verified}
    Column("social_accounts", JSONB, nullable=False, server_default=text("'{}'::jsonb")),
    Column("auth_provider", String(50), nullable=True),
    Column(
        "created_at", TIMESTAMP(timezone=True), nullable=False, server_default="NOW()"
    ),
    Column(
        "updated_at", TIMESTAMP(timezone=True), nullable=False, server_default="NOW()"
    ),
    PrimaryKeyConstraint("id", name=PROFILES_PKEY),
    UniqueConstraint("handle", name=PROFILES_HANDLE_KEY),
)

Index("idx_profiles_email_lower", func.lower(profiles_table.c.email))
