"""SQLAlchemy table definitions with proper types and constraints."""

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)

from mailmirror.core.database.base import metadata

emails = Table(
    "emails",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("sender", String(500), nullable=False),
    Column("recipient", String(500), nullable=False),
    Column("subject", String(1000), nullable=False, default="", server_default=""),
    Column("body", Text, nullable=False, default="", server_default=""),
    Column("sent_at", DateTime, nullable=True),  # naive UTC
    Column("folder", String(255), nullable=False, index=True),
    # Dedup key of synced messages, enforced by the store itself
    UniqueConstraint("sender", "subject", "sent_at", name="dedup_key"),
    Index("ix_emails_folder_sent_at", "folder", "sent_at"),
)
