"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Alembic auto-generates migrations by comparing these
models to the actual DB.

Key concepts:
- Withdrawal ids are the upstream worker's transaction UUIDs (strings),
  so a replayed callback hits the primary key instead of creating a duplicate
- JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
- Python-side defaults for timestamps so rows carry a value before flush
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JsonType = JSON().with_variant(JSONB(), "postgresql")

WITHDRAWAL_STATUSES = ("pending", "completed", "rejected")


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Withdrawal(Base):
    """A withdrawal request relayed from the payment worker.

    Learn: Rows start as 'pending'. An admin moves them to 'completed' or
    'rejected' exactly once; the worker is told about the decision so it
    can settle its own ledger.
    """

    __tablename__ = "withdrawals"
    __table_args__ = (
        Index("idx_withdrawals_status_created", "status", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    txn_id: Mapped[Optional[str]] = mapped_column(String(128))
    uid: Mapped[str] = mapped_column(String(128), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    payment_number: Mapped[str] = mapped_column(String(50), nullable=False)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True)
    )


class AdminToken(Base):
    """Expo push token of an admin device. One row per device."""

    __tablename__ = "admin_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class Event(Base):
    """Immutable audit log.

    Learn: Every state change is recorded as an event next to the row it
    changed. Events are append-only (never updated/deleted).

    stream_id examples: "withdrawal:<uuid>", "admin_token:<token prefix>"
    type examples: "withdrawal.received", "withdrawal.status_changed"
    """

    __tablename__ = "events"
    __table_args__ = (
        Index("idx_events_stream", "stream_id", "id"),
        Index("idx_events_type", "type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stream_id: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    data: Mapped[dict] = mapped_column(JsonType, nullable=False)
    meta: Mapped[dict] = mapped_column(
        "metadata", JsonType, nullable=False, default=dict
    )
    # Note: Python attr is "meta" because "metadata" is reserved by SQLAlchemy.
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
