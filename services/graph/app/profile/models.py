"""
Profile domain — SQLAlchemy ORM model for the users table.

The graph service keeps its own copy of the public profile fields it needs
(synced from identity via the internal upsert route) plus the two
denormalized counters maintained by the follow-graph transactions.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from shared.database.postgres import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), primary_key=True, default=uuid.uuid4)

    # ── Public profile (copied into edge snapshots at follow time) ────────────
    username: Mapped[str] = mapped_column(sa.String(50), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(sa.String(150), nullable=False, default="")
    avatar_url: Mapped[str | None] = mapped_column(sa.String(500), nullable=True)

    # ── Privacy gate ──────────────────────────────────────────────────────────
    # Private accounts turn follow attempts into pending follow requests.
    is_private: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, default=False, server_default=sa.false()
    )

    # ── Counter ledger ────────────────────────────────────────────────────────
    # Only ever changed in the same transaction as the edges they summarize.
    follower_count: Mapped[int] = mapped_column(
        sa.Integer(), nullable=False, default=0, server_default=sa.text("0")
    )
    following_count: Mapped[int] = mapped_column(
        sa.Integer(), nullable=False, default=0, server_default=sa.text("0")
    )

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_now, onupdate=_now
    )

    __table_args__ = (
        sa.CheckConstraint("follower_count >= 0", name="follower_count_non_negative"),
        sa.CheckConstraint("following_count >= 0", name="following_count_non_negative"),
    )
