"""
Social graph domain — SQLAlchemy ORM models.

Tables:
  following        A's outgoing edges: owner follows peer
  followers        B's incoming edges: peer follows owner
  follow_requests  pending requests against a private owner

An edge A→B is stored twice (following(A, B) and followers(B, A)) and both
rows are written and deleted in the same transaction.  Each row carries a
snapshot of the peer's public profile taken when the row was written; the
snapshot is not refreshed when the peer later edits their profile.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from shared.database.postgres import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _PeerSnapshot:
    peer_username: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    peer_display_name: Mapped[str] = mapped_column(sa.String(150), nullable=False, default="")
    peer_avatar_url: Mapped[str | None] = mapped_column(sa.String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_now
    )


class FollowingEdge(_PeerSnapshot, Base):
    __tablename__ = "following"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    peer_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )

    __table_args__ = (
        sa.CheckConstraint("owner_id != peer_id", name="no_self"),
        sa.Index("idx_following_owner_created", "owner_id", "created_at"),
    )


class FollowerEdge(_PeerSnapshot, Base):
    __tablename__ = "followers"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    peer_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )

    __table_args__ = (
        sa.CheckConstraint("owner_id != peer_id", name="no_self"),
        sa.Index("idx_followers_owner_created", "owner_id", "created_at"),
    )


class FollowRequest(_PeerSnapshot, Base):
    """Pending request: peer (the requester) wants to follow owner (private)."""

    __tablename__ = "follow_requests"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    peer_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )

    __table_args__ = (
        sa.CheckConstraint("owner_id != peer_id", name="no_self"),
        sa.Index("idx_follow_requests_owner_created", "owner_id", "created_at"),
    )
