"""
Notes domain — SQLAlchemy ORM models.

Tables:
  notes          short-lived status line, at most one row per author
  note_audience  who may see a note, fixed when it was published
                 (the author plus everyone in a mutual follow with them)
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from shared.database.postgres import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Note(Base):
    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), primary_key=True, default=uuid.uuid4)
    author_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # Author snapshot at publish time
    author_username: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    author_display_name: Mapped[str] = mapped_column(sa.String(150), nullable=False, default="")
    author_avatar_url: Mapped[str | None] = mapped_column(sa.String(500), nullable=True)

    text: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_now
    )
    expires_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)

    __table_args__ = (
        # One live note per author; a racing publish loses here and is retried
        sa.UniqueConstraint("author_id"),
        sa.Index("idx_notes_expires_at", "expires_at"),
    )


class NoteAudience(Base):
    __tablename__ = "note_audience"

    note_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(), sa.ForeignKey("notes.id", ondelete="CASCADE"), primary_key=True
    )
    viewer_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )

    __table_args__ = (sa.Index("idx_note_audience_viewer", "viewer_id"),)
