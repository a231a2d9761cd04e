"""
Notes domain — pure business logic (zero FastAPI imports).

A note is visible to its author and to every user in a mutual follow with
the author at the moment it was published; that set is written to
note_audience in the same transaction as the note and never recomputed.
Publishing replaces the author's previous note.  Expired notes are
filtered out on every read and physically removed by ``purge_expired``.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.live import Subscription
from app.notes.constants import NOTE_MAX_LENGTH, NOTE_TTL
from app.notes.exceptions import NoteAccessDeniedError, NoteNotFoundError, NoteTextInvalidError
from app.notes.models import Note, NoteAudience
from app.profile import service as profiles
from app.social_graph.service import mutual_followers

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoteSnapshot:
    """Detached, comparable view of a note for live streams."""

    id: uuid.UUID
    author_id: uuid.UUID
    author_username: str
    author_display_name: str
    author_avatar_url: str | None
    text: str
    created_at: datetime
    expires_at: datetime

    @classmethod
    def from_note(cls, note: Note) -> NoteSnapshot:
        return cls(
            id=note.id,
            author_id=note.author_id,
            author_username=note.author_username,
            author_display_name=note.author_display_name,
            author_avatar_url=note.author_avatar_url,
            text=note.text,
            created_at=_aware(note.created_at),
            expires_at=_aware(note.expires_at),
        )


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(dt: datetime) -> datetime:
    # SQLite hands back naive values; everything stored here is UTC
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def clean_text(text: str, max_length: int = NOTE_MAX_LENGTH) -> str:
    cleaned = text.strip()
    if not cleaned or len(cleaned) > max_length:
        raise NoteTextInvalidError(max_length)
    return cleaned


async def _delete_notes(session: AsyncSession, *criteria: sa.ColumnElement[bool]) -> int:
    # Audience rows go first; SQLite does not enforce ON DELETE CASCADE by default
    note_ids = sa.select(Note.id).where(*criteria)
    await session.execute(
        sa.delete(NoteAudience)
        .where(NoteAudience.note_id.in_(note_ids))
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(
        sa.delete(Note).where(*criteria).execution_options(synchronize_session=False)
    )
    return result.rowcount


# ── Publish / Retract ──────────────────────────────────────────────────────────

async def publish(
    session: AsyncSession,
    author_id: uuid.UUID,
    text: str,
    *,
    now: datetime | None = None,
    ttl: timedelta = NOTE_TTL,
    max_length: int = NOTE_MAX_LENGTH,
) -> Note:
    """Replace the author's note with a new one visible to author + mutuals."""
    cleaned = clean_text(text, max_length)
    author = await profiles.get_profile(session, author_id)
    audience = await mutual_followers(session, author_id)
    audience.add(author_id)

    await _delete_notes(session, Note.author_id == author_id)

    created_at = now or _now()
    note = Note(
        id=uuid.uuid4(),
        author_id=author_id,
        author_username=author.username,
        author_display_name=author.display_name,
        author_avatar_url=author.avatar_url,
        text=cleaned,
        created_at=created_at,
        expires_at=created_at + ttl,
    )
    session.add(note)
    await session.flush()
    session.add_all(NoteAudience(note_id=note.id, viewer_id=v) for v in sorted(audience))
    await session.flush()
    return note


async def retract(
    session: AsyncSession,
    author_id: uuid.UUID,
    note_id: uuid.UUID,
    *,
    now: datetime | None = None,
) -> None:
    """Delete the author's own note.  An expired note counts as not found."""
    result = await session.execute(sa.select(Note).where(Note.id == note_id))
    note = result.scalar_one_or_none()
    if note is None or _aware(note.expires_at) <= (now or _now()):
        raise NoteNotFoundError(note_id)
    if note.author_id != author_id:
        raise NoteAccessDeniedError()
    await _delete_notes(session, Note.id == note_id)


# ── Reads ──────────────────────────────────────────────────────────────────────

async def list_visible(
    session: AsyncSession,
    viewer_id: uuid.UUID,
    *,
    now: datetime | None = None,
) -> list[Note]:
    """Unexpired notes whose audience includes viewer_id, newest first."""
    result = await session.execute(
        sa.select(Note)
        .join(NoteAudience, NoteAudience.note_id == Note.id)
        .where(NoteAudience.viewer_id == viewer_id, Note.expires_at > (now or _now()))
        .order_by(Note.created_at.desc(), Note.id)
    )
    return list(result.scalars().all())


def subscribe_visible(
    session_factory: async_sessionmaker[AsyncSession],
    viewer_id: uuid.UUID,
    *,
    poll_seconds: float,
) -> Subscription[tuple[NoteSnapshot, ...]]:
    """Live view of list_visible.

    Re-reads at poll_seconds, or sooner when the earliest visible note is
    due to expire, and yields only when the visible set changed.
    """

    async def fetch() -> tuple[NoteSnapshot, ...]:
        async with session_factory() as session:
            notes = await list_visible(session, viewer_id)
        return tuple(NoteSnapshot.from_note(n) for n in notes)

    def until_next_expiry(snapshot: tuple[NoteSnapshot, ...]) -> float | None:
        if not snapshot:
            return None
        soonest = min(n.expires_at for n in snapshot)
        return (soonest - _now()).total_seconds()

    return Subscription(fetch, poll_seconds=poll_seconds, next_delay=until_next_expiry)


# ── Maintenance ────────────────────────────────────────────────────────────────

async def purge_expired(session: AsyncSession, *, now: datetime | None = None) -> int:
    """Physically delete expired notes; returns how many were removed."""
    removed = await _delete_notes(session, Note.expires_at <= (now or _now()))
    if removed:
        logger.info("Purged %d expired note(s)", removed)
    return removed
