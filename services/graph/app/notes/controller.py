"""
Notes domain — request orchestration.
"""
from __future__ import annotations

import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_session_factory, run_in_transaction
from app.exceptions import (
    InvalidNoteText,
    NoteAccessDenied,
    NoteNotFound,
    StoreUnavailable,
    UserNotFound,
)
from app.live import sse_events
from app.notes import service as svc
from app.notes.exceptions import NoteAccessDeniedError, NoteNotFoundError, NoteTextInvalidError
from app.notes.schemas import NoteAuthor, NoteListResponse, NoteResponse, PublishNoteRequest
from app.notes.service import NoteSnapshot
from app.social_graph.exceptions import TransientStoreError, UserNotFoundError


def _to_response(note: NoteSnapshot) -> NoteResponse:
    return NoteResponse(
        id=note.id,
        author=NoteAuthor(
            id=note.author_id,
            username=note.author_username,
            display_name=note.author_display_name,
            avatar_url=note.author_avatar_url,
        ),
        text=note.text,
        created_at=note.created_at,
        expires_at=note.expires_at,
    )


def _to_list(notes: tuple[NoteSnapshot, ...] | list[NoteSnapshot]) -> NoteListResponse:
    return NoteListResponse(items=[_to_response(n) for n in notes], total=len(notes))


async def publish_note(
    author_id: uuid.UUID,
    body: PublishNoteRequest,
    settings: Settings,
) -> NoteResponse:
    async def work(session: AsyncSession) -> NoteSnapshot:
        note = await svc.publish(
            session,
            author_id,
            body.text,
            ttl=timedelta(seconds=settings.note_ttl_seconds),
            max_length=settings.note_max_length,
        )
        return NoteSnapshot.from_note(note)

    try:
        snapshot = await run_in_transaction(
            work,
            max_attempts=settings.transaction_max_attempts,
            backoff_seconds=settings.transaction_backoff_seconds,
        )
    except NoteTextInvalidError as exc:
        raise InvalidNoteText(exc.max_length) from exc
    except (UserNotFoundError, IntegrityError) as exc:
        # IntegrityError here is the author row vanishing mid-publish
        raise UserNotFound() from exc
    except TransientStoreError as exc:
        raise StoreUnavailable() from exc
    return _to_response(snapshot)


async def retract_note(
    session: AsyncSession,
    author_id: uuid.UUID,
    note_id: uuid.UUID,
) -> None:
    try:
        await svc.retract(session, author_id, note_id)
    except NoteNotFoundError as exc:
        raise NoteNotFound() from exc
    except NoteAccessDeniedError as exc:
        raise NoteAccessDenied() from exc


async def list_notes(session: AsyncSession, viewer_id: uuid.UUID) -> NoteListResponse:
    notes = await svc.list_visible(session, viewer_id)
    return _to_list([NoteSnapshot.from_note(n) for n in notes])


def stream_notes(
    viewer_id: uuid.UUID,
    settings: Settings,
    is_disconnected: Callable[[], Awaitable[bool]],
) -> AsyncIterator[str]:
    subscription = svc.subscribe_visible(
        get_session_factory(), viewer_id, poll_seconds=settings.subscription_poll_seconds
    )
    return sse_events(
        subscription,
        lambda notes: _to_list(notes).model_dump_json(),
        event="notes",
        is_disconnected=is_disconnected,
    )
