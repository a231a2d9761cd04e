"""
Notes domain — router.

Routes:
  POST   /api/v1/notes             Publish a note (replaces my previous one)
  GET    /api/v1/notes             Notes visible to me, newest first
  GET    /api/v1/notes/stream      Same list as Server-Sent Events, pushed on change
  DELETE /api/v1/notes/{note_id}   Retract my note

All routes require a valid Bearer token.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.config import Settings, get_settings
from app.database import get_db
from app.notes import controller as ctrl
from app.notes.schemas import NoteListResponse, NoteResponse, PublishNoteRequest
from app.rate_limit import limiter
from shared.models.user import CurrentUser

router = APIRouter(prefix="/notes", tags=["notes"])


@router.post(
    "",
    response_model=NoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Publish a note",
    description=(
        "1-60 characters after trimming. Visible for 24 hours to you and to users "
        "you mutually follow at the time of posting. Replaces your previous note."
    ),
)
@limiter.limit("30/hour")
async def publish_note(
    request: Request,
    body: PublishNoteRequest,
    current_user: CurrentUser = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> NoteResponse:
    return await ctrl.publish_note(current_user.id, body, settings)


@router.get(
    "",
    response_model=NoteListResponse,
    summary="List notes visible to me",
)
async def list_notes(
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> NoteListResponse:
    return await ctrl.list_notes(session, current_user.id)


@router.get(
    "/stream",
    summary="Stream notes visible to me",
    description=(
        "Server-Sent Events. Sends the current list immediately, then a new "
        "`notes` event whenever a note appears, is retracted or expires."
    ),
    response_class=StreamingResponse,
)
async def stream_notes(
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse:
    return StreamingResponse(
        ctrl.stream_notes(current_user.id, settings, request.is_disconnected),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.delete(
    "/{note_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Retract my note",
)
async def retract_note(
    note_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> None:
    await ctrl.retract_note(session, current_user.id, note_id)
