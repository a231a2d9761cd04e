"""
Notes domain — Pydantic V2 request/response schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PublishNoteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # Length is enforced after stripping, by the service
    text: str = Field(..., max_length=1000)


class NoteAuthor(BaseModel):
    id: uuid.UUID
    username: str
    display_name: str
    avatar_url: str | None


class NoteResponse(BaseModel):
    id: uuid.UUID
    author: NoteAuthor
    text: str
    created_at: datetime
    expires_at: datetime


class NoteListResponse(BaseModel):
    items: list[NoteResponse]
    total: int
