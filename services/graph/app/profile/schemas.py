"""
Profile domain — Pydantic V2 request/response schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class _Base(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


# ── Request ───────────────────────────────────────────────────────────────────

class UpdatePrivacyRequest(_Base):
    """PATCH /users/me/privacy"""

    is_private: bool


class UpsertProfileRequest(_Base):
    """PUT /users/internal/{user_id}: identity pushes public profile fields here."""

    username: str = Field(..., min_length=1, max_length=50)
    display_name: str = Field("", max_length=150)
    avatar_url: str | None = Field(None, max_length=500)
    is_private: bool | None = None


# ── Response ──────────────────────────────────────────────────────────────────

class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    username: str
    display_name: str
    avatar_url: str | None
    is_private: bool
    follower_count: int
    following_count: int
    created_at: datetime


class CountsResponse(BaseModel):
    """One frame of the counts stream."""

    user_id: uuid.UUID
    follower_count: int
    following_count: int
