"""
Social graph domain — Pydantic V2 request/response schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.social_graph.constants import FollowOutcome, RelationState, UnfollowOutcome
from shared.models.pagination import PaginatedResponse


# ── Embedded user reference (denormalized snapshot) ────────────────────────────

class PeerRef(BaseModel):
    """Peer profile as captured on the edge when it was written."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    username: str
    display_name: str
    avatar_url: str | None


# ── Follow ─────────────────────────────────────────────────────────────────────

class FollowResponse(BaseModel):
    outcome: FollowOutcome
    state: RelationState
    message: str


class UnfollowResponse(BaseModel):
    outcome: UnfollowOutcome


class FollowListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user: PeerRef
    created_at: datetime
    is_followed_by_me: bool  # does the current authed user follow this person?


FollowListResponse = PaginatedResponse[FollowListItem]


class RelationshipResponse(BaseModel):
    user_id: uuid.UUID
    outgoing: RelationState  # me → them
    incoming: RelationState  # them → me
    is_mutual: bool


class MutualsResponse(BaseModel):
    user_ids: list[uuid.UUID]
    total: int


# ── Follow requests ────────────────────────────────────────────────────────────

class FollowRequestItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    requester: PeerRef
    created_at: datetime


FollowRequestListResponse = PaginatedResponse[FollowRequestItem]


# ── Admin ──────────────────────────────────────────────────────────────────────

class ReconcileRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_ids: list[uuid.UUID] | None = Field(
        None, max_length=1000, description="Limit the pass to these users; all users when omitted."
    )


class CounterDriftItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: uuid.UUID
    stored_followers: int
    actual_followers: int
    stored_following: int
    actual_following: int


class ReconcileResponse(BaseModel):
    corrected: list[CounterDriftItem]
