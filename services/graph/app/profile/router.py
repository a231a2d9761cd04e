"""
Profile domain — router.

Routes:
  GET    /api/v1/users/me                        Own profile with counters
  PATCH  /api/v1/users/me/privacy                Switch between public and private
  PUT    /api/v1/users/internal/{user_id}        Create/refresh a profile (service token only)
  GET    /api/v1/users/{user_id}                 Any user's profile with counters
  GET    /api/v1/users/{user_id}/counts/stream   Live follower/following counts (SSE)

All routes require a valid Bearer token.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user, require_service
from app.config import Settings, get_settings
from app.database import get_db
from app.profile import controller as ctrl
from app.profile.schemas import ProfileResponse, UpdatePrivacyRequest, UpsertProfileRequest
from shared.models.user import CurrentUser

router = APIRouter(prefix="/users", tags=["profile"])


@router.get("/me", response_model=ProfileResponse, summary="Get own profile")
async def get_me(
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    return await ctrl.get_user(session, current_user.id)


@router.patch(
    "/me/privacy",
    response_model=ProfileResponse,
    summary="Make own account public or private",
    description=(
        "Private accounts turn new follow attempts into follow requests. "
        "Existing followers and pending requests are left as they are."
    ),
)
async def update_privacy(
    body: UpdatePrivacyRequest,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    return await ctrl.update_privacy(session, current_user.id, body)


@router.put(
    "/internal/{user_id}",
    response_model=ProfileResponse,
    summary="[Internal] Sync a profile from the identity service",
    description="Returns 201 when the profile was created, 200 when it was refreshed.",
)
async def upsert_profile(
    user_id: uuid.UUID,
    body: UpsertProfileRequest,
    response: Response,
    caller: CurrentUser = Depends(require_service),
    session: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    profile, created = await ctrl.upsert_profile(session, user_id, body)
    if created:
        response.status_code = status.HTTP_201_CREATED
    return profile


@router.get(
    "/{user_id}",
    response_model=ProfileResponse,
    summary="Get any user's profile",
)
async def get_user(
    user_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    return await ctrl.get_user(session, user_id)


@router.get(
    "/{user_id}/counts/stream",
    summary="Stream follower/following counts",
    description=(
        "Server-Sent Events. Sends the current counts immediately, then a new "
        "`counts` event whenever either value changes."
    ),
    response_class=StreamingResponse,
)
async def stream_counts(
    user_id: uuid.UUID,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse:
    events = await ctrl.stream_counts(session, user_id, settings, request.is_disconnected)
    return StreamingResponse(
        events,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
