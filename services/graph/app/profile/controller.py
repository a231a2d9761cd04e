"""
Profile domain — request orchestration (thin glue between router and service).
"""
from __future__ import annotations

import uuid
from collections.abc import AsyncIterator, Awaitable, Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_session_factory
from app.exceptions import UserNotFound, UsernameTaken
from app.live import sse_events
from app.profile import service as svc
from app.profile.schemas import (
    CountsResponse,
    ProfileResponse,
    UpdatePrivacyRequest,
    UpsertProfileRequest,
)
from app.social_graph.exceptions import UserNotFoundError


async def get_user(session: AsyncSession, user_id: uuid.UUID) -> ProfileResponse:
    try:
        user = await svc.get_profile(session, user_id)
    except UserNotFoundError as exc:
        raise UserNotFound() from exc
    return ProfileResponse.model_validate(user)


async def update_privacy(
    session: AsyncSession,
    user_id: uuid.UUID,
    body: UpdatePrivacyRequest,
) -> ProfileResponse:
    try:
        user = await svc.set_privacy(session, user_id, body.is_private)
    except UserNotFoundError as exc:
        raise UserNotFound() from exc
    return ProfileResponse.model_validate(user)


async def upsert_profile(
    session: AsyncSession,
    user_id: uuid.UUID,
    body: UpsertProfileRequest,
) -> tuple[ProfileResponse, bool]:
    try:
        user, created = await svc.upsert_profile(
            session,
            user_id,
            username=body.username,
            display_name=body.display_name,
            avatar_url=body.avatar_url,
            is_private=body.is_private,
        )
    except IntegrityError as exc:
        await session.rollback()
        raise UsernameTaken() from exc
    return ProfileResponse.model_validate(user), created


async def stream_counts(
    session: AsyncSession,
    user_id: uuid.UUID,
    settings: Settings,
    is_disconnected: Callable[[], Awaitable[bool]],
) -> AsyncIterator[str]:
    # 404 before the stream starts; afterwards a vanished user just ends it
    try:
        await svc.get_counts(session, user_id)
    except UserNotFoundError as exc:
        raise UserNotFound() from exc

    subscription = svc.watch_counts(
        get_session_factory(), user_id, poll_seconds=settings.subscription_poll_seconds
    )

    def render(counts: tuple[int, int]) -> str:
        followers, following = counts
        return CountsResponse(
            user_id=user_id, follower_count=followers, following_count=following
        ).model_dump_json()

    return _guard(sse_events(subscription, render, event="counts", is_disconnected=is_disconnected))


async def _guard(events: AsyncIterator[str]) -> AsyncIterator[str]:
    try:
        async for frame in events:
            yield frame
    except UserNotFoundError:
        return
