"""
Profile domain — pure business logic (zero FastAPI imports).

Acts as the profile provider and privacy gate for the social graph: every
follow attempt reads the target's privacy flag through ``is_private`` inside
its own transaction, never from a cached profile.
"""
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.live import Subscription
from app.profile.models import User
from app.social_graph.exceptions import UserNotFoundError


async def get_profile(session: AsyncSession, user_id: uuid.UUID) -> User:
    """Load a user by PK; raise UserNotFoundError if missing."""
    result = await session.execute(sa.select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise UserNotFoundError(user_id)
    return user


async def get_profiles(
    session: AsyncSession, user_ids: list[uuid.UUID]
) -> dict[uuid.UUID, User]:
    """Batch-load users; ids with no row are simply absent from the result."""
    if not user_ids:
        return {}
    result = await session.execute(sa.select(User).where(User.id.in_(user_ids)))
    return {u.id: u for u in result.scalars().all()}


async def is_private(session: AsyncSession, user_id: uuid.UUID) -> bool:
    result = await session.execute(sa.select(User.is_private).where(User.id == user_id))
    flag = result.scalar_one_or_none()
    if flag is None:
        raise UserNotFoundError(user_id)
    return flag


async def set_privacy(session: AsyncSession, user_id: uuid.UUID, private: bool) -> User:
    user = await get_profile(session, user_id)
    user.is_private = private
    await session.flush()
    return user


async def get_counts(session: AsyncSession, user_id: uuid.UUID) -> tuple[int, int]:
    """Return (follower_count, following_count) straight from the ledger."""
    result = await session.execute(
        sa.select(User.follower_count, User.following_count).where(User.id == user_id)
    )
    row = result.one_or_none()
    if row is None:
        raise UserNotFoundError(user_id)
    return row.follower_count, row.following_count


async def upsert_profile(
    session: AsyncSession,
    user_id: uuid.UUID,
    *,
    username: str,
    display_name: str,
    avatar_url: str | None,
    is_private: bool | None = None,
) -> tuple[User, bool]:
    """Create or refresh the public profile fields synced from identity.

    Returns (user, created).  Counters are never touched here.  Existing edge
    snapshots keep the values captured at follow time.
    """
    user = await session.get(User, user_id)
    created = user is None
    if user is None:
        user = User(id=user_id, username=username, display_name=display_name)
        session.add(user)
    user.username = username
    user.display_name = display_name
    user.avatar_url = avatar_url
    if is_private is not None:
        user.is_private = is_private
    await session.flush()
    return user, created


def watch_counts(
    session_factory: async_sessionmaker[AsyncSession],
    user_id: uuid.UUID,
    *,
    poll_seconds: float,
) -> Subscription[tuple[int, int]]:
    """Live (follower_count, following_count) for one user, re-read every poll."""

    async def fetch() -> tuple[int, int]:
        async with session_factory() as session:
            return await get_counts(session, user_id)

    return Subscription(fetch, poll_seconds=poll_seconds)
