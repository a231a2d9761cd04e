"""
Counter reconciliation — out-of-band repair of the follower/following ledger.

The mutation path keeps users.follower_count / following_count in step with
the edge tables by construction.  This pass recomputes both counts from the
edge tables and rewrites rows that drifted (manual DB edits, restores,
pre-migration data).  Run by the worker cron and the admin endpoint, never
per request.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app.profile.models import User
from app.social_graph.models import FollowerEdge, FollowingEdge

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CounterDrift:
    user_id: uuid.UUID
    stored_followers: int
    actual_followers: int
    stored_following: int
    actual_following: int


def _count_subquery(model: type[FollowerEdge] | type[FollowingEdge]) -> sa.ScalarSelect[int]:
    return (
        sa.select(sa.func.count())
        .select_from(model)
        .where(model.owner_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )


async def find_drift(
    session: AsyncSession,
    *,
    user_ids: list[uuid.UUID] | None = None,
    limit: int | None = None,
) -> list[CounterDrift]:
    actual_followers = _count_subquery(FollowerEdge).label("actual_followers")
    actual_following = _count_subquery(FollowingEdge).label("actual_following")
    stmt = sa.select(
        User.id, User.follower_count, actual_followers, User.following_count, actual_following
    ).where(
        sa.or_(
            User.follower_count != actual_followers,
            User.following_count != actual_following,
        )
    )
    if user_ids is not None:
        stmt = stmt.where(User.id.in_(user_ids))
    if limit is not None:
        stmt = stmt.order_by(User.id).limit(limit)
    result = await session.execute(stmt)
    return [CounterDrift(*row) for row in result.all()]


async def reconcile_counters(
    session: AsyncSession,
    *,
    user_ids: list[uuid.UUID] | None = None,
    limit: int | None = None,
) -> list[CounterDrift]:
    """Correct every drifted ledger row found; return what was corrected."""
    drifts = await find_drift(session, user_ids=user_ids, limit=limit)
    for drift in drifts:
        logger.warning(
            "Counter drift for user %s: followers %d→%d, following %d→%d",
            drift.user_id,
            drift.stored_followers,
            drift.actual_followers,
            drift.stored_following,
            drift.actual_following,
        )
        await session.execute(
            sa.update(User)
            .where(User.id == drift.user_id)
            .values(
                follower_count=drift.actual_followers,
                following_count=drift.actual_following,
            )
            .execution_options(synchronize_session=False)
        )
    return drifts
