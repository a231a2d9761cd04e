"""
Social graph domain — pure business logic (zero FastAPI imports).

Every mutating function here expects a session with an open transaction
(see app.database.run_in_transaction) and never commits on its own: the edge
rows on both sides, both counter deltas and any follow-request deletion land
in one unit or not at all.

State rules per (A, B):
  NONE       no rows
  PENDING    follow_requests(owner=B, peer=A)
  FOLLOWING  following(owner=A, peer=B) + followers(owner=B, peer=A)

  follow:    cannot follow self; public target → FOLLOWING, private → PENDING;
             already FOLLOWING or PENDING → no-op
  unfollow:  PENDING → request cancelled; FOLLOWING → edge removed; NONE → no-op
  accept:    PENDING → FOLLOWING (request deleted in the same unit)
  decline:   PENDING → NONE; otherwise no-op
  remove:    follower-initiated unfollow seen from the followed side

Counters move only when an edge row is actually inserted or deleted, so
repeated calls never double count, and decrements clamp at zero.
"""
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app.profile import service as profiles
from app.profile.models import User
from app.social_graph.constants import FollowOutcome, RelationState, UnfollowOutcome
from app.social_graph.exceptions import (
    RequestNotFoundError,
    SelfReferenceError,
    UserNotFoundError,
)
from app.social_graph.models import FollowerEdge, FollowingEdge, FollowRequest
from shared.models.pagination import page_offset


# ── Internal helpers ───────────────────────────────────────────────────────────

async def _row_exists(
    session: AsyncSession,
    model: type[FollowingEdge] | type[FollowerEdge] | type[FollowRequest],
    owner_id: uuid.UUID,
    peer_id: uuid.UUID,
) -> bool:
    result = await session.execute(
        sa.select(sa.exists().where(model.owner_id == owner_id, model.peer_id == peer_id))
    )
    return result.scalar_one()


async def _delete_row(
    session: AsyncSession,
    model: type[FollowingEdge] | type[FollowerEdge] | type[FollowRequest],
    owner_id: uuid.UUID,
    peer_id: uuid.UUID,
) -> bool:
    """Delete one pair row; True only if this transaction removed it."""
    result = await session.execute(
        sa.delete(model)
        .where(model.owner_id == owner_id, model.peer_id == peer_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


def _snapshot(peer: User) -> dict:
    return {
        "peer_username": peer.username,
        "peer_display_name": peer.display_name,
        "peer_avatar_url": peer.avatar_url,
    }


def _shift(column: sa.ColumnElement[int], delta: int) -> sa.ColumnElement[int]:
    if delta >= 0:
        return column + delta
    # Clamp: drifted counters already at 0 stay at 0
    return sa.case((column + delta < 0, 0), else_=column + delta)


async def _apply_counter_deltas(
    session: AsyncSession,
    deltas: dict[uuid.UUID, tuple[int, int]],
) -> None:
    """Apply {user_id: (follower_delta, following_delta)} as in-place UPDATEs.

    Rows are touched in ascending id order so follow(A, B) and follow(B, A)
    running concurrently lock the two user rows in the same order.
    """
    for user_id in sorted(deltas):
        follower_delta, following_delta = deltas[user_id]
        values: dict[str, sa.ColumnElement[int]] = {}
        if follower_delta:
            values["follower_count"] = _shift(User.follower_count, follower_delta)
        if following_delta:
            values["following_count"] = _shift(User.following_count, following_delta)
        if not values:
            continue
        await session.execute(
            sa.update(User)
            .where(User.id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )


async def _load_pair(
    session: AsyncSession, first_id: uuid.UUID, second_id: uuid.UUID
) -> tuple[User, User]:
    users = await profiles.get_profiles(session, [first_id, second_id])
    for user_id in (first_id, second_id):
        if user_id not in users:
            raise UserNotFoundError(user_id)
    return users[first_id], users[second_id]


async def _establish_edge(session: AsyncSession, follower: User, target: User) -> bool:
    """Make follower → target a full edge; return True if any row was created.

    Writes whichever half is missing (both, normally) and counts only the
    halves it wrote, then drops any pending request for the pair so a request
    and an edge never coexist.
    """
    deltas: dict[uuid.UUID, tuple[int, int]] = {}
    if not await _row_exists(session, FollowingEdge, follower.id, target.id):
        session.add(FollowingEdge(owner_id=follower.id, peer_id=target.id, **_snapshot(target)))
        deltas[follower.id] = (0, 1)
    if not await _row_exists(session, FollowerEdge, target.id, follower.id):
        session.add(FollowerEdge(owner_id=target.id, peer_id=follower.id, **_snapshot(follower)))
        deltas[target.id] = (1, 0)
    # Flush inside the unit so a lost race on the edge key fails here, before commit
    await session.flush()
    await _apply_counter_deltas(session, deltas)
    await _delete_row(session, FollowRequest, target.id, follower.id)
    return bool(deltas)


async def _remove_edge(
    session: AsyncSession, follower_id: uuid.UUID, target_id: uuid.UUID
) -> bool:
    """Delete both halves of follower → target; decrement only what was deleted."""
    deltas: dict[uuid.UUID, tuple[int, int]] = {}
    if await _delete_row(session, FollowingEdge, follower_id, target_id):
        deltas[follower_id] = (0, -1)
    if await _delete_row(session, FollowerEdge, target_id, follower_id):
        deltas[target_id] = (-1, 0)
    await _apply_counter_deltas(session, deltas)
    return bool(deltas)


# ── Relationship state ─────────────────────────────────────────────────────────

async def get_relation_state(
    session: AsyncSession, actor_id: uuid.UUID, target_id: uuid.UUID
) -> RelationState:
    """Return where actor stands towards target."""
    if await _row_exists(session, FollowingEdge, actor_id, target_id) or await _row_exists(
        session, FollowerEdge, target_id, actor_id
    ):
        return RelationState.FOLLOWING
    if await _row_exists(session, FollowRequest, target_id, actor_id):
        return RelationState.PENDING
    return RelationState.NONE


# ── Follow / Unfollow ──────────────────────────────────────────────────────────

async def follow(
    session: AsyncSession,
    follower_id: uuid.UUID,
    target_id: uuid.UUID,
) -> FollowOutcome:
    if follower_id == target_id:
        raise SelfReferenceError("follow")
    follower, target = await _load_pair(session, follower_id, target_id)

    state = await get_relation_state(session, follower_id, target_id)
    if state is RelationState.FOLLOWING:
        # Repairs a half-written edge left by an earlier drift, counts nothing otherwise
        await _establish_edge(session, follower, target)
        return FollowOutcome.ALREADY_FOLLOWING
    if state is RelationState.PENDING:
        return FollowOutcome.ALREADY_REQUESTED

    if await profiles.is_private(session, target_id):
        session.add(FollowRequest(owner_id=target_id, peer_id=follower_id, **_snapshot(follower)))
        await session.flush()
        return FollowOutcome.REQUESTED

    await _establish_edge(session, follower, target)
    return FollowOutcome.FOLLOWED


async def unfollow(
    session: AsyncSession,
    follower_id: uuid.UUID,
    target_id: uuid.UUID,
) -> UnfollowOutcome:
    if follower_id == target_id:
        raise SelfReferenceError("unfollow")
    if await _delete_row(session, FollowRequest, target_id, follower_id):
        return UnfollowOutcome.REQUEST_CANCELLED
    if await _remove_edge(session, follower_id, target_id):
        return UnfollowOutcome.UNFOLLOWED
    return UnfollowOutcome.NOOP


async def remove_follower(
    session: AsyncSession,
    owner_id: uuid.UUID,
    follower_id: uuid.UUID,
) -> bool:
    """Drop follower → owner from the owner's side.  False if there was nothing to drop."""
    if owner_id == follower_id:
        raise SelfReferenceError("remove")
    return await _remove_edge(session, follower_id, owner_id)


# ── Follow requests ────────────────────────────────────────────────────────────

async def accept_follow_request(
    session: AsyncSession,
    owner_id: uuid.UUID,
    requester_id: uuid.UUID,
) -> None:
    if owner_id == requester_id:
        raise SelfReferenceError("accept a follow request from")
    # Claim the request by deleting it; a concurrent cancel leaves nothing to claim
    if not await _delete_row(session, FollowRequest, owner_id, requester_id):
        raise RequestNotFoundError(owner_id, requester_id)
    requester, owner = await _load_pair(session, requester_id, owner_id)
    await _establish_edge(session, requester, owner)


async def decline_follow_request(
    session: AsyncSession,
    owner_id: uuid.UUID,
    requester_id: uuid.UUID,
) -> bool:
    """Delete the pending request if any.  Declining nothing is still a success."""
    return await _delete_row(session, FollowRequest, owner_id, requester_id)


async def get_follow_requests(
    session: AsyncSession,
    owner_id: uuid.UUID,
    *,
    page: int,
    size: int,
) -> tuple[list[FollowRequest], int]:
    total_r = await session.execute(
        sa.select(sa.func.count()).select_from(FollowRequest).where(FollowRequest.owner_id == owner_id)
    )
    rows_r = await session.execute(
        sa.select(FollowRequest)
        .where(FollowRequest.owner_id == owner_id)
        .order_by(FollowRequest.created_at.desc())
        .limit(size)
        .offset(page_offset(page, size))
    )
    return list(rows_r.scalars().all()), total_r.scalar_one()


# ── Mutual followers ───────────────────────────────────────────────────────────

async def mutual_followers(session: AsyncSession, user_id: uuid.UUID) -> set[uuid.UUID]:
    """Users that user_id follows and that follow user_id back.

    Reads both full sets and intersects them; called on note creation and the
    mutuals list only, never on the mutation path.
    """
    following_r = await session.execute(
        sa.select(FollowingEdge.peer_id).where(FollowingEdge.owner_id == user_id)
    )
    followers_r = await session.execute(
        sa.select(FollowerEdge.peer_id).where(FollowerEdge.owner_id == user_id)
    )
    return set(following_r.scalars().all()) & set(followers_r.scalars().all())


# ── Following / Followers lists ────────────────────────────────────────────────

async def can_view_connections(
    session: AsyncSession, owner_id: uuid.UUID, viewer_id: uuid.UUID
) -> bool:
    """Private accounts show their lists only to themselves and approved followers."""
    if owner_id == viewer_id:
        return True
    if not await profiles.is_private(session, owner_id):
        return True
    return await _row_exists(session, FollowerEdge, owner_id, viewer_id)


async def _list_edges(
    session: AsyncSession,
    model: type[FollowingEdge] | type[FollowerEdge],
    user_id: uuid.UUID,
    *,
    viewer_id: uuid.UUID,
    page: int,
    size: int,
) -> tuple[list[tuple[FollowingEdge | FollowerEdge, bool]], int]:
    total_r = await session.execute(
        sa.select(sa.func.count()).select_from(model).where(model.owner_id == user_id)
    )
    rows_r = await session.execute(
        sa.select(model)
        .where(model.owner_id == user_id)
        .order_by(model.created_at.desc())
        .limit(size)
        .offset(page_offset(page, size))
    )
    edges = list(rows_r.scalars().all())
    followed_set = await _batch_followed_by(session, viewer_id, [e.peer_id for e in edges])
    return [(e, e.peer_id in followed_set) for e in edges], total_r.scalar_one()


async def get_following(
    session: AsyncSession,
    user_id: uuid.UUID,
    *,
    viewer_id: uuid.UUID,
    page: int,
    size: int,
) -> tuple[list[tuple[FollowingEdge, bool]], int]:
    """
    Return (rows, total) where each row is (FollowingEdge, is_followed_by_viewer).
    """
    return await _list_edges(
        session, FollowingEdge, user_id, viewer_id=viewer_id, page=page, size=size
    )


async def get_followers(
    session: AsyncSession,
    user_id: uuid.UUID,
    *,
    viewer_id: uuid.UUID,
    page: int,
    size: int,
) -> tuple[list[tuple[FollowerEdge, bool]], int]:
    return await _list_edges(
        session, FollowerEdge, user_id, viewer_id=viewer_id, page=page, size=size
    )


async def _batch_followed_by(
    session: AsyncSession,
    viewer_id: uuid.UUID,
    target_ids: list[uuid.UUID],
) -> set[uuid.UUID]:
    """Return the subset of target_ids that viewer_id follows."""
    if not target_ids:
        return set()
    result = await session.execute(
        sa.select(FollowingEdge.peer_id).where(
            FollowingEdge.owner_id == viewer_id,
            FollowingEdge.peer_id.in_(target_ids),
        )
    )
    return set(result.scalars().all())
