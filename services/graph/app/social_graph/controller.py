"""
Social graph domain — request orchestration.

Mutations run through run_in_transaction (one atomic unit, retried on
conflict); notifications are queued on BackgroundTasks only after the unit
committed.  Reads use the request-scoped session from get_db.
"""
from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from fastapi import BackgroundTasks
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import run_in_transaction
from app.exceptions import (
    CannotTargetSelf,
    ConnectionsHidden,
    FollowRequestNotFound,
    StoreUnavailable,
    UserNotFound,
)
from app.social_graph import notify
from app.social_graph import reconcile
from app.social_graph import service as svc
from app.social_graph.constants import FollowOutcome, NotificationKind, RelationState
from app.social_graph.exceptions import (
    RequestNotFoundError,
    SelfReferenceError,
    TransientStoreError,
    UserNotFoundError,
)
from app.social_graph.models import FollowerEdge, FollowingEdge, FollowRequest
from app.social_graph.schemas import (
    CounterDriftItem,
    FollowListItem,
    FollowListResponse,
    FollowRequestItem,
    FollowRequestListResponse,
    FollowResponse,
    MutualsResponse,
    PeerRef,
    ReconcileResponse,
    RelationshipResponse,
    UnfollowResponse,
)

T = TypeVar("T")

_FOLLOW_MESSAGES = {
    FollowOutcome.FOLLOWED: "Followed successfully.",
    FollowOutcome.ALREADY_FOLLOWING: "You are already following this user.",
    FollowOutcome.REQUESTED: "Follow request sent.",
    FollowOutcome.ALREADY_REQUESTED: "Follow request already pending.",
}


@contextmanager
def graph_errors() -> Iterator[None]:
    """Translate graph domain errors into their HTTP counterparts."""
    try:
        yield
    except SelfReferenceError as exc:
        raise CannotTargetSelf(exc.operation) from exc
    except UserNotFoundError as exc:
        raise UserNotFound() from exc
    except RequestNotFoundError as exc:
        raise FollowRequestNotFound() from exc
    except TransientStoreError as exc:
        raise StoreUnavailable() from exc
    except IntegrityError as exc:
        # Not retried: a foreign key to a user that was deleted mid-write
        raise UserNotFound() from exc


async def atomic(work: Callable[[AsyncSession], Awaitable[T]], settings: Settings) -> T:
    return await run_in_transaction(
        work,
        max_attempts=settings.transaction_max_attempts,
        backoff_seconds=settings.transaction_backoff_seconds,
    )


def _peer_ref(edge: FollowingEdge | FollowerEdge | FollowRequest) -> PeerRef:
    return PeerRef(
        id=edge.peer_id,
        username=edge.peer_username,
        display_name=edge.peer_display_name,
        avatar_url=edge.peer_avatar_url,
    )


# ── Follow / Unfollow ──────────────────────────────────────────────────────────

async def follow_user(
    follower_id: uuid.UUID,
    target_id: uuid.UUID,
    settings: Settings,
    background_tasks: BackgroundTasks,
) -> FollowResponse:
    with graph_errors():
        outcome = await atomic(lambda s: svc.follow(s, follower_id, target_id), settings)

    if outcome is FollowOutcome.FOLLOWED:
        background_tasks.add_task(
            notify.emit, NotificationKind.FOLLOW, follower_id, target_id, settings
        )
    elif outcome is FollowOutcome.REQUESTED:
        background_tasks.add_task(
            notify.emit, NotificationKind.FOLLOW_REQUEST, follower_id, target_id, settings
        )

    state = (
        RelationState.FOLLOWING
        if outcome in (FollowOutcome.FOLLOWED, FollowOutcome.ALREADY_FOLLOWING)
        else RelationState.PENDING
    )
    return FollowResponse(outcome=outcome, state=state, message=_FOLLOW_MESSAGES[outcome])


async def unfollow_user(
    follower_id: uuid.UUID,
    target_id: uuid.UUID,
    settings: Settings,
) -> UnfollowResponse:
    with graph_errors():
        outcome = await atomic(lambda s: svc.unfollow(s, follower_id, target_id), settings)
    return UnfollowResponse(outcome=outcome)


async def remove_follower(
    owner_id: uuid.UUID,
    follower_id: uuid.UUID,
    settings: Settings,
) -> None:
    with graph_errors():
        await atomic(lambda s: svc.remove_follower(s, owner_id, follower_id), settings)


# ── Follow requests ────────────────────────────────────────────────────────────

async def accept_request(
    owner_id: uuid.UUID,
    requester_id: uuid.UUID,
    settings: Settings,
    background_tasks: BackgroundTasks,
) -> FollowResponse:
    with graph_errors():
        await atomic(lambda s: svc.accept_follow_request(s, owner_id, requester_id), settings)
    # The requester hears that the owner let them in
    background_tasks.add_task(
        notify.emit, NotificationKind.FOLLOW_ACCEPTED, owner_id, requester_id, settings
    )
    return FollowResponse(
        outcome=FollowOutcome.FOLLOWED,
        state=RelationState.FOLLOWING,
        message="Follow request accepted.",
    )


async def decline_request(
    owner_id: uuid.UUID,
    requester_id: uuid.UUID,
    settings: Settings,
) -> None:
    with graph_errors():
        await atomic(lambda s: svc.decline_follow_request(s, owner_id, requester_id), settings)


async def list_requests(
    session: AsyncSession,
    owner_id: uuid.UUID,
    page: int,
    size: int,
) -> FollowRequestListResponse:
    requests, total = await svc.get_follow_requests(session, owner_id, page=page, size=size)
    items = [FollowRequestItem(requester=_peer_ref(r), created_at=r.created_at) for r in requests]
    return FollowRequestListResponse(items=items, total=total, page=page, size=size)


# ── Lists / relationship ───────────────────────────────────────────────────────

async def list_following(
    session: AsyncSession,
    user_id: uuid.UUID,
    viewer_id: uuid.UUID,
    page: int,
    size: int,
) -> FollowListResponse:
    with graph_errors():
        if not await svc.can_view_connections(session, user_id, viewer_id):
            raise ConnectionsHidden()
    rows, total = await svc.get_following(
        session, user_id, viewer_id=viewer_id, page=page, size=size
    )
    items = [
        FollowListItem(user=_peer_ref(e), created_at=e.created_at, is_followed_by_me=followed)
        for e, followed in rows
    ]
    return FollowListResponse(items=items, total=total, page=page, size=size)


async def list_followers(
    session: AsyncSession,
    user_id: uuid.UUID,
    viewer_id: uuid.UUID,
    page: int,
    size: int,
) -> FollowListResponse:
    with graph_errors():
        if not await svc.can_view_connections(session, user_id, viewer_id):
            raise ConnectionsHidden()
    rows, total = await svc.get_followers(
        session, user_id, viewer_id=viewer_id, page=page, size=size
    )
    items = [
        FollowListItem(user=_peer_ref(e), created_at=e.created_at, is_followed_by_me=followed)
        for e, followed in rows
    ]
    return FollowListResponse(items=items, total=total, page=page, size=size)


async def relationship(
    session: AsyncSession,
    viewer_id: uuid.UUID,
    other_id: uuid.UUID,
) -> RelationshipResponse:
    if viewer_id == other_id:
        raise CannotTargetSelf("look up a relationship with")
    outgoing = await svc.get_relation_state(session, viewer_id, other_id)
    incoming = await svc.get_relation_state(session, other_id, viewer_id)
    return RelationshipResponse(
        user_id=other_id,
        outgoing=outgoing,
        incoming=incoming,
        is_mutual=outgoing is RelationState.FOLLOWING and incoming is RelationState.FOLLOWING,
    )


async def list_mutuals(session: AsyncSession, user_id: uuid.UUID) -> MutualsResponse:
    mutuals = sorted(await svc.mutual_followers(session, user_id), key=str)
    return MutualsResponse(user_ids=mutuals, total=len(mutuals))


# ── Admin ──────────────────────────────────────────────────────────────────────

async def admin_reconcile(
    user_ids: list[uuid.UUID] | None,
    settings: Settings,
) -> ReconcileResponse:
    with graph_errors():
        drifts = await atomic(
            lambda s: reconcile.reconcile_counters(s, user_ids=user_ids), settings
        )
    return ReconcileResponse(corrected=[CounterDriftItem.model_validate(d) for d in drifts])
