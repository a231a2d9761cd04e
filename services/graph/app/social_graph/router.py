"""
Social graph domain — user-facing routes.

All routes prefixed /api/v1/users (shared with the profile router; the
sub-paths do not overlap).

Routes:
  POST   /{user_id}/follow                        Follow, or request to follow a private account (50/hour)
  DELETE /{user_id}/follow                        Unfollow, or cancel a pending request
  GET    /me/follow-requests                      Pending requests to me (newest first)
  POST   /me/follow-requests/{requester_id}/accept
  DELETE /me/follow-requests/{requester_id}       Decline (succeeds if already gone)
  DELETE /me/followers/{follower_id}              Remove a follower
  GET    /me/following                            Who I follow (paginated)
  GET    /me/followers                            Who follows me (paginated)
  GET    /me/mutuals                              Users I follow who follow me back
  GET    /{user_id}/following                     View user's following (403 if private and not followed)
  GET    /{user_id}/followers                     View user's followers (403 if private and not followed)
  GET    /{user_id}/relationship                  Follow state in both directions

Note: /me/... routes must be registered before /{user_id}/... routes of the same
shape so Starlette's literal-path matching takes precedence.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.config import Settings, get_settings
from app.database import get_db
from app.rate_limit import limiter
from app.social_graph import controller as ctrl
from app.social_graph.schemas import (
    FollowListResponse,
    FollowRequestListResponse,
    FollowResponse,
    MutualsResponse,
    RelationshipResponse,
    UnfollowResponse,
)
from shared.models.user import CurrentUser

router = APIRouter(prefix="/users", tags=["social-graph"])


# ── Follow ─────────────────────────────────────────────────────────────────────

@router.post(
    "/{user_id}/follow",
    response_model=FollowResponse,
    status_code=status.HTTP_200_OK,
    summary="Follow a user",
    description=(
        "Public accounts are followed immediately. Private accounts receive a "
        "follow request instead. Repeating the call is a no-op. "
        "Rate-limited to 50 follow actions per hour."
    ),
)
@limiter.limit("50/hour")
async def follow_user(
    request: Request,
    user_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> FollowResponse:
    return await ctrl.follow_user(current_user.id, user_id, settings, background_tasks)


@router.delete(
    "/{user_id}/follow",
    response_model=UnfollowResponse,
    summary="Unfollow a user or cancel a pending follow request",
    description="Succeeds with outcome 'noop' when there was nothing to undo.",
)
async def unfollow_user(
    user_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> UnfollowResponse:
    return await ctrl.unfollow_user(current_user.id, user_id, settings)


# ── My follow requests / followers ─────────────────────────────────────────────

@router.get(
    "/me/follow-requests",
    response_model=FollowRequestListResponse,
    summary="List pending follow requests to me",
)
async def my_follow_requests(
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Items per page"),
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> FollowRequestListResponse:
    return await ctrl.list_requests(session, current_user.id, page=page, size=size)


@router.post(
    "/me/follow-requests/{requester_id}/accept",
    response_model=FollowResponse,
    summary="Accept a pending follow request",
    description="Returns 404 if there is no pending request from this user.",
)
async def accept_follow_request(
    requester_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> FollowResponse:
    return await ctrl.accept_request(current_user.id, requester_id, settings, background_tasks)


@router.delete(
    "/me/follow-requests/{requester_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Decline a pending follow request",
)
async def decline_follow_request(
    requester_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> None:
    await ctrl.decline_request(current_user.id, requester_id, settings)


@router.delete(
    "/me/followers/{follower_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a follower",
)
async def remove_follower(
    follower_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> None:
    await ctrl.remove_follower(current_user.id, follower_id, settings)


# ── My lists (must be registered before /{user_id}/... to avoid mis-routing) ──

@router.get(
    "/me/following",
    response_model=FollowListResponse,
    summary="List users I follow",
)
async def my_following(
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Items per page"),
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> FollowListResponse:
    return await ctrl.list_following(
        session, current_user.id, viewer_id=current_user.id, page=page, size=size
    )


@router.get(
    "/me/followers",
    response_model=FollowListResponse,
    summary="List users who follow me",
)
async def my_followers(
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Items per page"),
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> FollowListResponse:
    return await ctrl.list_followers(
        session, current_user.id, viewer_id=current_user.id, page=page, size=size
    )


@router.get(
    "/me/mutuals",
    response_model=MutualsResponse,
    summary="List users I follow who also follow me",
)
async def my_mutuals(
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> MutualsResponse:
    return await ctrl.list_mutuals(session, current_user.id)


# ── Another user's lists ───────────────────────────────────────────────────────

@router.get(
    "/{user_id}/following",
    response_model=FollowListResponse,
    summary="View another user's following list",
    description="Returns 403 if the account is private and you do not follow it.",
)
async def user_following(
    user_id: uuid.UUID,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Items per page"),
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> FollowListResponse:
    return await ctrl.list_following(
        session, user_id, viewer_id=current_user.id, page=page, size=size
    )


@router.get(
    "/{user_id}/followers",
    response_model=FollowListResponse,
    summary="View another user's followers list",
    description="Returns 403 if the account is private and you do not follow it.",
)
async def user_followers(
    user_id: uuid.UUID,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Items per page"),
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> FollowListResponse:
    return await ctrl.list_followers(
        session, user_id, viewer_id=current_user.id, page=page, size=size
    )


@router.get(
    "/{user_id}/relationship",
    response_model=RelationshipResponse,
    summary="Follow state between me and another user",
)
async def user_relationship(
    user_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> RelationshipResponse:
    return await ctrl.relationship(session, current_user.id, user_id)
