"""
Social graph domain — enums and limits.
"""
from __future__ import annotations

import enum


class RelationState(str, enum.Enum):
    """Where (A, B) stands, derived from which rows exist for the pair."""

    NONE = "none"
    PENDING = "pending"      # A asked to follow private B, not yet answered
    FOLLOWING = "following"  # A follows B (edge rows on both sides)


class FollowOutcome(str, enum.Enum):
    FOLLOWED = "followed"
    ALREADY_FOLLOWING = "already_following"
    REQUESTED = "requested"
    ALREADY_REQUESTED = "already_requested"


class UnfollowOutcome(str, enum.Enum):
    UNFOLLOWED = "unfollowed"
    REQUEST_CANCELLED = "request_cancelled"
    NOOP = "noop"


class NotificationKind(str, enum.Enum):
    FOLLOW = "follow"
    FOLLOW_REQUEST = "follow_request"
    FOLLOW_ACCEPTED = "follow_accepted"
