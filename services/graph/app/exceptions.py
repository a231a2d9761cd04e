"""
Graph service — HTTP exceptions.

All exceptions use preset status codes and detail messages so that callers
never need to specify these at the call site.  Controllers raise these after
catching the matching domain exception from a service module.
"""
from fastapi import HTTPException, status


# ── Profiles ──────────────────────────────────────────────────────────────────

class UserNotFound(HTTPException):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found.",
        )


class UsernameTaken(HTTPException):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username is already used by another profile.",
        )


# ── Social graph ───────────────────────────────────────────────────────────────

class CannotTargetSelf(HTTPException):
    def __init__(self, operation: str) -> None:
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"You cannot {operation} yourself.",
        )


class FollowRequestNotFound(HTTPException):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Follow request not found.",
        )


class ConnectionsHidden(HTTPException):
    """Private account's follower/following lists requested by a non-follower."""

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This account is private. Follow it to see its connections.",
        )


class StoreUnavailable(HTTPException):
    """Transaction retries exhausted; nothing was written."""

    def __init__(self, retry_after_seconds: int = 1) -> None:
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="The social graph is busy. Please try again shortly.",
            headers={"Retry-After": str(retry_after_seconds)},
        )


# ── Notes ─────────────────────────────────────────────────────────────────────

class InvalidNoteText(HTTPException):
    def __init__(self, max_length: int) -> None:
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Note text must be between 1 and {max_length} characters.",
        )


class NoteNotFound(HTTPException):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Note not found.",
        )


class NoteAccessDenied(HTTPException):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only delete your own notes.",
        )
