# Domain exceptions raised by the social graph service layer.
# The controller layer catches these and converts them to HTTPException.
from __future__ import annotations

import uuid


class GraphError(Exception):
    """Base class for follow-graph failures."""


class SelfReferenceError(GraphError):
    """The operation targets the acting user where that is not allowed."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Cannot {operation} yourself")


class UserNotFoundError(GraphError):
    def __init__(self, user_id: uuid.UUID) -> None:
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class RequestNotFoundError(GraphError):
    """No pending follow request exists for (owner, requester)."""

    def __init__(self, owner_id: uuid.UUID, requester_id: uuid.UUID) -> None:
        self.owner_id = owner_id
        self.requester_id = requester_id
        super().__init__(f"No pending follow request from {requester_id} to {owner_id}")


class TransientStoreError(GraphError):
    """Write conflict or connectivity failure; nothing was written, retry later."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Store unavailable after {attempts} attempt(s)")
