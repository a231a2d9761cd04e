from datetime import datetime, timezone
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

GraphEventType = Literal["follow", "follow_request", "follow_accepted"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GraphNotificationEvent(BaseModel):
    """Service-to-service event: a follow-graph change someone should hear about.

    ``user_id`` is the recipient, ``actor_id`` the user who caused it.
    Field names match the notification service's internal create endpoint.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: GraphEventType
    user_id: UUID
    actor_id: UUID
    occurred_at: datetime = Field(default_factory=_utcnow)
