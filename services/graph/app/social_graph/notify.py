"""
Follow-graph notifications — async httpx POST to the notification service.

``emit`` is fire-and-forget: it logs on failure but never raises, so a
notification outage never undoes or blocks a committed graph mutation.
Intended exclusively for use inside FastAPI BackgroundTasks, after commit.
"""
from __future__ import annotations

import logging
import uuid

import httpx

from app.config import Settings
from app.social_graph.constants import NotificationKind
from shared.events.schemas import GraphNotificationEvent

logger = logging.getLogger(__name__)
_INTERNAL_PATH = "/api/v1/notifications/internal"


def build_event(
    kind: NotificationKind, from_user: uuid.UUID, to_user: uuid.UUID
) -> GraphNotificationEvent:
    return GraphNotificationEvent(type=kind.value, user_id=to_user, actor_id=from_user)


async def emit(
    kind: NotificationKind,
    from_user: uuid.UUID,
    to_user: uuid.UUID,
    settings: Settings,
) -> None:
    if not settings.notification_service_url:
        logger.debug("Notification service not configured, dropping %s event", kind.value)
        return
    event = build_event(kind, from_user, to_user)
    url = f"{settings.notification_service_url.rstrip('/')}{_INTERNAL_PATH}"
    payload = event.model_dump(mode="json", exclude={"occurred_at"})
    try:
        async with httpx.AsyncClient(timeout=settings.notification_timeout_seconds) as client:
            r = await client.post(url, json=payload)
        if r.status_code >= 400:
            logger.error(
                "Notification service error %s for %s event: %s",
                r.status_code,
                kind.value,
                r.text[:300],
            )
    except httpx.HTTPError as exc:
        logger.error("Notification delivery failed for %s event: %s", kind.value, exc)
