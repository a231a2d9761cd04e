import pytest
from uuid import uuid4

from httpx import ASGITransport, AsyncClient

from app.database import get_session_factory
from app.main import app
from app.profile import service as profiles
from app.social_graph.constants import NotificationKind
from shared.constants import Role


async def _counts(user_id) -> tuple[int, int]:
    async with get_session_factory()() as session:
        return await profiles.get_counts(session, user_id)


@pytest.mark.asyncio
async def test_health(async_client) -> None:
    response = await async_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "graph", "database": "ok"}


@pytest.mark.asyncio
async def test_health_degraded_without_database() -> None:
    # No session_factory fixture: the engine was never initialized
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health")
    assert response.status_code == 503
    assert response.json()["database"] == "unavailable"


@pytest.mark.asyncio
async def test_follow_requires_auth(async_client) -> None:
    response = await async_client.post(f"/api/v1/users/{uuid4()}/follow")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_follow_and_unfollow_public(
    async_client, make_user, auth_headers, sent_notifications
) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")

    response = await async_client.post(
        f"/api/v1/users/{bob.id}/follow", headers=auth_headers(alice.id)
    )
    assert response.status_code == 200
    body = response.json()
    assert body["outcome"] == "followed"
    assert body["state"] == "following"
    assert sent_notifications == [(NotificationKind.FOLLOW, alice.id, bob.id)]
    assert await _counts(bob.id) == (1, 0)

    again = await async_client.post(
        f"/api/v1/users/{bob.id}/follow", headers=auth_headers(alice.id)
    )
    assert again.json()["outcome"] == "already_following"
    assert len(sent_notifications) == 1

    response = await async_client.delete(
        f"/api/v1/users/{bob.id}/follow", headers=auth_headers(alice.id)
    )
    assert response.status_code == 200
    assert response.json() == {"outcome": "unfollowed"}
    assert await _counts(bob.id) == (0, 0)
    assert await _counts(alice.id) == (0, 0)

    noop = await async_client.delete(
        f"/api/v1/users/{bob.id}/follow", headers=auth_headers(alice.id)
    )
    assert noop.status_code == 200
    assert noop.json() == {"outcome": "noop"}


@pytest.mark.asyncio
async def test_follow_self_is_422(async_client, make_user, auth_headers) -> None:
    alice = await make_user("alice")
    response = await async_client.post(
        f"/api/v1/users/{alice.id}/follow", headers=auth_headers(alice.id)
    )
    assert response.status_code == 422
    assert "yourself" in response.json()["detail"]


@pytest.mark.asyncio
async def test_follow_unknown_user_is_404(async_client, make_user, auth_headers) -> None:
    alice = await make_user("alice")
    response = await async_client.post(
        f"/api/v1/users/{uuid4()}/follow", headers=auth_headers(alice.id)
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_private_follow_request_flow(
    async_client, make_user, auth_headers, sent_notifications
) -> None:
    alice = await make_user("alice")
    carol = await make_user("carol", private=True)

    response = await async_client.post(
        f"/api/v1/users/{carol.id}/follow", headers=auth_headers(alice.id)
    )
    assert response.json()["outcome"] == "requested"
    assert response.json()["state"] == "pending"

    pending = await async_client.get(
        "/api/v1/users/me/follow-requests", headers=auth_headers(carol.id)
    )
    assert pending.status_code == 200
    data = pending.json()
    assert data["total"] == 1
    assert data["items"][0]["requester"]["id"] == str(alice.id)
    assert data["items"][0]["requester"]["username"] == "alice"

    accepted = await async_client.post(
        f"/api/v1/users/me/follow-requests/{alice.id}/accept", headers=auth_headers(carol.id)
    )
    assert accepted.status_code == 200
    assert accepted.json()["state"] == "following"
    assert await _counts(carol.id) == (1, 0)
    assert sent_notifications == [
        (NotificationKind.FOLLOW_REQUEST, alice.id, carol.id),
        (NotificationKind.FOLLOW_ACCEPTED, carol.id, alice.id),
    ]

    again = await async_client.post(
        f"/api/v1/users/me/follow-requests/{alice.id}/accept", headers=auth_headers(carol.id)
    )
    assert again.status_code == 404


@pytest.mark.asyncio
async def test_decline_is_idempotent(async_client, make_user, auth_headers) -> None:
    alice = await make_user("alice")
    carol = await make_user("carol", private=True)
    await async_client.post(f"/api/v1/users/{carol.id}/follow", headers=auth_headers(alice.id))

    for _ in range(2):
        response = await async_client.delete(
            f"/api/v1/users/me/follow-requests/{alice.id}", headers=auth_headers(carol.id)
        )
        assert response.status_code == 204

    relationship = await async_client.get(
        f"/api/v1/users/{carol.id}/relationship", headers=auth_headers(alice.id)
    )
    assert relationship.json()["outgoing"] == "none"


@pytest.mark.asyncio
async def test_private_lists_hidden_from_non_followers(
    async_client, make_user, auth_headers
) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")
    carol = await make_user("carol", private=True)
    await async_client.post(f"/api/v1/users/{carol.id}/follow", headers=auth_headers(alice.id))
    await async_client.post(
        f"/api/v1/users/me/follow-requests/{alice.id}/accept", headers=auth_headers(carol.id)
    )

    hidden = await async_client.get(
        f"/api/v1/users/{carol.id}/followers", headers=auth_headers(bob.id)
    )
    assert hidden.status_code == 403

    visible = await async_client.get(
        f"/api/v1/users/{carol.id}/followers", headers=auth_headers(alice.id)
    )
    assert visible.status_code == 200
    items = visible.json()["items"]
    assert [i["user"]["id"] for i in items] == [str(alice.id)]
    assert items[0]["is_followed_by_me"] is False

    mine = await async_client.get("/api/v1/users/me/following", headers=auth_headers(alice.id))
    assert mine.json()["total"] == 1
    assert mine.json()["items"][0]["is_followed_by_me"] is True


@pytest.mark.asyncio
async def test_remove_follower_and_mutuals(async_client, make_user, auth_headers) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")
    await async_client.post(f"/api/v1/users/{bob.id}/follow", headers=auth_headers(alice.id))
    await async_client.post(f"/api/v1/users/{alice.id}/follow", headers=auth_headers(bob.id))

    mutuals = await async_client.get("/api/v1/users/me/mutuals", headers=auth_headers(alice.id))
    assert mutuals.json() == {"user_ids": [str(bob.id)], "total": 1}

    relationship = await async_client.get(
        f"/api/v1/users/{bob.id}/relationship", headers=auth_headers(alice.id)
    )
    assert relationship.json()["is_mutual"] is True

    removed = await async_client.delete(
        f"/api/v1/users/me/followers/{bob.id}", headers=auth_headers(alice.id)
    )
    assert removed.status_code == 204
    assert await _counts(alice.id) == (0, 1)
    assert await _counts(bob.id) == (1, 0)

    mutuals = await async_client.get("/api/v1/users/me/mutuals", headers=auth_headers(alice.id))
    assert mutuals.json()["total"] == 0


@pytest.mark.asyncio
async def test_admin_reconcile(async_client, make_user, auth_headers, db_session) -> None:
    import sqlalchemy as sa
    from app.profile.models import User

    alice = await make_user("alice")
    await db_session.execute(
        sa.update(User).where(User.id == alice.id).values(follower_count=4)
    )
    await db_session.commit()

    forbidden = await async_client.post(
        "/api/v1/admin/graph/reconcile", json={}, headers=auth_headers(alice.id)
    )
    assert forbidden.status_code == 403

    response = await async_client.post(
        "/api/v1/admin/graph/reconcile",
        json={"user_ids": [str(alice.id)]},
        headers=auth_headers(uuid4(), Role.ADMIN),
    )
    assert response.status_code == 200
    corrected = response.json()["corrected"]
    assert corrected[0]["user_id"] == str(alice.id)
    assert corrected[0]["stored_followers"] == 4
    assert corrected[0]["actual_followers"] == 0
    assert await _counts(alice.id) == (0, 0)
