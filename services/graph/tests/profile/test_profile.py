import pytest
from uuid import uuid4

from app.profile import service as profiles
from app.social_graph.exceptions import UserNotFoundError
from shared.constants import Role


# ── Service ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_is_private_reads_flag(db_session, make_user) -> None:
    alice = await make_user("alice")
    carol = await make_user("carol", private=True)

    assert await profiles.is_private(db_session, alice.id) is False
    assert await profiles.is_private(db_session, carol.id) is True
    with pytest.raises(UserNotFoundError):
        await profiles.is_private(db_session, uuid4())


@pytest.mark.asyncio
async def test_upsert_creates_then_refreshes(db_session) -> None:
    user_id = uuid4()

    user, created = await profiles.upsert_profile(
        db_session, user_id, username="dana", display_name="Dana", avatar_url=None
    )
    assert created is True
    assert user.is_private is False
    assert await profiles.get_counts(db_session, user_id) == (0, 0)

    user, created = await profiles.upsert_profile(
        db_session,
        user_id,
        username="dana_k",
        display_name="Dana K",
        avatar_url="https://cdn.example/d.png",
        is_private=True,
    )
    assert created is False
    assert user.username == "dana_k"
    assert user.is_private is True


@pytest.mark.asyncio
async def test_get_counts_unknown_user(db_session) -> None:
    with pytest.raises(UserNotFoundError):
        await profiles.get_counts(db_session, uuid4())


# ── Routes ─────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_get_profile_with_counts(async_client, make_user, auth_headers) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")
    await async_client.post(f"/api/v1/users/{bob.id}/follow", headers=auth_headers(alice.id))

    response = await async_client.get(f"/api/v1/users/{bob.id}", headers=auth_headers(alice.id))
    assert response.status_code == 200
    body = response.json()
    assert body["username"] == "bob"
    assert body["follower_count"] == 1
    assert body["following_count"] == 0

    me = await async_client.get("/api/v1/users/me", headers=auth_headers(alice.id))
    assert me.json()["following_count"] == 1

    missing = await async_client.get(f"/api/v1/users/{uuid4()}", headers=auth_headers(alice.id))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_privacy_switch_changes_follow_behaviour(
    async_client, make_user, auth_headers
) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")

    response = await async_client.patch(
        "/api/v1/users/me/privacy", json={"is_private": True}, headers=auth_headers(bob.id)
    )
    assert response.status_code == 200
    assert response.json()["is_private"] is True

    follow = await async_client.post(
        f"/api/v1/users/{bob.id}/follow", headers=auth_headers(alice.id)
    )
    assert follow.json()["outcome"] == "requested"


@pytest.mark.asyncio
async def test_internal_upsert_requires_service_token(async_client, auth_headers) -> None:
    user_id = uuid4()
    payload = {"username": "erin", "display_name": "Erin"}

    forbidden = await async_client.put(
        f"/api/v1/users/internal/{user_id}", json=payload, headers=auth_headers(user_id)
    )
    assert forbidden.status_code == 403

    service = auth_headers(uuid4(), Role.SERVICE)
    created = await async_client.put(
        f"/api/v1/users/internal/{user_id}", json=payload, headers=service
    )
    assert created.status_code == 201
    assert created.json()["username"] == "erin"

    refreshed = await async_client.put(
        f"/api/v1/users/internal/{user_id}",
        json={**payload, "display_name": "Erin B"},
        headers=service,
    )
    assert refreshed.status_code == 200
    assert refreshed.json()["display_name"] == "Erin B"


@pytest.mark.asyncio
async def test_internal_upsert_duplicate_username_is_409(
    async_client, make_user, auth_headers
) -> None:
    await make_user("frank")
    response = await async_client.put(
        f"/api/v1/users/internal/{uuid4()}",
        json={"username": "frank"},
        headers=auth_headers(uuid4(), Role.SERVICE),
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_counts_stream_unknown_user_is_404(async_client, make_user, auth_headers) -> None:
    alice = await make_user("alice")
    response = await async_client.get(
        f"/api/v1/users/{uuid4()}/counts/stream", headers=auth_headers(alice.id)
    )
    assert response.status_code == 404
