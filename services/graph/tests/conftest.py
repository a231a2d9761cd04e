import os

# Must be set before app.rate_limit is imported
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")

import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import dispose_db, get_engine, get_session_factory, init_db
from app.main import app
from app.notes.models import Note, NoteAudience  # noqa: F401 - register with Base
from app.profile.models import User
from app.rate_limit import limiter
from app.social_graph import notify
from app.social_graph.constants import NotificationKind
from app.social_graph.models import FollowerEdge, FollowingEdge, FollowRequest  # noqa: F401
from shared.auth.dependencies import get_auth_settings
from shared.constants import Role
from shared.database.postgres import Base

MakeUser = Callable[..., Awaitable[User]]


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    # A file (not :memory:) so every pooled connection sees the same database
    init_db(f"sqlite+aiosqlite:///{tmp_path / 'graph.db'}")
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield get_session_factory()
    await dispose_db()


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db_session: AsyncSession) -> MakeUser:
    """Insert and commit a profile so other sessions can see it."""

    async def _make(username: str, *, private: bool = False, avatar_url: str | None = None) -> User:
        user = User(
            id=uuid.uuid4(),
            username=username,
            display_name=username.title(),
            avatar_url=avatar_url,
            is_private=private,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def sent_notifications(monkeypatch: pytest.MonkeyPatch) -> list[tuple[NotificationKind, uuid.UUID, uuid.UUID]]:
    sent: list[tuple[NotificationKind, uuid.UUID, uuid.UUID]] = []

    async def fake_emit(kind, from_user, to_user, settings) -> None:
        sent.append((kind, from_user, to_user))

    monkeypatch.setattr(notify, "emit", fake_emit)
    return sent


def make_token(user_id: uuid.UUID, *roles: Role) -> str:
    settings = get_auth_settings()
    payload = {
        "sub": str(user_id),
        "roles": [r.value for r in (roles or (Role.USER,))],
        "iss": settings.issuer,
        "aud": settings.audience,
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    return jwt.encode(payload, settings.secret, algorithm=settings.algorithm)


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    def _headers(user_id: uuid.UUID, *roles: Role) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id, *roles)}"}

    return _headers


@pytest_asyncio.fixture
async def async_client(
    session_factory: async_sessionmaker[AsyncSession],
    sent_notifications: list,
) -> AsyncGenerator[AsyncClient, None]:
    # ASGITransport does not run the lifespan; session_factory already called init_db
    limiter.reset()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
