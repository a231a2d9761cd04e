import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError, OperationalError

from app.database import is_unique_violation, run_in_transaction
from app.notes import service as notes
from app.notes.models import Note, NoteAudience
from app.profile import service as profiles
from app.profile.models import User
from app.social_graph import service as svc
from app.social_graph.constants import FollowOutcome, UnfollowOutcome
from app.social_graph.exceptions import (
    RequestNotFoundError,
    SelfReferenceError,
    TransientStoreError,
)
from app.social_graph.models import FollowerEdge, FollowingEdge, FollowRequest


def _locked() -> OperationalError:
    return OperationalError("UPDATE users", {}, Exception("database is locked"))


class _DriverError(Exception):
    """Stands in for an asyncpg error carrying a SQLSTATE."""

    def __init__(self, message: str, sqlstate: str) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


async def _count(session, model) -> int:
    result = await session.execute(sa.select(sa.func.count()).select_from(model))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_racing_follows_create_one_edge(session_factory, make_user) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")

    outcomes = await asyncio.gather(
        *(
            run_in_transaction(
                lambda s: svc.follow(s, alice.id, bob.id),
                session_factory=session_factory,
                max_attempts=5,
                backoff_seconds=0.01,
            )
            for _ in range(2)
        )
    )

    assert sorted(o.value for o in outcomes) == sorted(
        [FollowOutcome.FOLLOWED.value, FollowOutcome.ALREADY_FOLLOWING.value]
    )
    async with session_factory() as session:
        assert await profiles.get_counts(session, alice.id) == (0, 1)
        assert await profiles.get_counts(session, bob.id) == (1, 0)
        edges = await session.execute(sa.select(sa.func.count()).select_from(FollowingEdge))
        assert edges.scalar_one() == 1
        halves = await session.execute(sa.select(sa.func.count()).select_from(FollowerEdge))
        assert halves.scalar_one() == 1


@pytest.mark.asyncio
async def test_conflict_is_retried_then_succeeds(session_factory, make_user) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")
    attempts = 0

    async def work(session):
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise IntegrityError("INSERT INTO following", {}, Exception("UNIQUE constraint failed"))
        return await svc.follow(session, alice.id, bob.id)

    outcome = await run_in_transaction(
        work, session_factory=session_factory, backoff_seconds=0
    )

    assert outcome is FollowOutcome.FOLLOWED
    assert attempts == 2


@pytest.mark.asyncio
async def test_retries_exhausted_raise_transient_error(session_factory, make_user) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")
    attempts = 0

    async def work(session):
        nonlocal attempts
        attempts += 1
        await svc.follow(session, alice.id, bob.id)
        raise _locked()

    with pytest.raises(TransientStoreError) as exc_info:
        await run_in_transaction(
            work, session_factory=session_factory, max_attempts=3, backoff_seconds=0
        )

    assert exc_info.value.attempts == 3
    assert attempts == 3
    # Every attempt rolled back: nothing was written
    async with session_factory() as session:
        assert await profiles.get_counts(session, alice.id) == (0, 0)
        assert await profiles.get_counts(session, bob.id) == (0, 0)
        edges = await session.execute(sa.select(sa.func.count()).select_from(FollowingEdge))
        assert edges.scalar_one() == 0


@pytest.mark.asyncio
async def test_domain_error_rolls_back_without_retry(session_factory, make_user) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")
    attempts = 0

    async def work(session):
        nonlocal attempts
        attempts += 1
        await svc.follow(session, alice.id, bob.id)
        raise SelfReferenceError("follow")

    with pytest.raises(SelfReferenceError):
        await run_in_transaction(work, session_factory=session_factory)

    assert attempts == 1
    async with session_factory() as session:
        assert await profiles.get_counts(session, bob.id) == (0, 0)


@pytest.mark.asyncio
async def test_unit_commits_on_success(session_factory, make_user) -> None:
    alice = await make_user("alice")

    await run_in_transaction(
        lambda s: profiles.set_privacy(s, alice.id, True), session_factory=session_factory
    )

    async with session_factory() as session:
        result = await session.execute(sa.select(User.is_private).where(User.id == alice.id))
        assert result.scalar_one() is True


@pytest.mark.parametrize(
    ("orig", "unique"),
    [
        (_DriverError("duplicate key value violates unique constraint", "23505"), True),
        (Exception("UNIQUE constraint failed: notes.author_id"), True),
        (_DriverError("violates foreign key constraint", "23503"), False),
        (Exception("FOREIGN KEY constraint failed"), False),
        (Exception("NOT NULL constraint failed: notes.text"), False),
    ],
)
def test_unique_violation_detection(orig, unique) -> None:
    assert is_unique_violation(IntegrityError("INSERT INTO notes", {}, orig)) is unique


@pytest.mark.asyncio
async def test_foreign_key_failure_is_not_retried(session_factory) -> None:
    attempts = 0

    async def work(session):
        nonlocal attempts
        attempts += 1
        raise IntegrityError(
            "INSERT INTO notes", {}, _DriverError("violates foreign key constraint", "23503")
        )

    with pytest.raises(IntegrityError):
        await run_in_transaction(work, session_factory=session_factory, backoff_seconds=0)

    assert attempts == 1


# ── Races on notes and follow requests ────────────────────────────────────────

@pytest.mark.asyncio
async def test_duplicate_note_for_author_rejected_by_schema(db_session, make_user) -> None:
    alice = await make_user("alice")
    now = datetime.now(timezone.utc)
    for text in ("first", "second"):
        db_session.add(
            Note(
                id=uuid4(),
                author_id=alice.id,
                author_username="alice",
                author_display_name="Alice",
                text=text,
                created_at=now,
                expires_at=now + timedelta(hours=24),
            )
        )

    with pytest.raises(IntegrityError) as exc_info:
        await db_session.commit()
    assert is_unique_violation(exc_info.value)


@pytest.mark.asyncio
async def test_racing_publishes_leave_one_note(session_factory, make_user) -> None:
    alice = await make_user("alice")

    published = await asyncio.gather(
        *(
            run_in_transaction(
                lambda s, text=text: notes.publish(s, alice.id, text),
                session_factory=session_factory,
                max_attempts=5,
                backoff_seconds=0.01,
            )
            for text in ("left", "right")
        )
    )

    async with session_factory() as session:
        result = await session.execute(
            sa.select(Note.id, Note.text).where(Note.author_id == alice.id)
        )
        rows = result.all()
        assert len(rows) == 1
        survivor_id, survivor_text = rows[0]
        assert survivor_text in {"left", "right"}
        assert survivor_id in {note.id for note in published}
        # Audience rows of the replaced note went with it
        audience = await session.execute(sa.select(NoteAudience.note_id))
        assert audience.scalars().all() == [survivor_id]


@pytest.mark.asyncio
async def test_accept_racing_cancel_stays_consistent(session_factory, db_session, make_user) -> None:
    alice = await make_user("alice")
    carol = await make_user("carol", private=True)
    await svc.follow(db_session, alice.id, carol.id)
    await db_session.commit()

    accepted, cancelled = await asyncio.gather(
        run_in_transaction(
            lambda s: svc.accept_follow_request(s, carol.id, alice.id),
            session_factory=session_factory,
            max_attempts=5,
            backoff_seconds=0.01,
        ),
        run_in_transaction(
            lambda s: svc.unfollow(s, alice.id, carol.id),
            session_factory=session_factory,
            max_attempts=5,
            backoff_seconds=0.01,
        ),
        return_exceptions=True,
    )

    if isinstance(accepted, RequestNotFoundError):
        # The cancel claimed the request first
        assert cancelled is UnfollowOutcome.REQUEST_CANCELLED
    else:
        # The accept won, so the cancel found an edge and undid it
        assert accepted is None
        assert cancelled is UnfollowOutcome.UNFOLLOWED
    async with session_factory() as session:
        assert await _count(session, FollowRequest) == 0
        assert await _count(session, FollowingEdge) == 0
        assert await _count(session, FollowerEdge) == 0
        assert await profiles.get_counts(session, alice.id) == (0, 0)
        assert await profiles.get_counts(session, carol.id) == (0, 0)
