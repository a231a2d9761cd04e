import pytest
from datetime import datetime, timedelta, timezone

import sqlalchemy as sa

from app.config import Settings
from app.notes import service as notes
from app.notes.models import Note
from app.profile import service as profiles
from app.profile.models import User
from app.worker import (
    PURGE_MINUTES,
    WorkerSettings,
    purge_expired_notes_job,
    reconcile_counters_job,
    shutdown,
    startup,
)


# ── Scheduling ─────────────────────────────────────────────────────────────────

def test_cron_jobs_registered() -> None:
    jobs = {job.name: job for job in WorkerSettings.cron_jobs}
    assert set(jobs) == {"cron:reconcile_counters_job", "cron:purge_expired_notes_job"}
    assert jobs["cron:reconcile_counters_job"].minute == Settings().reconcile_cron_minute
    assert jobs["cron:purge_expired_notes_job"].minute == PURGE_MINUTES == {0, 15, 30, 45}


def test_worker_hooks_and_queue() -> None:
    assert WorkerSettings.on_startup is startup
    assert WorkerSettings.on_shutdown is shutdown
    assert WorkerSettings.queue_name == "graph:tasks"


# ── Jobs ───────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_reconcile_job_walks_all_batches(session_factory, db_session, make_user) -> None:
    users = [await make_user(f"user{i}") for i in range(3)]
    await db_session.execute(sa.update(User).values(follower_count=9))
    await db_session.commit()

    corrected = await reconcile_counters_job({"settings": Settings(reconcile_batch_size=2)})

    assert corrected == 3
    async with session_factory() as session:
        for user in users:
            assert await profiles.get_counts(session, user.id) == (0, 0)


@pytest.mark.asyncio
async def test_purge_job_removes_expired_notes(session_factory, db_session, make_user) -> None:
    alice = await make_user("alice")
    await notes.publish(
        db_session, alice.id, "ancient", now=datetime.now(timezone.utc) - timedelta(days=3)
    )
    await db_session.commit()

    removed = await purge_expired_notes_job({"settings": Settings()})

    assert removed == 1
    async with session_factory() as session:
        count = await session.execute(sa.select(sa.func.count()).select_from(Note))
        assert count.scalar_one() == 0
