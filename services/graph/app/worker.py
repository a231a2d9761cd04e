"""
ARQ worker — periodic graph maintenance.

Runs as a SEPARATE process from the FastAPI API server.

Start:  arq app.worker.WorkerSettings

Jobs:
  reconcile_counters_job    hourly      recompute follower/following counters from edges
  purge_expired_notes_job   every 15m   delete notes past their expiry

Both are idempotent, so a job that runs twice (worker restart, retry) is harmless.
"""
from __future__ import annotations

import logging
from typing import Any

from arq import cron
from arq.connections import RedisSettings

from app.config import Settings

logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s: %(message)s")
logger = logging.getLogger("graph.worker")

PURGE_MINUTES = {0, 15, 30, 45}


# ── Startup / shutdown hooks ────────────────────────────────────────────────
# Each worker process gets its own connection pool, independent from the API.


async def startup(ctx: dict[str, Any]) -> None:
    settings = Settings()
    ctx["settings"] = settings

    from app.database import init_db
    init_db(settings.graph_database_url)

    logger.info("Worker started, DB pool initialized")


async def shutdown(ctx: dict[str, Any]) -> None:
    from app.database import dispose_db
    await dispose_db()
    logger.info("Worker shutting down")


# ── Jobs ────────────────────────────────────────────────────────────────────

async def reconcile_counters_job(ctx: dict[str, Any]) -> int:
    """Correct drifted counters in batches until a pass comes back short."""
    from app.database import run_in_transaction
    from app.social_graph.reconcile import reconcile_counters

    settings: Settings = ctx["settings"]
    total = 0
    while True:
        corrected = await run_in_transaction(
            lambda s: reconcile_counters(s, limit=settings.reconcile_batch_size),
            max_attempts=settings.transaction_max_attempts,
            backoff_seconds=settings.transaction_backoff_seconds,
        )
        total += len(corrected)
        if len(corrected) < settings.reconcile_batch_size:
            break
    logger.info("Counter reconciliation finished: %d row(s) corrected", total)
    return total


async def purge_expired_notes_job(ctx: dict[str, Any]) -> int:
    from app.database import run_in_transaction
    from app.notes.service import purge_expired

    settings: Settings = ctx["settings"]
    return await run_in_transaction(
        purge_expired,
        max_attempts=settings.transaction_max_attempts,
        backoff_seconds=settings.transaction_backoff_seconds,
    )


# ── ARQ worker configuration ──────────────────────────────────────────────

class WorkerSettings:
    """ARQ reads this class to configure the worker process."""
    cron_jobs = [
        cron(reconcile_counters_job, minute=Settings().reconcile_cron_minute),
        cron(purge_expired_notes_job, minute=PURGE_MINUTES),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(Settings().redis_url)
    # Both jobs are cheap and must not overlap themselves
    max_jobs = 2
    job_timeout = 600
    keep_result = 3600
    queue_name = "graph:tasks"
