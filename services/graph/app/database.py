"""
Graph service — engine/session lifecycle and the transaction runner.

Every graph mutation goes through ``run_in_transaction``: one session, one
``BEGIN … COMMIT``, the whole write-set (edges on both sides, both counter
deltas, request deletion) applied together or not at all.  Conflicts with a
concurrent writer on the same pair surface as IntegrityError (lost race on a
unique edge key) or OperationalError / serialization failures (lock
contention); the unit is rolled back and re-run from its reads.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from shared.database.postgres import get_async_engine, get_async_session_factory, get_session

from app.social_graph.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected
_RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})
_UNIQUE_VIOLATION = "23505"

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_db(database_url: str) -> None:
    global _engine, _session_factory
    _engine = get_async_engine(database_url)
    _session_factory = get_async_session_factory(_engine, expire_on_commit=False)


async def dispose_db() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("Database not initialized")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        raise RuntimeError("Database not initialized")
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session for read endpoints; commits at request end."""
    async for session in get_session(get_session_factory()):
        yield session


def _sqlstate(exc: DBAPIError) -> str | None:
    return getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)


def is_unique_violation(exc: IntegrityError) -> bool:
    """A lost race on a unique key, as opposed to a foreign key or NOT NULL failure."""
    if _sqlstate(exc) == _UNIQUE_VIOLATION:
        return True
    # SQLite reports primary key and unique clashes alike
    return "UNIQUE constraint failed" in str(exc.orig)


def _is_retryable(exc: DBAPIError) -> bool:
    if isinstance(exc, IntegrityError):
        return is_unique_violation(exc)
    if isinstance(exc, OperationalError) or exc.connection_invalidated:
        return True
    return _sqlstate(exc) in _RETRYABLE_SQLSTATES


async def run_in_transaction(
    work: Callable[[AsyncSession], Awaitable[T]],
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    max_attempts: int = 3,
    backoff_seconds: float = 0.05,
) -> T:
    """Run ``work`` as one atomic unit, retrying on write conflicts.

    ``work`` receives a session with an open transaction and must not commit.
    Domain errors raised by ``work`` roll the unit back and propagate
    unchanged.  Store conflicts are retried with exponential backoff; once
    ``max_attempts`` is spent, TransientStoreError is raised and nothing has
    been written.
    """
    factory = session_factory or get_session_factory()
    attempt = 0
    while True:
        attempt += 1
        try:
            async with factory() as session:
                async with session.begin():
                    return await work(session)
        except DBAPIError as exc:
            if not _is_retryable(exc):
                raise
            if attempt >= max_attempts:
                logger.error(
                    "Transaction gave up after %d attempt(s): %s", attempt, exc.__class__.__name__
                )
                raise TransientStoreError(attempts=attempt) from exc
            delay = backoff_seconds * (2 ** (attempt - 1))
            logger.warning(
                "Transaction conflict (%s) on attempt %d/%d, retrying in %.3fs",
                exc.__class__.__name__,
                attempt,
                max_attempts,
                delay,
            )
            await asyncio.sleep(delay)
