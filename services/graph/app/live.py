"""
Live subscriptions — cancellable polling streams.

A Subscription owns its own fetch callable and cancellation token; there is
no process-wide listener registry.  Consumers iterate it with ``async for``
and receive a snapshot first on start and then only when the fetched value
differs from the last one delivered.

    sub = Subscription(fetch, poll_seconds=2.0)
    async with sub:
        async for snapshot in sub:
            ...

Once ``cancel()`` has been called no further snapshot is yielded, including
one whose fetch was already in flight.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription(Generic[T]):
    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        *,
        poll_seconds: float,
        next_delay: Callable[[T], float | None] | None = None,
    ) -> None:
        """
        fetch         reads the current value (opens its own session).
        poll_seconds  upper bound between two fetches.
        next_delay    optional; given the latest value, seconds until it is
                      known to change (e.g. next note expiry).  The wait is the
                      smaller of this and poll_seconds.
        """
        self._fetch = fetch
        self._poll_seconds = poll_seconds
        self._next_delay = next_delay
        self._cancelled = asyncio.Event()
        self._primed = False
        self._last: T | None = None
        self._delay = poll_seconds

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Stop the stream.  Safe to call more than once."""
        self._cancelled.set()

    async def __aenter__(self) -> Subscription[T]:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.cancel()

    def __aiter__(self) -> Subscription[T]:
        return self

    async def __anext__(self) -> T:
        while not self._cancelled.is_set():
            if self._primed:
                await self._wait(self._delay)
                if self._cancelled.is_set():
                    break
            value = await self._fetch()
            if self._cancelled.is_set():
                break
            changed = not self._primed or value != self._last
            self._primed = True
            self._last = value
            self._delay = self._compute_delay(value)
            if changed:
                return value
        raise StopAsyncIteration

    def _compute_delay(self, value: T) -> float:
        if self._next_delay is None:
            return self._poll_seconds
        hint = self._next_delay(value)
        if hint is None:
            return self._poll_seconds
        return max(0.0, min(self._poll_seconds, hint))

    async def _wait(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass


async def sse_events(
    subscription: Subscription[T],
    render: Callable[[T], str],
    *,
    event: str,
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
) -> AsyncIterator[str]:
    """Frame each snapshot as a Server-Sent Event; cancels the subscription on exit."""
    async with subscription:
        async for value in subscription:
            if is_disconnected is not None and await is_disconnected():
                logger.debug("SSE client gone, closing %s stream", event)
                break
            yield f"event: {event}\ndata: {render(value)}\n\n"
