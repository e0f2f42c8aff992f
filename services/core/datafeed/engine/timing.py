"""Shutdown-aware sleeping shared by the retry executor and the heartbeat."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable


SleepFunc = Callable[[float], Awaitable[None]]


class ShutdownRequested(Exception):
    """Raised when the shutdown event fires while waiting."""
    pass


async def wait_or_shutdown(
    delay: float,
    shutdown: asyncio.Event | None = None,
    sleep: SleepFunc = asyncio.sleep,
) -> None:
    """
    Sleep for `delay` seconds unless `shutdown` is set first.

    Args:
        delay: Seconds to wait
        shutdown: Optional event; when set before or during the wait,
            ShutdownRequested is raised immediately
        sleep: Sleep coroutine (injectable for tests)
    """
    if shutdown is None:
        await sleep(delay)
        return

    if shutdown.is_set():
        raise ShutdownRequested()

    sleeper = asyncio.ensure_future(sleep(delay))
    waiter = asyncio.ensure_future(shutdown.wait())
    try:
        done, _ = await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        pending = [t for t in (sleeper, waiter) if not t.done()]
        for t in pending:
            t.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    if waiter in done:
        raise ShutdownRequested()
