from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

from frameflow.services.gemini import AnimationStatus, GatewayError


class PollTimeout(GatewayError):
    pass


async def poll_until_done(
    poll: Callable[[Any], Awaitable[AnimationStatus]],
    handle: Any,
    *,
    interval_sec: float,
    timeout_sec: Optional[float],
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> AnimationStatus:
    """
    Wait `interval_sec` between calls to `poll(handle)` until it reports done.
    `timeout_sec=None` waits forever; otherwise PollTimeout once the deadline passes.
    Errors raised by `poll` propagate unchanged.
    """
    deadline = clock() + timeout_sec if timeout_sec is not None else None
    attempts = 0
    while True:
        await sleep(interval_sec)
        attempts += 1
        status = await poll(handle)
        if status.done:
            return status
        handle = status.handle if status.handle is not None else handle
        if deadline is not None and clock() >= deadline:
            raise PollTimeout(f"Operation not done after {attempts} polls ({timeout_sec:.0f}s).")
