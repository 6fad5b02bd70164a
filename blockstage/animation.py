from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Protocol


class Clock(Protocol):
    def now(self) -> float: ...

    async def sleep(self, seconds: float) -> None: ...


class MonotonicClock:
    """Wall-clock timing on the running event loop."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


def ease_out_cubic(progress: float) -> float:
    return 1 - (1 - progress) ** 3


def linear(progress: float) -> float:
    return progress


def lerp(start: float, end: float, t: float) -> float:
    return start + (end - start) * t


async def animate(
    *,
    clock: Clock,
    duration: float,
    frame_interval: float,
    on_frame: Callable[[float], None],
    easing: Callable[[float], float] = linear,
    should_stop: Callable[[], bool] = lambda: False,
) -> None:
    """Drive `on_frame(eased_progress)` from 0 to 1 over `duration` seconds.

    Yields to the loop once per frame. The last frame always lands exactly on
    1.0 unless `should_stop` turns true, in which case no further frames run.
    """

    if duration <= 0:
        if not should_stop():
            on_frame(easing(1.0))
        return

    start = clock.now()
    progress = 0.0
    while progress < 1.0:
        await clock.sleep(frame_interval)
        if should_stop():
            return
        progress = min((clock.now() - start) / duration, 1.0)
        on_frame(easing(progress))
