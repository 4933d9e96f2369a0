"""Cancelable timers and a debouncer built on them.

``AsyncioScheduler`` is used inside an event loop and runs callbacks at once
when there is none. ``ManualScheduler`` advances a virtual clock so tests and
scripted sessions can replay bursts of viewport events deterministically.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol
import asyncio
import heapq
import itertools
import logging

__all__ = ["Scheduler", "AsyncioScheduler", "ManualScheduler", "Debouncer"]

logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    def schedule(self, delay: float, callback: Callable[[], Any]) -> Any: ...

    def cancel(self, handle: Any) -> None: ...


class AsyncioScheduler:
    """Timers on the bound loop, or on whichever loop is running.

    With no loop at all (a plain synchronous session) there is no clock to
    wait on, so callbacks run immediately and ``schedule`` returns None.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def schedule(self, delay: float, callback: Callable[[], Any]) -> Optional[asyncio.TimerHandle]:
        loop = self.loop
        if loop is None:
            logger.debug("scheduler.no_loop delay=%.3f ran_immediately=True", delay)
            callback()
            return None
        return loop.call_later(delay, callback)

    def cancel(self, handle: Optional[asyncio.TimerHandle]) -> None:
        if handle is not None:
            handle.cancel()


@dataclass(order=True)
class _Timer:
    due: float
    seq: int
    callback: Callable[[], Any] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)


class ManualScheduler:
    """Virtual-time scheduler; nothing runs until :meth:`advance` is called."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self._queue: List[_Timer] = []
        self._seq = itertools.count()

    def schedule(self, delay: float, callback: Callable[[], Any]) -> _Timer:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        timer = _Timer(self.now + delay, next(self._seq), callback)
        heapq.heappush(self._queue, timer)
        return timer

    def cancel(self, handle: _Timer) -> None:
        handle.cancelled = True

    @property
    def pending(self) -> int:
        return sum(1 for t in self._queue if not t.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due timers in order. Returns how many ran."""

        target = self.now + seconds
        fired = 0
        while self._queue and self._queue[0].due <= target:
            timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self.now = timer.due
            timer.callback()
            fired += 1
        self.now = target
        return fired


class Debouncer:
    """Run only the last callback of a burst, ``delay`` seconds after it."""

    def __init__(self, scheduler: Scheduler, delay: float):
        self.scheduler = scheduler
        self.delay = delay
        self._handle: Any = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self, callback: Callable[[], Any]) -> None:
        self.cancel()

        def fire():
            self._handle = None
            callback()

        self._handle = self.scheduler.schedule(self.delay, fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self.scheduler.cancel(self._handle)
            self._handle = None
            logger.debug("scheduler.debounce_cancelled")
