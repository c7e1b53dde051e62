"""Clock abstraction for arming countdown timers.

``AsyncioClock`` uses the running event loop. ``ManualClock`` is simulated
time: nothing fires until ``advance`` is called, which makes countdowns
testable without sleeping.
"""

import asyncio
import heapq
import itertools
import time
from typing import Callable, List, Optional, Protocol, Tuple, runtime_checkable


@runtime_checkable
class TimerHandle(Protocol):
    """A pending callback that can be disarmed."""

    def cancel(self) -> None:
        ...


@runtime_checkable
class Clock(Protocol):
    """Source of time and delayed callbacks."""

    def now(self) -> float:
        """Current time in seconds."""
        ...

    def after(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run callback after delay seconds; returns a cancellable handle."""
        ...


class AsyncioClock:
    """Wall-clock time with callbacks on the running asyncio loop."""

    def now(self) -> float:
        return time.time()

    def after(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay), callback)


class _ManualTimer:
    def __init__(self, deadline: float, callback: Callable[[], None]):
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """Simulated clock; time only moves when ``advance`` is called."""

    def __init__(self, start: float = 0.0):
        self._now = start
        self._counter = itertools.count()
        self._queue: List[Tuple[float, int, _ManualTimer]] = []

    def now(self) -> float:
        return self._now

    def after(self, delay: float, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(self._now + max(0.0, delay), callback)
        heapq.heappush(self._queue, (timer.deadline, next(self._counter), timer))
        return timer

    @property
    def pending(self) -> int:
        """Number of armed, uncancelled timers."""
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def next_deadline(self) -> Optional[float]:
        for deadline, _, timer in sorted(self._queue):
            if not timer.cancelled:
                return deadline
        return None

    def advance(self, seconds: float) -> int:
        """Move time forward, firing due callbacks in deadline order.

        Returns:
            Number of callbacks fired
        """
        target = self._now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            deadline, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = deadline
            timer.callback()
            fired += 1
        self._now = target
        return fired
