"""Timer abstraction used for debouncing, snapshots and playback.

Everything time-driven in the package goes through a :class:`Scheduler`:
``now_ms()`` reads the clock, ``call_later()`` registers a one-shot callback
and returns a handle, ``cancel()`` revokes it. Nothing blocks; a "wait" is a
registered callback plus a return to the event loop.

Two bindings are provided:

- :class:`AsyncioScheduler` runs on an asyncio event loop (real time).
- :class:`VirtualScheduler` keeps a simulated clock that only moves when
  :meth:`VirtualScheduler.advance` is called. Tests and offline file
  analysis use it to get deterministic timing.
"""

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Tuple


class Scheduler(ABC):
    """Clock plus cancelable one-shot timers (milliseconds)."""

    @abstractmethod
    def now_ms(self) -> float:
        """Current time in milliseconds."""

    @abstractmethod
    def call_later(self, delay_ms: float, callback: Callable[[], Any]) -> Any:
        """Run ``callback`` once after ``delay_ms``. Returns a cancelable handle."""

    def cancel(self, handle: Any) -> None:
        """Cancel a pending timer. Cancelling twice or after firing is harmless."""
        if handle is not None:
            handle.cancel()


class AsyncioScheduler(Scheduler):
    """Scheduler bound to an asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now_ms(self) -> float:
        return self.loop.time() * 1000.0

    def call_later(self, delay_ms: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(delay_ms, 0.0) / 1000.0, callback)


class VirtualTimer:
    """Handle returned by :meth:`VirtualScheduler.call_later`."""

    __slots__ = ("when", "callback", "_cancelled")

    def __init__(self, when: float, callback: Callable[[], Any]):
        self.when = when
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class VirtualScheduler(Scheduler):
    """Deterministic scheduler driven by an explicit simulated clock.

    Timers due at the same instant fire in registration order. Callbacks may
    register further timers; those fire within the same :meth:`advance` call
    if they fall due before its target time.

    Example:
        >>> sched = VirtualScheduler()
        >>> fired = []
        >>> _ = sched.call_later(100, lambda: fired.append(sched.now_ms()))
        >>> sched.advance(250)
        >>> fired
        [100.0]
    """

    def __init__(self, start_ms: float = 0.0):
        self._now = float(start_ms)
        self._queue: List[Tuple[float, int, VirtualTimer]] = []
        self._counter = itertools.count()

    def now_ms(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callable[[], Any]) -> VirtualTimer:
        timer = VirtualTimer(self._now + max(float(delay_ms), 0.0), callback)
        heapq.heappush(self._queue, (timer.when, next(self._counter), timer))
        return timer

    @property
    def pending(self) -> int:
        """Number of timers that are still scheduled and not cancelled."""
        return sum(1 for _, _, t in self._queue if not t.cancelled())

    def advance(self, delta_ms: float) -> None:
        """Move the clock forward by ``delta_ms``, firing due timers in order."""
        self.advance_to(self._now + delta_ms)

    def advance_to(self, target_ms: float) -> None:
        """Move the clock to ``target_ms``, firing due timers in order."""
        while self._queue and self._queue[0][0] <= target_ms:
            when, _, timer = heapq.heappop(self._queue)
            if timer.cancelled():
                continue
            self._now = max(self._now, when)
            timer.cancel()  # mark as consumed
            timer.callback()
        self._now = max(self._now, float(target_ms))

    def run_until_idle(self, limit_ms: float = 3_600_000.0) -> None:
        """Fire every pending timer (bounded by ``limit_ms`` of simulated time)."""
        horizon = self._now + limit_ms
        while self._queue:
            when = self._queue[0][0]
            if when > horizon:
                break
            self.advance_to(when)
