import heapq
import itertools
from typing import Callable, List, Tuple

from ...ports.timer import TimerHandle, TimerPort


class ManualTimerHandle(TimerHandle):
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.fired = False
        self._cancelled = False

    def cancel(self) -> None:
        if not self.fired:
            self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class ManualTimer(TimerPort):
    """Virtual clock for deterministic tests and dry runs.

    Time only moves when advance() is called; due callbacks fire in order of
    their deadline, each seeing now() equal to its own deadline.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._seq = itertools.count()
        self._heap: List[Tuple[float, int, ManualTimerHandle]] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = ManualTimerHandle(self._now + max(0.0, delay), callback)
        heapq.heappush(self._heap, (handle.due, next(self._seq), handle))
        return handle

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due callbacks. Returns how many fired."""
        target = self._now + seconds
        fired = 0
        while self._heap and self._heap[0][0] <= target:
            due, _, handle = heapq.heappop(self._heap)
            self._now = due
            if handle.cancelled():
                continue
            handle.fired = True
            handle.callback()
            fired += 1
        self._now = target
        return fired

    def pending(self) -> int:
        return sum(1 for _, _, h in self._heap if not h.cancelled())
