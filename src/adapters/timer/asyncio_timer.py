import asyncio
import time
from typing import Callable, Optional

from ...ports.timer import TimerHandle, TimerPort


class AsyncioTimerHandle(TimerHandle):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioTimer(TimerPort):
    """Timer backed by the running event loop's call_later."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return AsyncioTimerHandle(loop.call_later(delay, callback))

    def now(self) -> float:
        if self._loop is not None:
            return self._loop.time()
        return time.monotonic()
