from abc import ABC, abstractmethod
from typing import Callable


class TimerHandle(ABC):
    @abstractmethod
    def cancel(self) -> None:
        ...

    @abstractmethod
    def cancelled(self) -> bool:
        ...


class TimerPort(ABC):
    """Schedules cancellable delayed callbacks on the reconciler's thread."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...

    @abstractmethod
    def now(self) -> float:
        ...
