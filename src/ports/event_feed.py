from abc import ABC, abstractmethod
from typing import AsyncIterator

from ..domain.events.contract import ContractEvent
from ..domain.operations import FeedFilter


class EventFeedPort(ABC):
    """Long-lived contract event subscription."""

    @abstractmethod
    async def subscribe(self, feed_filter: FeedFilter) -> None:
        """Replace the current subscription with feed_filter."""
        ...

    @abstractmethod
    async def stream(self) -> AsyncIterator[ContractEvent]:
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        ...
