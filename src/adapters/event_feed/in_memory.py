import asyncio
from typing import AsyncIterator, List, Optional

from ...domain.events.contract import ContractEvent
from ...domain.models.primitives import same_address
from ...domain.operations import FeedFilter, args_equal
from ...ports.event_feed import EventFeedPort


class InMemoryEventFeed(EventFeedPort):
    """Queue-backed feed; emit() applies the active subscription filter like a node would."""

    def __init__(self):
        self.filters: List[FeedFilter] = []
        self.dropped: List[ContractEvent] = []
        self._queue: Optional[asyncio.Queue] = None
        self._running = False

    @property
    def current_filter(self) -> Optional[FeedFilter]:
        return self.filters[-1] if self.filters else None

    async def subscribe(self, feed_filter: FeedFilter) -> None:
        self.filters.append(feed_filter)
        self._running = True

    async def stream(self) -> AsyncIterator[ContractEvent]:
        queue = self._get_queue()
        while self._running:
            event = await queue.get()
            if event is None:
                break
            yield event

    async def disconnect(self) -> None:
        self._running = False
        self._get_queue().put_nowait(None)

    def emit(self, event: ContractEvent) -> bool:
        if not self._passes(event):
            self.dropped.append(event)
            return False
        self._get_queue().put_nowait(event)
        return True

    def _passes(self, event: ContractEvent) -> bool:
        feed_filter = self.current_filter
        if feed_filter is None:
            return False
        if event.name != feed_filter.event_name:
            return False
        if not same_address(event.contract_address, feed_filter.contract_address):
            return False
        for key, value in feed_filter.argument_filters:
            if not args_equal(event.args.get(key), value):
                return False
        return True

    def _get_queue(self) -> asyncio.Queue:
        if self._queue is None:
            self._queue = asyncio.Queue()
        return self._queue
