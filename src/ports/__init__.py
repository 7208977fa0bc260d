from .ledger import LedgerClientPort
from .event_feed import EventFeedPort
from .timer import TimerPort, TimerHandle

__all__ = [
    "LedgerClientPort",
    "EventFeedPort",
    "TimerPort",
    "TimerHandle",
]
