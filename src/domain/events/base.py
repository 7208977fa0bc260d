from dataclasses import dataclass
from datetime import datetime


@dataclass
class Event:
    """Envelope shared by everything delivered on an event feed."""

    id: str
    timestamp: datetime
    source: str  # feed that produced it ("web3", "dry-run", ...)
