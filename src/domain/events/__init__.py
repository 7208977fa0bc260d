from .base import Event
from .contract import ContractEvent

__all__ = [
    "Event",
    "ContractEvent",
]
