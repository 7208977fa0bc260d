import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .base import Event


@dataclass
class ContractEvent(Event):
    """Decoded contract log delivered by the event feed."""

    contract_address: str
    name: str
    args: Dict[str, Any] = field(default_factory=dict)
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    log_index: Optional[int] = None

    @classmethod
    def create(
        cls,
        contract_address: str,
        name: str,
        args: Dict[str, Any],
        source: str = "feed",
        tx_hash: Optional[str] = None,
        block_number: Optional[int] = None,
        log_index: Optional[int] = None,
    ) -> "ContractEvent":
        return cls(
            id=str(uuid.uuid4()),
            timestamp=datetime.utcnow(),
            source=source,
            contract_address=contract_address,
            name=name,
            args=dict(args),
            tx_hash=tx_hash,
            block_number=block_number,
            log_index=log_index,
        )
