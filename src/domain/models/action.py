from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class WriteAction:
    """Contract call handed to the ledger client."""

    contract_address: str
    function_name: str
    args: Tuple[Any, ...]
    abi: List[Dict[str, Any]] = field(default_factory=list, compare=False, repr=False)
    sender: Optional[str] = None


@dataclass(frozen=True)
class SubmissionHandle:
    """Opaque identifier issued once the ledger accepts a write (tx hash)."""

    tx_hash: str

    def __str__(self) -> str:
        return self.tx_hash


@dataclass(frozen=True)
class Receipt:
    """Terminal receipt for a submitted transaction."""

    tx_hash: str
    success: bool
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
