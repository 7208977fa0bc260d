from dataclasses import dataclass
from typing import Any, Dict, Optional

from .action import SubmissionHandle
from .attempt import AttemptState
from ..errors import ReconcilerError


@dataclass(frozen=True)
class TransactionStatus:
    """Read-only status projection suitable for reactive binding."""

    state: AttemptState = AttemptState.IDLE
    epoch: int = 0
    is_confirming: bool = False
    error: Optional[ReconcilerError] = None
    submission_handle: Optional[SubmissionHandle] = None
    matched_event: Optional["ContractEvent"] = None

    @property
    def is_pending(self) -> bool:
        return self.state == AttemptState.PENDING

    @property
    def is_confirmed(self) -> bool:
        return self.state == AttemptState.CONFIRMED

    @property
    def is_failed(self) -> bool:
        return self.state == AttemptState.FAILED

    @property
    def is_terminal(self) -> bool:
        return self.state in (AttemptState.CONFIRMED, AttemptState.FAILED)

    @property
    def reason(self) -> Optional[str]:
        return self.error.reason if self.error is not None else None

    def to_dict(self) -> Dict[str, Any]:
        matched = None
        if self.matched_event is not None:
            matched = {
                "name": self.matched_event.name,
                "args": dict(self.matched_event.args),
                "tx_hash": self.matched_event.tx_hash,
                "block_number": self.matched_event.block_number,
            }
        return {
            "state": self.state.value,
            "epoch": self.epoch,
            "is_pending": self.is_pending,
            "is_confirming": self.is_confirming,
            "is_confirmed": self.is_confirmed,
            "error": self.reason,
            "failure_reason": self.error.failure_reason.value if self.error is not None else None,
            "submission_handle": str(self.submission_handle) if self.submission_handle else None,
            "matched_event": matched,
        }
