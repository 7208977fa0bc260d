from enum import Enum
from typing import Optional


class FailureReason(Enum):
    """Specific failure reasons for error tracking."""

    INSUFFICIENT_FUNDS = "insufficient_funds"
    USER_REJECTED = "user_rejected"
    TIMEOUT = "timeout"
    REVERTED = "reverted"
    NONCE = "nonce"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


def classify_failure(message: str) -> FailureReason:
    """Classify a ledger error message into a failure reason."""
    lowered = (message or "").lower()

    if "insufficient" in lowered or "exceeds balance" in lowered:
        return FailureReason.INSUFFICIENT_FUNDS
    if "user rejected" in lowered or "denied" in lowered:
        return FailureReason.USER_REJECTED
    if "timeout" in lowered or "timed out" in lowered or "not in the chain after" in lowered:
        return FailureReason.TIMEOUT
    if "revert" in lowered or "execution reverted" in lowered:
        return FailureReason.REVERTED
    if "nonce" in lowered:
        return FailureReason.NONCE
    if "connection" in lowered or "network" in lowered:
        return FailureReason.NETWORK_ERROR

    return FailureReason.UNKNOWN


class ReconcilerError(Exception):
    """Base class for errors surfaced through the transaction status."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    @property
    def failure_reason(self) -> FailureReason:
        return classify_failure(self.reason)


class PreconditionError(ReconcilerError):
    """Raised by start() when no actor identity is available."""


class SubmissionError(ReconcilerError):
    """Ledger rejected the write before issuing a submission handle."""


class DirectChannelError(ReconcilerError):
    """Handle was issued but the receipt channel reported failure."""

    def __init__(self, reason: str, handle: Optional[str] = None):
        super().__init__(reason)
        self.handle = handle


class InvalidTransition(Exception):
    """Raised when an invalid attempt state transition is attempted."""
