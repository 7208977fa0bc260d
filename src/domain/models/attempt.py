from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from .action import SubmissionHandle
from ..errors import ReconcilerError


class AttemptState(Enum):
    IDLE = "idle"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class DirectOutcome(Enum):
    UNKNOWN = "unknown"
    CONFIRMED = "confirmed"
    ERRORED = "errored"


class FeedOutcome(Enum):
    UNKNOWN = "unknown"
    MATCHED = "matched"


@dataclass
class OperationAttempt:
    """One in-flight user-initiated write."""

    epoch: int
    actor: str
    started_at: Optional[datetime] = None
    submission_handle: Optional[SubmissionHandle] = None
    direct_outcome: DirectOutcome = DirectOutcome.UNKNOWN
    direct_error: Optional[ReconcilerError] = None
    feed_outcome: FeedOutcome = FeedOutcome.UNKNOWN
    matched_event: Optional["ContractEvent"] = None
    error_revealed: bool = False

    @property
    def is_active(self) -> bool:
        return self.started_at is not None

    def record_feed_match(self, event: "ContractEvent") -> bool:
        """Mark the feed as matched. Returns False if it already was (first match wins)."""
        if self.feed_outcome == FeedOutcome.MATCHED:
            return False
        self.feed_outcome = FeedOutcome.MATCHED
        self.matched_event = event
        self.error_revealed = False
        return True

    def record_direct_error(self, error: ReconcilerError) -> None:
        if self.direct_outcome != DirectOutcome.UNKNOWN:
            return
        self.direct_outcome = DirectOutcome.ERRORED
        self.direct_error = error

    def record_direct_confirmed(self) -> None:
        if self.direct_outcome != DirectOutcome.UNKNOWN:
            return
        self.direct_outcome = DirectOutcome.CONFIRMED
