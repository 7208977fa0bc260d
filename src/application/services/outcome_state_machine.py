from datetime import datetime
from functools import partial
from typing import Callable, Dict, List, Optional, Set

from loguru import logger

from ...domain.errors import DirectChannelError, InvalidTransition, ReconcilerError, SubmissionError
from ...domain.events.contract import ContractEvent
from ...domain.models.action import Receipt, SubmissionHandle
from ...domain.models.attempt import AttemptState, DirectOutcome, OperationAttempt
from ...domain.models.status import TransactionStatus
from ...domain.operations import PreparedOperation
from ...ports.timer import TimerHandle, TimerPort

StatusListener = Callable[[TransactionStatus], None]


class OutcomeStateMachine:
    """Merges the receipt channel and the event feed into one attempt status.

    All inputs are tagged with the epoch of the attempt they belong to; inputs
    from a superseded or reset attempt are dropped. A feed match wins over any
    direct error until the grace timer fires. Once failed, the attempt stays
    failed.
    """

    def __init__(self, timer: TimerPort):
        self.timer = timer
        self._epoch = 0
        self._state = AttemptState.IDLE
        self._attempt: Optional[OperationAttempt] = None
        self._operation: Optional[PreparedOperation] = None
        self._grace_timer: Optional[TimerHandle] = None
        self._grace_started: Optional[float] = None
        self._retired_handles: Set[str] = set()
        self._listeners: List[StatusListener] = []
        self._status = TransactionStatus()
        self._transitions: Dict[AttemptState, Set[AttemptState]] = {
            AttemptState.IDLE: {AttemptState.PENDING},
            AttemptState.PENDING: {AttemptState.CONFIRMED, AttemptState.FAILED},
        }

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def state(self) -> AttemptState:
        return self._state

    @property
    def attempt(self) -> Optional[OperationAttempt]:
        return self._attempt

    @property
    def operation(self) -> Optional[PreparedOperation]:
        return self._operation

    @property
    def status(self) -> TransactionStatus:
        return self._status

    @property
    def grace_timer(self) -> Optional[TimerHandle]:
        return self._grace_timer

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StatusListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def can_transition(self, to_state: AttemptState) -> bool:
        return to_state in self._transitions.get(self._state, set())

    def is_current(self, epoch: int) -> bool:
        return self._attempt is not None and epoch == self._epoch

    # ------------------------------------------------------------------
    # Attempt lifecycle
    # ------------------------------------------------------------------

    def begin(self, operation: PreparedOperation) -> int:
        """Supersede any previous attempt and start a new one. Returns its epoch."""
        self._cancel_grace_timer()
        self._retire_attempt()
        self._epoch += 1
        self._attempt = OperationAttempt(
            epoch=self._epoch,
            actor=operation.actor,
            started_at=datetime.utcnow(),
        )
        self._operation = operation
        self._state = AttemptState.IDLE
        self._transition(AttemptState.PENDING)
        logger.info(
            f"RECONCILE_START | epoch={self._epoch} | op={operation.name} | actor={operation.actor} "
            f"| grace={operation.grace_seconds}s"
        )
        self._publish()
        return self._epoch

    def reset(self) -> None:
        """Back to idle. Idempotent; late inputs of the dropped attempt are ignored."""
        self._cancel_grace_timer()
        self._retire_attempt()
        if self._attempt is not None:
            logger.info(f"RECONCILE_RESET | epoch={self._epoch} | state={self._state.value}")
        self._attempt = None
        self._operation = None
        self._state = AttemptState.IDLE
        self._publish()

    # ------------------------------------------------------------------
    # Direct channel
    # ------------------------------------------------------------------

    def submission_accepted(self, epoch: int, handle: SubmissionHandle) -> None:
        if not self._accepts(epoch, "SUBMIT_ACCEPTED"):
            return
        self._attempt.submission_handle = handle
        logger.info(f"LEDGER_SUBMIT | epoch={epoch} | tx={handle.tx_hash}")
        self._publish()

    def submission_rejected(self, epoch: int, error: SubmissionError) -> None:
        """No handle was issued, so nothing can confirm indirectly: fail now."""
        if not self._accepts(epoch, "SUBMIT_REJECTED"):
            return
        if self._state != AttemptState.PENDING:
            return
        self._attempt.record_direct_error(error)
        self._fail(f"submission rejected: {error.reason}")

    def direct_confirmed(self, epoch: int, receipt: Optional[Receipt] = None) -> None:
        if not self._accepts(epoch, "RECEIPT_CONFIRMED"):
            return
        self._attempt.record_direct_confirmed()
        if self._state != AttemptState.PENDING:
            return
        block = receipt.block_number if receipt is not None else None
        self._confirm(f"receipt block={block}")

    def direct_errored(self, epoch: int, error: DirectChannelError) -> None:
        """Hold the error back for the grace period; the feed may still confirm."""
        if not self._accepts(epoch, "RECEIPT_ERROR"):
            return
        self._attempt.record_direct_error(error)
        if self._state != AttemptState.PENDING:
            return
        grace = self._operation.grace_seconds
        logger.warning(f"RECEIPT_ERROR | epoch={epoch} | reason={error.reason} | grace={grace}s")
        self._cancel_grace_timer()
        self._grace_started = self.timer.now()
        self._grace_timer = self.timer.call_later(grace, partial(self._on_grace_expired, epoch))
        self._publish()

    # ------------------------------------------------------------------
    # Feed channel
    # ------------------------------------------------------------------

    def feed_event(self, event: ContractEvent) -> bool:
        """Returns True if the event matched the active attempt."""
        if self._attempt is None or not self._attempt.is_active:
            return False
        if not self._operation.matches(event):
            return False
        if self._from_other_submission(event):
            logger.info(f"FEED_MATCH | ignored, other tx | epoch={self._epoch} | tx={event.tx_hash}")
            return False
        if self._state == AttemptState.FAILED:
            logger.info(f"FEED_MATCH | ignored after failure | epoch={self._epoch} | tx={event.tx_hash}")
            return False

        first = self._attempt.record_feed_match(event)
        if self._state == AttemptState.CONFIRMED:
            if first:
                self._publish()
            return True

        self._cancel_grace_timer()
        self._confirm(f"feed {event.name} tx={event.tx_hash}")
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_grace_expired(self, epoch: int) -> None:
        if epoch != self._epoch or self._attempt is None:
            return
        self._grace_timer = None
        if self._state != AttemptState.PENDING:
            return
        waited = self.timer.now() - self._grace_started if self._grace_started is not None else 0.0
        logger.warning(f"GRACE_EXPIRED | epoch={epoch} | no feed match after {waited:.1f}s")
        self._fail(self._attempt.direct_error.reason if self._attempt.direct_error else "unknown")

    def _from_other_submission(self, event: ContractEvent) -> bool:
        """Event carries the hash of a superseded attempt, or of a tx other than ours."""
        if not event.tx_hash:
            return False
        tx_hash = event.tx_hash.lower()
        if tx_hash in self._retired_handles:
            return True
        handle = self._attempt.submission_handle
        return handle is not None and handle.tx_hash.lower() != tx_hash

    def _retire_attempt(self) -> None:
        if self._attempt is not None and self._attempt.submission_handle is not None:
            self._retired_handles.add(self._attempt.submission_handle.tx_hash.lower())

    def _accepts(self, epoch: int, tag: str) -> bool:
        if self.is_current(epoch):
            return True
        logger.debug(f"{tag} | stale | epoch={epoch} | current={self._epoch}")
        return False

    def _confirm(self, via: str) -> None:
        self._transition(AttemptState.CONFIRMED)
        self._attempt.error_revealed = False
        logger.info(f"RECONCILE_CONFIRMED | epoch={self._epoch} | via {via}")
        self._publish()

    def _fail(self, detail: str) -> None:
        self._transition(AttemptState.FAILED)
        self._attempt.error_revealed = True
        logger.error(f"RECONCILE_FAILED | epoch={self._epoch} | {detail}")
        self._publish()

    def _transition(self, to_state: AttemptState) -> None:
        if not self.can_transition(to_state):
            raise InvalidTransition(f"{self._state} -> {to_state}")
        self._state = to_state

    def _cancel_grace_timer(self) -> None:
        if self._grace_timer is not None:
            self._grace_timer.cancel()
            self._grace_timer = None
        self._grace_started = None

    def _derive_status(self) -> TransactionStatus:
        attempt = self._attempt
        if attempt is None:
            return TransactionStatus(state=AttemptState.IDLE, epoch=self._epoch)
        error: Optional[ReconcilerError] = attempt.direct_error if attempt.error_revealed else None
        is_confirming = (
            self._state == AttemptState.PENDING
            and attempt.submission_handle is not None
            and attempt.direct_outcome == DirectOutcome.UNKNOWN
        )
        return TransactionStatus(
            state=self._state,
            epoch=self._epoch,
            is_confirming=is_confirming,
            error=error,
            submission_handle=attempt.submission_handle,
            matched_event=attempt.matched_event,
        )

    def _publish(self) -> None:
        status = self._derive_status()
        if status == self._status:
            return
        self._status = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception as exc:
                logger.error(f"STATUS_LISTENER | error | {type(exc).__name__}: {exc}")
