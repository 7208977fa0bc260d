"""
transaction_reconciler.py - Asyncio wiring around OutcomeStateMachine.

start() returns immediately. The submission and the receipt wait run in a
background task; the event feed is pumped by a second, long-lived task. Both
report into the state machine tagged with the attempt epoch, so anything
arriving for a superseded attempt is discarded.

Usage:
    reconciler = TransactionOutcomeReconciler(ledger, feed, MintUsdc(chain))
    reconciler.add_listener(render)
    reconciler.start(wallet_address, 10_000)
    status = await reconciler.wait_until_settled()
"""

import asyncio
import re
from typing import Any, Optional

from loguru import logger

from ...adapters.timer.asyncio_timer import AsyncioTimer
from ...domain.errors import DirectChannelError, PreconditionError, SubmissionError
from ...domain.models.attempt import AttemptState
from ...domain.models.status import TransactionStatus
from ...domain.operations import FeedFilter, Operation, PreparedOperation
from ...ports.event_feed import EventFeedPort
from ...ports.ledger import LedgerClientPort
from ...ports.timer import TimerPort
from .outcome_state_machine import OutcomeStateMachine, StatusListener

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


class TransactionOutcomeReconciler:
    """Single-attempt reconciler for one operation kind."""

    def __init__(
        self,
        ledger: LedgerClientPort,
        feed: EventFeedPort,
        operation: Operation,
        timer: Optional[TimerPort] = None,
    ):
        self.ledger = ledger
        self.feed = feed
        self.operation = operation
        self.timer = timer or AsyncioTimer()
        self.machine = OutcomeStateMachine(self.timer)
        self._attempt_task: Optional[asyncio.Task] = None
        self._feed_task: Optional[asyncio.Task] = None
        self._feed_filter: Optional[FeedFilter] = None

    @property
    def status(self) -> TransactionStatus:
        return self.machine.status

    def add_listener(self, listener: StatusListener) -> None:
        self.machine.add_listener(listener)

    def remove_listener(self, listener: StatusListener) -> None:
        self.machine.remove_listener(listener)

    def start(self, actor: Optional[str], *params: Any, **kwargs: Any) -> int:
        """Begin a new attempt for actor. Must be called from the event loop."""
        if not actor:
            raise PreconditionError("Please connect your wallet first")
        if not _ADDRESS_RE.match(actor):
            raise PreconditionError(f"Invalid actor address: {actor}")

        prepared = self.operation.prepare(actor, *params, **kwargs)
        loop = asyncio.get_running_loop()

        self._cancel_attempt_task()
        epoch = self.machine.begin(prepared)
        self._attempt_task = loop.create_task(self._run_attempt(epoch, prepared))
        return epoch

    def reset(self) -> None:
        self._cancel_attempt_task()
        self.machine.reset()

    async def wait_until_settled(self, timeout: Optional[float] = None) -> TransactionStatus:
        """Wait until the attempt is confirmed, failed or reset."""
        if self.status.state != AttemptState.PENDING:
            return self.status

        settled = asyncio.Event()

        def _listener(status: TransactionStatus) -> None:
            if status.state != AttemptState.PENDING:
                settled.set()

        self.add_listener(_listener)
        try:
            await asyncio.wait_for(settled.wait(), timeout)
        finally:
            self.remove_listener(_listener)
        return self.status

    async def close(self) -> None:
        attempt_task = self._attempt_task
        self.reset()
        if attempt_task is not None:
            await asyncio.gather(attempt_task, return_exceptions=True)
        if self._feed_task is not None:
            self._feed_task.cancel()
            await asyncio.gather(self._feed_task, return_exceptions=True)
            self._feed_task = None
        await self.feed.disconnect()
        await self.ledger.close()

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    async def _run_attempt(self, epoch: int, prepared: PreparedOperation) -> None:
        await self._ensure_subscribed(prepared.feed_filter)

        try:
            handle = await self.ledger.submit(prepared.action)
        except SubmissionError as exc:
            self.machine.submission_rejected(epoch, exc)
            return
        except Exception as exc:
            logger.error(f"LEDGER_SUBMIT | unexpected | {type(exc).__name__}: {exc}")
            self.machine.submission_rejected(epoch, SubmissionError(str(exc)))
            return

        self.machine.submission_accepted(epoch, handle)

        try:
            receipt = await self.ledger.wait_for_receipt(handle)
        except DirectChannelError as exc:
            self.machine.direct_errored(epoch, exc)
            return
        except Exception as exc:
            logger.error(f"LEDGER_RECEIPT | unexpected | {type(exc).__name__}: {exc}")
            self.machine.direct_errored(epoch, DirectChannelError(str(exc), handle=handle.tx_hash))
            return

        if receipt.success:
            self.machine.direct_confirmed(epoch, receipt)
        else:
            self.machine.direct_errored(epoch, DirectChannelError("execution reverted", handle=handle.tx_hash))

    async def _ensure_subscribed(self, feed_filter: Optional[FeedFilter]) -> None:
        if feed_filter is None:
            # Receipt-only operation.
            return
        if feed_filter != self._feed_filter:
            try:
                await self.feed.subscribe(feed_filter)
            except Exception as exc:
                # Receipt channel still works without the feed.
                logger.warning(f"FEED_SUBSCRIBE | error | {type(exc).__name__}: {exc}")
                return
            self._feed_filter = feed_filter
            logger.info(
                f"FEED_SUBSCRIBE | {feed_filter.event_name} | contract={feed_filter.contract_address} "
                f"| filters={feed_filter.filters_dict()}"
            )

        if self._feed_task is None or self._feed_task.done():
            self._feed_task = asyncio.get_running_loop().create_task(self._pump_feed())

    async def _pump_feed(self) -> None:
        try:
            async for event in self.feed.stream():
                self.machine.feed_event(event)
        except Exception as exc:
            logger.error(f"FEED_STREAM | stopped | {type(exc).__name__}: {exc}")

    def _cancel_attempt_task(self) -> None:
        if self._attempt_task is not None and not self._attempt_task.done():
            self._attempt_task.cancel()
        self._attempt_task = None
