import asyncio
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional

from ...domain.errors import DirectChannelError, SubmissionError
from ...domain.models.action import Receipt, SubmissionHandle, WriteAction
from ...domain.models.primitives import normalize_address
from ...ports.ledger import LedgerClientPort

SubmitHook = Callable[[WriteAction, SubmissionHandle], None]


class InMemoryLedgerClient(LedgerClientPort):
    """Ledger stand-in for tests and dry runs.

    Receipts stay unresolved until confirm() or fail() is called, unless
    auto_confirm is set.
    """

    def __init__(
        self,
        reject_with: Optional[str] = None,
        auto_confirm: bool = False,
        handles: Optional[Iterable[str]] = None,
        on_submit: Optional[SubmitHook] = None,
    ):
        self.reject_with = reject_with
        self.auto_confirm = auto_confirm
        self.on_submit = on_submit
        self.submitted: List[WriteAction] = []
        self.balances: Dict[str, int] = defaultdict(int)
        self._handles = list(handles or [])
        self._counter = 0
        self._receipts: Dict[str, asyncio.Future] = {}
        self._actions: Dict[str, WriteAction] = {}
        self._block = 0

    @property
    def last_handle(self) -> Optional[SubmissionHandle]:
        if not self._actions:
            return None
        return SubmissionHandle(list(self._actions)[-1])

    async def submit(self, action: WriteAction) -> SubmissionHandle:
        self.submitted.append(action)
        if self.reject_with:
            raise SubmissionError(self.reject_with)

        handle = SubmissionHandle(self._next_hash())
        self._receipts[handle.tx_hash] = asyncio.get_running_loop().create_future()
        self._actions[handle.tx_hash] = action
        if self.on_submit is not None:
            self.on_submit(action, handle)
        if self.auto_confirm:
            self.confirm(handle)
        return handle

    async def wait_for_receipt(self, handle: SubmissionHandle) -> Receipt:
        future = self._receipts.get(handle.tx_hash)
        if future is None:
            raise DirectChannelError(f"unknown transaction {handle.tx_hash}", handle=handle.tx_hash)
        return await future

    async def balance_of(self, token: str, owner: str) -> int:
        return self.balances[normalize_address(owner)]

    def confirm(self, handle: SubmissionHandle, success: bool = True) -> bool:
        future = self._receipts.get(str(handle))
        if future is None or future.done():
            return False
        self._block += 1
        action = self._actions[str(handle)]
        if success and action.function_name == "mint":
            recipient, units = action.args
            self.balances[normalize_address(recipient)] += int(units)
        future.set_result(Receipt(tx_hash=str(handle), success=success, block_number=self._block))
        return True

    def fail(self, handle: SubmissionHandle, reason: str) -> bool:
        future = self._receipts.get(str(handle))
        if future is None or future.done():
            return False
        future.set_exception(DirectChannelError(reason, handle=str(handle)))
        return True

    def _next_hash(self) -> str:
        if self._handles:
            return self._handles.pop(0)
        self._counter += 1
        return "0x" + f"{self._counter:064x}"
