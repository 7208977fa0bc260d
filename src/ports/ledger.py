from abc import ABC, abstractmethod

from ..domain.models.action import Receipt, SubmissionHandle, WriteAction


class LedgerClientPort(ABC):
    """Submits writes to the ledger and reports their receipts."""

    @abstractmethod
    async def submit(self, action: WriteAction) -> SubmissionHandle:
        """Raises SubmissionError if the write is rejected before a handle exists."""
        ...

    @abstractmethod
    async def wait_for_receipt(self, handle: SubmissionHandle) -> Receipt:
        """Raises DirectChannelError when no receipt can be obtained. May never return."""
        ...

    # ------------------------------------------------------------------
    # Optional helpers. Implementers may override; defaults raise NotImplementedError.
    # ------------------------------------------------------------------
    async def balance_of(self, token: str, owner: str) -> int:
        """Token balance of owner in base units."""
        raise NotImplementedError

    async def close(self) -> None:
        return None
