"""
web3_ledger.py - EVM ledger client for the reconciler's direct channel.

Signs locally with an eth-account key and broadcasts through a public RPC.
Every library failure is translated into the domain errors:

    - before a tx hash exists  -> SubmissionError (terminal, no grace period)
    - after a tx hash exists   -> DirectChannelError (grace period applies)

A reverted receipt is returned with success=False; the reconciler decides
what that means.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Tuple

from eth_account import Account
from loguru import logger
from web3 import AsyncWeb3
from web3.exceptions import TimeExhausted, Web3Exception

from ...domain.errors import DirectChannelError, SubmissionError
from ...domain.models.action import Receipt, SubmissionHandle, WriteAction
from ...ports.ledger import LedgerClientPort

# Failures raised by web3 and its HTTP transport
_LEDGER_ERRORS = (Web3Exception, ValueError, OSError, asyncio.TimeoutError)

_BALANCE_OF_ABI = [
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    }
]


class Web3LedgerClient(LedgerClientPort):
    """Async web3.py ledger client with local signing."""

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        chain_id: int,
        receipt_timeout: float = 120.0,
        poll_latency: float = 1.0,
        request_timeout: float = 10.0,
        gas_limit: Optional[int] = None,
    ):
        self.rpc_url = rpc_url
        self.chain_id = chain_id
        self.receipt_timeout = receipt_timeout
        self.poll_latency = poll_latency
        self.request_timeout = request_timeout
        self.gas_limit = gas_limit

        self.account = Account.from_key(private_key)
        self.address: str = self.account.address
        self._w3: Optional[AsyncWeb3] = None

        logger.info(
            f"LEDGER_CLIENT | init | wallet={self.address[:10]}... | chain={chain_id} "
            f"| receipt_timeout={receipt_timeout}s"
        )

    def _get_w3(self) -> AsyncWeb3:
        """Get or create RPC client."""
        if self._w3 is None:
            provider = AsyncWeb3.AsyncHTTPProvider(self.rpc_url, request_kwargs={"timeout": self.request_timeout})
            self._w3 = AsyncWeb3(provider)
        return self._w3

    async def close(self) -> None:
        if self._w3 is not None:
            disconnect = getattr(self._w3.provider, "disconnect", None)
            if disconnect is not None:
                await disconnect()
            self._w3 = None

    # =========================================================================
    # DIRECT CHANNEL
    # =========================================================================

    async def submit(self, action: WriteAction) -> SubmissionHandle:
        w3 = self._get_w3()
        try:
            contract = w3.eth.contract(address=AsyncWeb3.to_checksum_address(action.contract_address), abi=action.abi)
            call = contract.get_function_by_name(action.function_name)(*_checksum_args(action.args))

            nonce = await w3.eth.get_transaction_count(self.address, "pending")
            tx_params = {"from": self.address, "chainId": self.chain_id, "nonce": nonce}
            if self.gas_limit:
                tx_params["gas"] = self.gas_limit
            tx = await call.build_transaction(tx_params)

            signed = self.account.sign_transaction(tx)
            tx_hash = await w3.eth.send_raw_transaction(signed.raw_transaction)
        except _LEDGER_ERRORS as exc:
            logger.error(f"LEDGER_SUBMIT | error | fn={action.function_name} | {type(exc).__name__}: {exc}")
            raise SubmissionError(str(exc)) from exc

        handle = SubmissionHandle(AsyncWeb3.to_hex(tx_hash))
        logger.info(f"TX_SENT | fn={action.function_name} | tx={handle.tx_hash}")
        return handle

    async def wait_for_receipt(self, handle: SubmissionHandle) -> Receipt:
        w3 = self._get_w3()
        try:
            receipt = await w3.eth.wait_for_transaction_receipt(
                handle.tx_hash,
                timeout=self.receipt_timeout,
                poll_latency=self.poll_latency,
            )
        except TimeExhausted as exc:
            logger.warning(f"TX_TIMEOUT | tx={handle.tx_hash} | after={self.receipt_timeout}s")
            raise DirectChannelError(f"timeout: {exc}", handle=handle.tx_hash) from exc
        except _LEDGER_ERRORS as exc:
            logger.error(f"TX_RECEIPT | error | tx={handle.tx_hash} | {type(exc).__name__}: {exc}")
            raise DirectChannelError(str(exc), handle=handle.tx_hash) from exc

        success = receipt.get("status", 1) == 1
        if success:
            logger.info(f"TX_CONFIRMED | tx={handle.tx_hash} | block={receipt.get('blockNumber')}")
        else:
            logger.error(f"TX_REVERTED | tx={handle.tx_hash} | block={receipt.get('blockNumber')}")
        return Receipt(
            tx_hash=handle.tx_hash,
            success=success,
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
        )

    # =========================================================================
    # BALANCES
    # =========================================================================

    async def balance_of(self, token: str, owner: str) -> int:
        w3 = self._get_w3()
        contract = w3.eth.contract(address=AsyncWeb3.to_checksum_address(token), abi=_BALANCE_OF_ABI)
        return int(await contract.functions.balanceOf(AsyncWeb3.to_checksum_address(owner)).call())


def _checksum_args(args: Tuple[Any, ...]) -> Tuple[Any, ...]:
    """web3 rejects non-checksummed address arguments."""
    return tuple(
        AsyncWeb3.to_checksum_address(a) if isinstance(a, str) and AsyncWeb3.is_address(a) else a
        for a in args
    )
