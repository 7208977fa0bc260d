"""
web3_log_feed.py - Polling contract-event feed over eth_getLogs.

The subscription starts at the block after the current head, so only logs
mined after subscribe() are delivered. Indexed-argument filters are pushed to
the node as topics; decoding happens locally against the event ABI.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Dict, List, Optional

from eth_abi import encode
from eth_utils import keccak
from loguru import logger
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception

from ...config.contracts import find_event_abi
from ...domain.events.contract import ContractEvent
from ...domain.operations import FeedFilter
from ...ports.event_feed import EventFeedPort

_FEED_ERRORS = (Web3Exception, ValueError, OSError, asyncio.TimeoutError)


def event_signature(event_abi: Dict[str, Any]) -> str:
    types = ",".join(i["type"] for i in event_abi.get("inputs", []))
    return f"{event_abi['name']}({types})"


def event_topic(event_abi: Dict[str, Any]) -> str:
    return "0x" + keccak(text=event_signature(event_abi)).hex()


def build_topics(event_abi: Dict[str, Any], filters: Dict[str, Any]) -> List[Optional[str]]:
    """topic0 plus one topic per indexed input; unfiltered positions are wildcards."""
    topics: List[Optional[str]] = [event_topic(event_abi)]
    for param in event_abi.get("inputs", []):
        if not param.get("indexed"):
            continue
        value = filters.get(param["name"])
        if value is None:
            topics.append(None)
        else:
            topics.append("0x" + encode([param["type"]], [value]).hex())
    while topics and topics[-1] is None:
        topics.pop()
    return topics


def event_from_log_data(data: Dict[str, Any], source: str = "web3") -> ContractEvent:
    """Convert web3's decoded EventData into a ContractEvent."""
    tx_hash = data.get("transactionHash")
    return ContractEvent.create(
        contract_address=data.get("address", ""),
        name=data["event"],
        args=dict(data.get("args", {})),
        source=source,
        tx_hash=AsyncWeb3.to_hex(tx_hash) if tx_hash is not None else None,
        block_number=data.get("blockNumber"),
        log_index=data.get("logIndex"),
    )


class Web3LogFeed(EventFeedPort):
    """Polls eth_getLogs for the subscribed event."""

    def __init__(
        self,
        rpc_url: str,
        poll_interval: float = 2.0,
        confirmations: int = 0,
        max_block_range: int = 2000,
        request_timeout: float = 10.0,
    ):
        self.rpc_url = rpc_url
        self.poll_interval = poll_interval
        self.confirmations = confirmations
        self.max_block_range = max_block_range
        self.request_timeout = request_timeout
        self._w3: Optional[AsyncWeb3] = None
        self._filter: Optional[FeedFilter] = None
        self._topics: List[Optional[str]] = []
        self._next_block: int = 0
        self._generation = 0
        self._running = False

    def _get_w3(self) -> AsyncWeb3:
        if self._w3 is None:
            provider = AsyncWeb3.AsyncHTTPProvider(self.rpc_url, request_kwargs={"timeout": self.request_timeout})
            self._w3 = AsyncWeb3(provider)
        return self._w3

    async def subscribe(self, feed_filter: FeedFilter) -> None:
        event_abi = find_event_abi(feed_filter.abi, feed_filter.event_name)
        topics = build_topics(event_abi, feed_filter.filters_dict())
        head = await self._get_w3().eth.block_number

        self._filter = feed_filter
        self._topics = topics
        self._next_block = head + 1
        self._generation += 1
        self._running = True
        logger.info(f"FEED | subscribed | {feed_filter.event_name} | from_block={self._next_block}")

    async def stream(self) -> AsyncIterator[ContractEvent]:
        while self._running:
            if self._filter is not None:
                try:
                    events = await self._poll_once()
                except _FEED_ERRORS as exc:
                    logger.warning(f"FEED_POLL | error | {type(exc).__name__}: {exc}")
                    events = []
                for event in events:
                    yield event
            await asyncio.sleep(self.poll_interval)

    async def disconnect(self) -> None:
        self._running = False
        if self._w3 is not None:
            disconnect = getattr(self._w3.provider, "disconnect", None)
            if disconnect is not None:
                await disconnect()
            self._w3 = None

    async def _poll_once(self) -> List[ContractEvent]:
        w3 = self._get_w3()
        feed_filter = self._filter
        from_block = self._next_block
        topics = self._topics
        generation = self._generation
        safe_head = (await w3.eth.block_number) - self.confirmations
        if safe_head < from_block:
            return []

        to_block = min(safe_head, from_block + self.max_block_range - 1)
        address = AsyncWeb3.to_checksum_address(feed_filter.contract_address)
        logs = await w3.eth.get_logs(
            {
                "address": address,
                "fromBlock": from_block,
                "toBlock": to_block,
                "topics": topics,
            }
        )
        if self._generation != generation:
            # Resubscribed while the query was in flight; keep the new cursor.
            return []
        self._next_block = to_block + 1
        if not logs:
            return []

        contract = w3.eth.contract(address=address, abi=feed_filter.abi)
        decoder = getattr(contract.events, feed_filter.event_name)()
        events = []
        for log in logs:
            events.append(event_from_log_data(decoder.process_log(log)))
        if events:
            logger.debug(f"FEED_POLL | {len(events)} {feed_filter.event_name} log(s) | to_block={to_block}")
        return events
