"""
Contract catalog for the SnapBounty escrow and its stablecoin.

Addresses are keyed by chain id. Unknown chains fall back to Base Sepolia,
where the escrow and MockUSDC are deployed.

ABIs are minimal: only the functions the reconciler writes and the events the
feed matches on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

BASE_SEPOLIA_CHAIN_ID = 84532
BASE_CHAIN_ID = 8453
DEFAULT_CHAIN_ID = BASE_SEPOLIA_CHAIN_ID

USDC_DECIMALS = 6


@dataclass(frozen=True)
class ChainContracts:
    chain_id: int
    name: str
    rpc_url: str
    usdc: str
    escrow: str


# NOTE: the mainnet escrow is not deployed yet; the zero address is a placeholder.
BASE_SEPOLIA = ChainContracts(
    chain_id=BASE_SEPOLIA_CHAIN_ID,
    name="base-sepolia",
    rpc_url="https://sepolia.base.org",
    usdc="0xC821CdC016583D29e307E06bd96587cAC1757bB4",
    escrow="0xDc23e13811965c54C94275431398734Eb268e0e1",
)
BASE = ChainContracts(
    chain_id=BASE_CHAIN_ID,
    name="base",
    rpc_url="https://mainnet.base.org",
    usdc="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    escrow="0x0000000000000000000000000000000000000000",
)

CHAIN_MAP: Dict[int, ChainContracts] = {c.chain_id: c for c in [BASE_SEPOLIA, BASE]}


def get_chain(chain_id: Optional[int]) -> ChainContracts:
    """Contracts for chain_id, falling back to Base Sepolia."""
    if chain_id is None:
        return CHAIN_MAP[DEFAULT_CHAIN_ID]
    return CHAIN_MAP.get(int(chain_id), CHAIN_MAP[DEFAULT_CHAIN_ID])


def _event(name: str, inputs: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"anonymous": False, "inputs": inputs, "name": name, "type": "event"}


def _function(name: str, inputs: List[Dict[str, Any]], outputs: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    return {
        "inputs": inputs,
        "name": name,
        "outputs": outputs or [],
        "stateMutability": "nonpayable",
        "type": "function",
    }


MOCK_USDC_ABI: List[Dict[str, Any]] = [
    _function(
        "mint",
        [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}],
    ),
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    _event(
        "Transfer",
        [
            {"indexed": True, "name": "from", "type": "address"},
            {"indexed": True, "name": "to", "type": "address"},
            {"indexed": False, "name": "value", "type": "uint256"},
        ],
    ),
]

ESCROW_ABI: List[Dict[str, Any]] = [
    _function(
        "createBounty",
        [{"name": "reward", "type": "uint256"}, {"name": "deadline", "type": "uint256"}],
        [{"name": "bountyId", "type": "uint256"}],
    ),
    _function("claimBounty", [{"name": "bountyId", "type": "uint256"}]),
    _function(
        "submitWork",
        [{"name": "bountyId", "type": "uint256"}, {"name": "proofHash", "type": "bytes32"}],
    ),
    _function("cancelBounty", [{"name": "bountyId", "type": "uint256"}]),
    _function("approveWork", [{"name": "bountyId", "type": "uint256"}]),
    _function(
        "rejectWork",
        [{"name": "bountyId", "type": "uint256"}, {"name": "reason", "type": "string"}],
    ),
    _function("releaseClaim", [{"name": "bountyId", "type": "uint256"}]),
    _event(
        "BountyCreated",
        [
            {"indexed": True, "name": "bountyId", "type": "uint256"},
            {"indexed": True, "name": "creator", "type": "address"},
            {"indexed": False, "name": "reward", "type": "uint256"},
            {"indexed": False, "name": "deadline", "type": "uint256"},
        ],
    ),
    _event(
        "BountyClaimed",
        [
            {"indexed": True, "name": "bountyId", "type": "uint256"},
            {"indexed": True, "name": "hunter", "type": "address"},
            {"indexed": False, "name": "claimedAt", "type": "uint256"},
        ],
    ),
    _event(
        "WorkSubmitted",
        [
            {"indexed": True, "name": "bountyId", "type": "uint256"},
            {"indexed": True, "name": "hunter", "type": "address"},
            {"indexed": False, "name": "proofHash", "type": "bytes32"},
        ],
    ),
    _event(
        "BountyCancelled",
        [
            {"indexed": True, "name": "bountyId", "type": "uint256"},
            {"indexed": True, "name": "creator", "type": "address"},
            {"indexed": False, "name": "refundAmount", "type": "uint256"},
        ],
    ),
    _event(
        "WorkApproved",
        [
            {"indexed": True, "name": "bountyId", "type": "uint256"},
            {"indexed": True, "name": "hunter", "type": "address"},
            {"indexed": False, "name": "payout", "type": "uint256"},
            {"indexed": False, "name": "fee", "type": "uint256"},
        ],
    ),
    _event(
        "WorkRejected",
        [
            {"indexed": True, "name": "bountyId", "type": "uint256"},
            {"indexed": True, "name": "hunter", "type": "address"},
            {"indexed": False, "name": "reason", "type": "string"},
        ],
    ),
]


def find_event_abi(abi: List[Dict[str, Any]], event_name: str) -> Dict[str, Any]:
    for entry in abi:
        if entry.get("type") == "event" and entry.get("name") == event_name:
            return entry
    raise KeyError(f"Event not in ABI: {event_name}")


__all__ = [
    "ChainContracts",
    "BASE_SEPOLIA",
    "BASE",
    "CHAIN_MAP",
    "BASE_SEPOLIA_CHAIN_ID",
    "BASE_CHAIN_ID",
    "DEFAULT_CHAIN_ID",
    "USDC_DECIMALS",
    "MOCK_USDC_ABI",
    "ESCROW_ABI",
    "get_chain",
    "find_event_abi",
]
