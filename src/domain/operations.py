"""
Operation catalog: what to write, which contract event proves it happened,
and how long to wait for that event after the receipt channel fails.

Every operation prepares a `PreparedOperation` for one attempt. The prepared
operation carries the write action plus the matcher used against feed events.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from ..config.contracts import ESCROW_ABI, MOCK_USDC_ABI, USDC_DECIMALS, ChainContracts, get_chain
from .events.contract import ContractEvent
from .models.action import WriteAction
from .models.primitives import ZERO_ADDRESS, TokenAmount, normalize_address, same_address

MINT_GRACE_SECONDS = 60.0
ESCROW_GRACE_SECONDS = 15.0
DEFAULT_MINT_AMOUNT = 10_000


@dataclass(frozen=True)
class FeedFilter:
    """Subscription shape: one event on one contract, narrowed by indexed args."""

    contract_address: str
    event_name: str
    argument_filters: Tuple[Tuple[str, Any], ...] = ()
    abi: List[Dict[str, Any]] = field(default_factory=list, compare=False, repr=False)

    def filters_dict(self) -> Dict[str, Any]:
        return dict(self.argument_filters)


@dataclass(frozen=True)
class PreparedOperation:
    """One attempt's write plus its matcher.

    feed_filter is None for writes that emit no event; those confirm only via
    the receipt. An empty actor_field matches on expected_args alone.
    """

    name: str
    action: WriteAction
    feed_filter: Optional[FeedFilter]
    actor: str
    actor_field: str
    grace_seconds: float
    expected_args: Tuple[Tuple[str, Any], ...] = ()

    def matches(self, event: ContractEvent) -> bool:
        if self.feed_filter is None:
            return False
        if event.name != self.feed_filter.event_name:
            return False
        if event.contract_address and not same_address(event.contract_address, self.feed_filter.contract_address):
            return False
        if self.actor_field and not same_address(event.args.get(self.actor_field), self.actor):
            return False
        for key, expected in self.expected_args:
            if not args_equal(event.args.get(key), expected):
                return False
        return True


def args_equal(actual: Any, expected: Any) -> bool:
    """Compare a decoded event argument against an expected value (addresses case-insensitively)."""
    if actual is None:
        return False
    if isinstance(expected, str):
        return normalize_address(str(actual)) == normalize_address(expected)
    if isinstance(expected, int) and not isinstance(expected, bool):
        try:
            return int(actual) == expected
        except (TypeError, ValueError):
            return False
    return actual == expected


class Operation(ABC):
    """A ledger write with an indirect confirmation rule."""

    name = "operation"
    actor_field = ""
    event_name = ""
    default_grace_seconds = ESCROW_GRACE_SECONDS

    def __init__(self, chain: Optional[ChainContracts] = None, grace_seconds: Optional[float] = None):
        self.chain = chain or get_chain(None)
        self.grace_seconds = float(grace_seconds) if grace_seconds is not None else self.default_grace_seconds
        if self.grace_seconds < 0:
            raise ValueError("grace_seconds must be >= 0")

    @property
    @abstractmethod
    def contract_address(self) -> str:
        ...

    @property
    @abstractmethod
    def abi(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def prepare(self, actor: str, *params: Any, **kwargs: Any) -> PreparedOperation:
        ...

    def feed_filter(self, actor: str, expected_args: Tuple[Tuple[str, Any], ...] = ()) -> Optional[FeedFilter]:
        """Narrow by the actor when the event names it, otherwise by the expected args."""
        if not self.event_name:
            return None
        if self.actor_field:
            argument_filters = ((self.actor_field, normalize_address(actor)),)
        else:
            argument_filters = tuple(expected_args)
        return FeedFilter(
            contract_address=self.contract_address,
            event_name=self.event_name,
            argument_filters=argument_filters,
            abi=self.abi,
        )

    def _prepared(
        self,
        actor: str,
        function_name: str,
        args: Tuple[Any, ...],
        expected_args: Tuple[Tuple[str, Any], ...] = (),
    ) -> PreparedOperation:
        action = WriteAction(
            contract_address=self.contract_address,
            function_name=function_name,
            args=args,
            abi=self.abi,
            sender=actor,
        )
        return PreparedOperation(
            name=self.name,
            action=action,
            feed_filter=self.feed_filter(actor, expected_args),
            actor=actor,
            actor_field=self.actor_field,
            grace_seconds=self.grace_seconds,
            expected_args=expected_args,
        )


class MintUsdc(Operation):
    """Mint test stablecoin to the actor; a mint is a Transfer from the zero address."""

    name = "mint_usdc"
    actor_field = "to"
    event_name = "Transfer"
    default_grace_seconds = MINT_GRACE_SECONDS

    def __init__(
        self,
        chain: Optional[ChainContracts] = None,
        grace_seconds: Optional[float] = None,
        decimals: int = USDC_DECIMALS,
        default_amount: Union[int, str] = DEFAULT_MINT_AMOUNT,
    ):
        super().__init__(chain, grace_seconds)
        self.decimals = decimals
        self.default_amount = default_amount

    @property
    def contract_address(self) -> str:
        return self.chain.usdc

    @property
    def abi(self) -> List[Dict[str, Any]]:
        return MOCK_USDC_ABI

    def prepare(self, actor: str, amount: Any = None) -> PreparedOperation:
        raw = self.default_amount if amount is None else amount
        units = TokenAmount.parse(raw, self.decimals).to_units()
        return self._prepared(actor, "mint", (actor, units), expected_args=(("from", ZERO_ADDRESS),))


class CreateBounty(Operation):
    name = "create_bounty"
    actor_field = "creator"
    event_name = "BountyCreated"

    @property
    def contract_address(self) -> str:
        return self.chain.escrow

    @property
    def abi(self) -> List[Dict[str, Any]]:
        return ESCROW_ABI

    def prepare(self, actor: str, reward: Any, deadline: int = 0) -> PreparedOperation:
        units = TokenAmount.parse(reward, USDC_DECIMALS).to_units()
        if units == 0:
            raise ValueError("Bounty reward must be positive")
        return self._prepared(actor, "createBounty", (units, int(deadline)))


class _BountyIdOperation(Operation):
    function_name = ""

    @property
    def contract_address(self) -> str:
        return self.chain.escrow

    @property
    def abi(self) -> List[Dict[str, Any]]:
        return ESCROW_ABI

    def prepare(self, actor: str, bounty_id: int) -> PreparedOperation:
        bounty_id = int(bounty_id)
        return self._prepared(actor, self.function_name, (bounty_id,), expected_args=(("bountyId", bounty_id),))


class ClaimBounty(_BountyIdOperation):
    name = "claim_bounty"
    function_name = "claimBounty"
    actor_field = "hunter"
    event_name = "BountyClaimed"


class CancelBounty(_BountyIdOperation):
    name = "cancel_bounty"
    function_name = "cancelBounty"
    actor_field = "creator"
    event_name = "BountyCancelled"


class SubmitWork(_BountyIdOperation):
    name = "submit_work"
    function_name = "submitWork"
    actor_field = "hunter"
    event_name = "WorkSubmitted"

    def prepare(self, actor: str, bounty_id: int, proof_hash: Union[bytes, str] = b"") -> PreparedOperation:
        bounty_id = int(bounty_id)
        proof = _to_bytes32(proof_hash)
        return self._prepared(actor, self.function_name, (bounty_id, proof), expected_args=(("bountyId", bounty_id),))


class ApproveWork(_BountyIdOperation):
    """Creator approves the submission; the event names the hunter, so match on bountyId."""

    name = "approve_work"
    function_name = "approveWork"
    event_name = "WorkApproved"


class RejectWork(_BountyIdOperation):
    name = "reject_work"
    function_name = "rejectWork"
    event_name = "WorkRejected"

    def prepare(self, actor: str, bounty_id: int, reason: str = "") -> PreparedOperation:
        bounty_id = int(bounty_id)
        return self._prepared(
            actor, self.function_name, (bounty_id, str(reason)), expected_args=(("bountyId", bounty_id),)
        )


class ReleaseClaim(_BountyIdOperation):
    """Hunter gives up a claim. No event to watch: receipt and grace period only."""

    name = "release_claim"
    function_name = "releaseClaim"


def _to_bytes32(value: Union[bytes, str]) -> bytes:
    if isinstance(value, str):
        hex_str = value[2:] if value.startswith("0x") else value
        try:
            value = bytes.fromhex(hex_str)
        except ValueError as exc:
            raise ValueError(f"Invalid proof hash: {value}") from exc
    if len(value) != 32:
        raise ValueError(f"Proof hash must be 32 bytes, got {len(value)}")
    return value


OPERATIONS: Dict[str, Type[Operation]] = {
    op.name: op
    for op in [MintUsdc, CreateBounty, ClaimBounty, SubmitWork, CancelBounty, ApproveWork, RejectWork, ReleaseClaim]
}


def get_operation(name: str, chain: Optional[ChainContracts] = None, **kwargs: Any) -> Operation:
    key = name.strip().lower()
    if key not in OPERATIONS:
        raise KeyError(f"Operation not configured: {name}")
    return OPERATIONS[key](chain=chain, **kwargs)


__all__ = [
    "FeedFilter",
    "PreparedOperation",
    "Operation",
    "MintUsdc",
    "CreateBounty",
    "ClaimBounty",
    "SubmitWork",
    "CancelBounty",
    "ApproveWork",
    "RejectWork",
    "ReleaseClaim",
    "args_equal",
    "OPERATIONS",
    "get_operation",
    "MINT_GRACE_SECONDS",
    "ESCROW_GRACE_SECONDS",
    "DEFAULT_MINT_AMOUNT",
]
