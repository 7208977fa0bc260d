from .action import WriteAction, SubmissionHandle, Receipt
from .attempt import OperationAttempt, AttemptState, DirectOutcome, FeedOutcome
from .status import TransactionStatus
from .primitives import TokenAmount, ZERO_ADDRESS, normalize_address, same_address

__all__ = [
    "WriteAction",
    "SubmissionHandle",
    "Receipt",
    "OperationAttempt",
    "AttemptState",
    "DirectOutcome",
    "FeedOutcome",
    "TransactionStatus",
    "TokenAmount",
    "ZERO_ADDRESS",
    "normalize_address",
    "same_address",
]
