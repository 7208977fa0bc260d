from .errors import (
    FailureReason,
    ReconcilerError,
    PreconditionError,
    SubmissionError,
    DirectChannelError,
    InvalidTransition,
)
from . import models, events, operations

__all__ = [
    "FailureReason",
    "ReconcilerError",
    "PreconditionError",
    "SubmissionError",
    "DirectChannelError",
    "InvalidTransition",
    "models",
    "events",
    "operations",
]
