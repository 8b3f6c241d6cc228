"""
Structured error hierarchy for the swap protocol.

Errors distinguish "nothing happened, you may retry" from
"funds may be at risk, do not retry blindly".
"""

from .swap_errors import (
    SwapError,
    ValidationError,
    CryptoError,
    EntropyError,
    HashMismatchError,
    SecretNotFoundError,
    CommitmentReuseError,
    NetworkError,
    PublishError,
    MalformedMessageError,
    StateError,
    CommitmentBusyError,
    ExecutionError,
    ExecutionRejectedError,
    AmbiguousExecutionError,
    CollaboratorUnavailableError,
    WrongNetworkError,
    PersistenceError,
)
from .recovery import RecoveryAdvice, classify

__all__ = [
    "SwapError",
    # Input and crypto
    "ValidationError",
    "CryptoError",
    "EntropyError",
    "HashMismatchError",
    "SecretNotFoundError",
    "CommitmentReuseError",
    # Network
    "NetworkError",
    "PublishError",
    "MalformedMessageError",
    # State
    "StateError",
    "CommitmentBusyError",
    # Execution
    "ExecutionError",
    "ExecutionRejectedError",
    "AmbiguousExecutionError",
    # Collaborators and storage
    "CollaboratorUnavailableError",
    "WrongNetworkError",
    "PersistenceError",
    # Recovery
    "RecoveryAdvice",
    "classify",
]
