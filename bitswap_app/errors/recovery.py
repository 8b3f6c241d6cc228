"""
Recovery advice for swap errors.

Maps any raised error onto the question a caller actually has to answer:
can I retry, do I need to fix my input, or may funds be at risk.
"""

from enum import Enum

from .swap_errors import (
    AmbiguousExecutionError,
    CollaboratorUnavailableError,
    CommitmentBusyError,
    CommitmentReuseError,
    EntropyError,
    ExecutionRejectedError,
    HashMismatchError,
    NetworkError,
    PersistenceError,
    StateError,
    SwapError,
    ValidationError,
    WrongNetworkError,
)


class RecoveryAdvice(str, Enum):
    """What a caller should do after an error."""
    RETRY = "retry"                  # nothing happened, safe to try again
    FIX_INPUT = "fix_input"          # nothing happened, input must change
    DO_NOT_RETRY = "do_not_retry"    # funds may be at risk, inspect chain first
    FATAL = "fatal"                  # process must not continue swapping


def classify(error: BaseException) -> RecoveryAdvice:
    """
    Classify an error into recovery advice.

    Args:
        error: Any exception raised by the swap core

    Returns:
        RecoveryAdvice for the caller
    """
    if isinstance(error, EntropyError):
        return RecoveryAdvice.FATAL

    if isinstance(error, AmbiguousExecutionError):
        return RecoveryAdvice.DO_NOT_RETRY

    if isinstance(error, PersistenceError):
        return RecoveryAdvice.FATAL

    if isinstance(error, ValidationError):
        return RecoveryAdvice.FIX_INPUT

    if isinstance(error, (HashMismatchError, CommitmentReuseError)):
        return RecoveryAdvice.FIX_INPUT

    if isinstance(error, CommitmentBusyError):
        return RecoveryAdvice.RETRY

    if isinstance(error, StateError):
        return RecoveryAdvice.FIX_INPUT

    if isinstance(error, NetworkError):
        return RecoveryAdvice.RETRY if error.retryable else RecoveryAdvice.FIX_INPUT

    if isinstance(error, WrongNetworkError):
        return RecoveryAdvice.FIX_INPUT

    if isinstance(error, (ExecutionRejectedError, CollaboratorUnavailableError)):
        return RecoveryAdvice.RETRY

    if isinstance(error, SwapError):
        if error.funds_at_risk:
            return RecoveryAdvice.DO_NOT_RETRY
        return RecoveryAdvice.RETRY if error.recoverable else RecoveryAdvice.FATAL

    return RecoveryAdvice.DO_NOT_RETRY
