"""
Domain error classifications for the swap protocol.

Every error carries two flags used by callers to decide what to do next:
``recoverable`` (nothing irreversible happened, the operation may be retried
or the input fixed) and ``funds_at_risk`` (an on-chain effect may or may not
have landed, do not retry blindly).
"""

from typing import Any, Dict, Optional


class SwapError(Exception):
    """Base class for all swap protocol errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True
        self.funds_at_risk = False


class ValidationError(SwapError):
    """Malformed terms, equal tokens, non-positive amounts or expired refund height."""

    def __init__(self, message: str, field: Optional[str] = None,
                 value: Any = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value


class CryptoError(SwapError):
    """Base class for commitment and hashing failures."""


class EntropyError(CryptoError):
    """The secure random source could not supply entropy. Fatal."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.recoverable = False


class HashMismatchError(CryptoError):
    """A supplied preimage does not hash to the expected commitment."""

    def __init__(self, message: str, commitment_hash: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.commitment_hash = commitment_hash


class SecretNotFoundError(SwapError):
    """This identity never created, or already purged, the commitment."""

    def __init__(self, message: str, commitment_hash: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.commitment_hash = commitment_hash


class CommitmentReuseError(CryptoError):
    """A commitment was about to be stored or used for a second swap."""

    def __init__(self, message: str, commitment_hash: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.commitment_hash = commitment_hash


class NetworkError(SwapError):
    """Broadcast channel failures. Retryable with the same payload."""

    def __init__(self, message: str, topic: Optional[str] = None,
                 message_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.topic = topic
        self.message_id = message_id
        self.retryable = True


class PublishError(NetworkError):
    """Publishing a message failed after all retry attempts."""


class MalformedMessageError(NetworkError):
    """An inbound message or encoded program could not be parsed."""

    def __init__(self, message: str, reason: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.reason = reason or message
        self.retryable = False


class StateError(SwapError):
    """An illegal swap state transition was attempted."""

    def __init__(self, message: str, current_state: Optional[str] = None,
                 attempted_state: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.current_state = current_state
        self.attempted_state = attempted_state


class CommitmentBusyError(StateError):
    """Another operation already holds the lock for this commitment hash."""

    def __init__(self, message: str, commitment_hash: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.commitment_hash = commitment_hash


class ExecutionError(SwapError):
    """Base class for contract program execution outcomes other than success."""

    def __init__(self, message: str, program_digest: Optional[str] = None,
                 txid: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.program_digest = program_digest
        self.txid = txid


class ExecutionRejectedError(ExecutionError):
    """The wallet or chain cleanly rejected the program. Nothing happened."""


class AmbiguousExecutionError(ExecutionError):
    """It is unknown whether the program landed on-chain."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.recoverable = False
        self.funds_at_risk = True


class CollaboratorUnavailableError(SwapError):
    """A required collaborator capability could not be acquired."""

    def __init__(self, message: str, capability: Optional[str] = None,
                 attempts: int = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.capability = capability
        self.attempts = attempts


class WrongNetworkError(CollaboratorUnavailableError):
    """The wallet is connected to a different network than configured."""

    def __init__(self, message: str, expected: Optional[str] = None,
                 actual: Optional[str] = None, **kwargs):
        super().__init__(message, capability="wallet", **kwargs)
        self.expected = expected
        self.actual = actual


class PersistenceError(SwapError):
    """Durable store failures."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 target: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.target = target
        self.recoverable = False
