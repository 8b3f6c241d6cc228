"""
Commitment engine for hash-time-locked swaps.

A commitment is SHA-256 of a 32-byte secret. The hash is published with the
swap intent; the secret stays in the local store until the claim program
reveals it. One commitment per swap attempt, never reused.
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass, field

import structlog

from ..errors import EntropyError, SecretNotFoundError
from ..persistence.secret_store import SecretStore

logger = structlog.get_logger(__name__)

SECRET_BYTES = 32


def sha256(data: bytes) -> bytes:
    """SHA-256 digest of data."""
    return hashlib.sha256(data).digest()


def generate_secret(num_bytes: int = SECRET_BYTES) -> bytes:
    """
    Draw a secret from the operating system's secure random source.

    Raises:
        EntropyError: If the random source is unavailable or short
    """
    try:
        secret = secrets.token_bytes(num_bytes)
    except (OSError, NotImplementedError) as e:
        raise EntropyError(f"Secure random source unavailable: {e}") from e

    if len(secret) != num_bytes:
        raise EntropyError(f"Random source returned {len(secret)} of {num_bytes} bytes")

    return secret


@dataclass(frozen=True)
class Commitment:
    """A secret and its SHA-256 hash. The secret never appears in repr."""
    secret: bytes = field(repr=False)
    hash: bytes

    @property
    def hash_hex(self) -> str:
        """Commitment hash as lowercase hex."""
        return self.hash.hex()


class CommitmentEngine:
    """Issues, stores and verifies commitments for one identity."""

    def __init__(self, store: SecretStore, identity: str, secret_bytes: int = SECRET_BYTES):
        self.store = store
        self.identity = identity
        self.secret_bytes = secret_bytes
        self.logger = logger.bind(identity=identity)

    def create_commitment(self) -> Commitment:
        """
        Generate a fresh secret, persist it, and return the commitment.

        The secret is durably stored before the commitment is returned.

        Raises:
            EntropyError: If no secure randomness is available
            PersistenceError: If the secret could not be stored
        """
        secret = generate_secret(self.secret_bytes)
        commitment = Commitment(secret=secret, hash=sha256(secret))

        self.store.store_secret(self.identity, commitment.hash, secret)

        self.logger.info("Commitment created", commitment_hash=commitment.hash_hex)
        return commitment

    def lookup_secret(self, commitment_hash: bytes) -> bytes:
        """
        Return the secret for a commitment this identity created.

        Raises:
            SecretNotFoundError: If the commitment is unknown or purged
        """
        secret = self.store.get_secret(self.identity, commitment_hash)
        if secret is None:
            raise SecretNotFoundError(
                "No secret stored for commitment",
                commitment_hash=commitment_hash.hex(),
            )
        return secret

    def purge(self, commitment_hash: bytes) -> bool:
        """Forget a secret after its swap has settled."""
        return self.store.purge_secret(self.identity, commitment_hash)

    @staticmethod
    def verify(secret: bytes, commitment_hash: bytes) -> bool:
        """Constant-time check that SHA-256(secret) equals the commitment hash."""
        return hmac.compare_digest(sha256(secret), commitment_hash)
