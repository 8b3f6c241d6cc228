"""
Commitment engine.

Secret generation, SHA-256 commitments and constant-time preimage checks.
"""

from .commitment import Commitment, CommitmentEngine, generate_secret, sha256

__all__ = ["Commitment", "CommitmentEngine", "generate_secret", "sha256"]
