"""
Canonical data models for swap terms and broadcast intents.

This module defines immutable data structures shared by the compiler, the
state machine and the order book. Amounts are Decimals so that token
quantities never pick up binary float error on their way into a program.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class SwapTerms:
    """What the proposer gives and what it wants in return."""
    from_token: str          # Ticker the proposer locks
    from_amount: Decimal     # Amount the proposer locks
    to_token: str            # Ticker the proposer wants
    to_amount: Decimal       # Amount the proposer wants

    @property
    def pair(self) -> tuple[str, str]:
        """(from_token, to_token) pair used for order book queries."""
        return (self.from_token, self.to_token)

    def mirrored(self) -> "SwapTerms":
        """Terms of the counter-leg, seen from the taker's side."""
        return SwapTerms(
            from_token=self.to_token,
            from_amount=self.to_amount,
            to_token=self.from_token,
            to_amount=self.from_amount,
        )

    def to_dict(self) -> dict[str, Any]:
        """Plain representation with amounts as strings."""
        return {
            "from_token": self.from_token,
            "from_amount": str(self.from_amount),
            "to_token": self.to_token,
            "to_amount": str(self.to_amount),
        }


@dataclass(frozen=True)
class SwapIntent:
    """Public, secret-free announcement of a swap. Immutable once broadcast."""
    id: str                  # Broadcast message id
    proposer_key: str        # Hex public key of the author
    commitment_hash: bytes   # SHA-256 of the proposer's secret
    terms: SwapTerms
    refund_height: int       # Height after which the proposer may refund
    created_at: int          # Author timestamp, unix seconds

    @property
    def commitment_hex(self) -> str:
        """Commitment hash as lowercase hex."""
        return self.commitment_hash.hex()

    def matches_pair(self, from_token: str, to_token: str) -> bool:
        """True if this intent offers from_token for to_token."""
        return self.terms.from_token == from_token and self.terms.to_token == to_token
