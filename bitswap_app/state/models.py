"""
State machine data models for the swap lifecycle.

This module defines immutable data structures for tracking one party's view
of a swap: its lifecycle state, its role, and the audit trail of transitions.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..data.models import SwapTerms


class SwapState(str, Enum):
    """Swap lifecycle states."""
    PROPOSED = "proposed"
    LOCKED = "locked"
    ANNOUNCED = "announced"
    COUNTER_LOCKED = "counter_locked"
    CLAIMED = "claimed"
    REFUNDED = "refunded"


class SwapRole(str, Enum):
    """Which side of the swap this party plays."""
    INITIATOR = "initiator"
    TAKER = "taker"


class SwapTrigger(str, Enum):
    """Events that move a swap between states."""
    LOCK_CONFIRMED = "lock_confirmed"
    INTENT_PUBLISHED = "intent_published"
    COUNTER_LOCK_OBSERVED = "counter_lock_observed"
    CLAIM_EXECUTED = "claim_executed"
    REFUND_EXECUTED = "refund_executed"


@dataclass(frozen=True)
class SwapRuntimeState:
    """Runtime state for a single swap, keyed by its commitment hash."""

    swap_id: str                     # Commitment hash, hex
    role: SwapRole
    state: SwapState
    terms: Optional[SwapTerms] = None  # Terms of this party's own leg
    refund_height: Optional[int] = None  # Refund height of this party's own leg

    updated_at: Optional[datetime] = None
    last_txid: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (SwapState.CLAIMED, SwapState.REFUNDED)

    def with_state(self, new_state: SwapState,
                   timestamp: Optional[datetime] = None,
                   txid: Optional[str] = None) -> 'SwapRuntimeState':
        """Create new state with updated lifecycle state and timestamp."""
        return SwapRuntimeState(
            swap_id=self.swap_id,
            role=self.role,
            state=new_state,
            terms=self.terms,
            refund_height=self.refund_height,
            updated_at=timestamp or self.updated_at,
            last_txid=txid or self.last_txid,
        )


@dataclass(frozen=True)
class StateTransition:
    """One applied transition, kept as the per-swap audit trail."""

    swap_id: str
    from_state: SwapState
    to_state: SwapState
    trigger: SwapTrigger
    timestamp: datetime
    context: dict[str, Any] = field(default_factory=dict)
