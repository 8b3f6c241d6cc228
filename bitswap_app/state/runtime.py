"""
Runtime state management for swap lifecycles.

This module tracks every swap this party participates in, applies triggers
through the transition table, and keeps a per-swap transition history.
Stopping to listen to a swap discards local state only; contracts already
on the ledger are untouched.
"""

import threading
from typing import Any, Optional

from ..data.models import SwapTerms
from ..errors import StateError
from ..logging.config import get_state_logger, log_state_transition
from ..utils.time import utc_now
from .machine import TERMINAL_STATES, next_state
from .models import (
    StateTransition,
    SwapRole,
    SwapRuntimeState,
    SwapState,
    SwapTrigger,
)

state_logger = get_state_logger(__name__)


class SwapRuntimeManager:
    """Manages runtime state for active swaps."""

    def __init__(self):
        self.logger = state_logger
        self._lock = threading.Lock()
        self.swap_states: dict[str, SwapRuntimeState] = {}
        self._history: dict[str, list[StateTransition]] = {}

    def start_initiator(
        self,
        swap_id: str,
        terms: Optional[SwapTerms] = None,
        refund_height: Optional[int] = None
    ) -> SwapRuntimeState:
        """Track a swap this party proposed. Starts in PROPOSED."""
        return self._start(swap_id, SwapRole.INITIATOR, SwapState.PROPOSED, terms, refund_height)

    def start_taker(
        self,
        swap_id: str,
        terms: Optional[SwapTerms] = None,
        refund_height: Optional[int] = None
    ) -> SwapRuntimeState:
        """Track a swap observed on the order book. Starts in ANNOUNCED."""
        return self._start(swap_id, SwapRole.TAKER, SwapState.ANNOUNCED, terms, refund_height)

    def apply(
        self,
        swap_id: str,
        trigger: SwapTrigger,
        current_height: Optional[int] = None,
        **context: Any
    ) -> SwapRuntimeState:
        """
        Apply a trigger to a tracked swap.

        Args:
            swap_id: Commitment hash of the swap
            trigger: Event to apply
            current_height: Chain height, required for refunds
            **context: Extra audit data (txid, intent id, ...)

        Returns:
            The new runtime state

        Raises:
            StateError: Unknown swap or illegal transition
        """
        trigger = SwapTrigger(trigger)

        with self._lock:
            current = self.swap_states.get(swap_id)
            if current is None:
                raise StateError(
                    f"Swap {swap_id} is not tracked",
                    attempted_state=trigger.value,
                )

            target = next_state(
                current.state,
                trigger,
                current_height=current_height,
                refund_height=current.refund_height,
            )

            now = utc_now()
            new_state = current.with_state(target, timestamp=now, txid=context.get("txid"))
            self.swap_states[swap_id] = new_state

            audit = dict(context)
            if current_height is not None:
                audit["current_height"] = current_height
            self._history[swap_id].append(StateTransition(
                swap_id=swap_id,
                from_state=current.state,
                to_state=target,
                trigger=trigger,
                timestamp=now,
                context=audit,
            ))

        log_state_transition(
            self.logger,
            swap_id=swap_id,
            from_state=current.state.value,
            to_state=target.value,
            trigger=trigger.value,
            context={"role": current.role.value, **audit},
        )
        return new_state

    def get_state(self, swap_id: str) -> Optional[SwapRuntimeState]:
        """Get current runtime state for a swap."""
        with self._lock:
            return self.swap_states.get(swap_id)

    def active_swaps(self) -> list[str]:
        """Get list of swap IDs in non-terminal states."""
        with self._lock:
            return [
                swap_id for swap_id, state in self.swap_states.items()
                if state.state not in TERMINAL_STATES
            ]

    def history(self, swap_id: str) -> list[StateTransition]:
        """Transitions applied to a swap, oldest first."""
        with self._lock:
            return list(self._history.get(swap_id, []))

    def stop_listening(self, swap_id: str) -> Optional[SwapRuntimeState]:
        """Discard local state for a swap. On-ledger contracts are unaffected."""
        with self._lock:
            old_state = self.swap_states.pop(swap_id, None)
            self._history.pop(swap_id, None)

        if old_state is not None:
            self.logger.info(
                "Stopped listening to swap",
                swap_id=swap_id,
                final_state=old_state.state.value,
                role=old_state.role.value
            )
        return old_state

    def _start(
        self,
        swap_id: str,
        role: SwapRole,
        initial: SwapState,
        terms: Optional[SwapTerms],
        refund_height: Optional[int]
    ) -> SwapRuntimeState:
        with self._lock:
            if swap_id in self.swap_states:
                raise StateError(
                    f"Swap {swap_id} is already tracked",
                    current_state=self.swap_states[swap_id].state.value,
                    attempted_state=initial.value,
                )
            state = SwapRuntimeState(
                swap_id=swap_id,
                role=role,
                state=initial,
                terms=terms,
                refund_height=refund_height,
                updated_at=utc_now(),
            )
            self.swap_states[swap_id] = state
            self._history[swap_id] = []

        self.logger.info(
            "Created new swap runtime state",
            swap_id=swap_id,
            role=role.value,
            initial_state=initial.value
        )
        return state
