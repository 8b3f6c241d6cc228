"""
Closed transition table for the swap lifecycle.

Every legal move is listed in ALLOWED_TRANSITIONS; anything else raises
StateError. Refunds are additionally gated on the chain height having
strictly passed the leg's refund height.
"""

from typing import Optional

from ..errors import StateError
from .models import SwapState, SwapTrigger

ALLOWED_TRANSITIONS: dict[tuple[SwapState, SwapTrigger], SwapState] = {
    (SwapState.PROPOSED, SwapTrigger.LOCK_CONFIRMED): SwapState.LOCKED,
    (SwapState.LOCKED, SwapTrigger.INTENT_PUBLISHED): SwapState.ANNOUNCED,
    (SwapState.ANNOUNCED, SwapTrigger.COUNTER_LOCK_OBSERVED): SwapState.COUNTER_LOCKED,
    (SwapState.COUNTER_LOCKED, SwapTrigger.CLAIM_EXECUTED): SwapState.CLAIMED,
    (SwapState.ANNOUNCED, SwapTrigger.REFUND_EXECUTED): SwapState.REFUNDED,
    (SwapState.COUNTER_LOCKED, SwapTrigger.REFUND_EXECUTED): SwapState.REFUNDED,
}

TERMINAL_STATES = frozenset({SwapState.CLAIMED, SwapState.REFUNDED})


def can_refund(current_height: int, refund_height: int) -> bool:
    """Refund branch is open only once the chain is strictly past refund_height."""
    return current_height > refund_height


def next_state(
    current: SwapState,
    trigger: SwapTrigger,
    current_height: Optional[int] = None,
    refund_height: Optional[int] = None
) -> SwapState:
    """
    Resolve the state a trigger leads to.

    Args:
        current: State the swap is in
        trigger: Event being applied
        current_height: Chain height, required for refunds
        refund_height: Refund height of the leg, required for refunds

    Returns:
        The new state

    Raises:
        StateError: If the move is not in the transition table, or a refund
            is attempted before the refund height has passed
    """
    target = ALLOWED_TRANSITIONS.get((current, trigger))

    if target is None:
        if current in TERMINAL_STATES:
            message = f"Swap is already {current.value}; {trigger.value} not allowed"
        else:
            message = f"Trigger {trigger.value} not allowed from {current.value}"
        raise StateError(
            message,
            current_state=current.value,
            attempted_state=trigger.value,
        )

    if trigger == SwapTrigger.REFUND_EXECUTED:
        if current_height is None or refund_height is None:
            raise StateError(
                "Refund requires both current and refund heights",
                current_state=current.value,
                attempted_state=target.value,
            )
        if not can_refund(current_height, refund_height):
            raise StateError(
                f"Refund not yet available at height {current_height} "
                f"(refund height {refund_height})",
                current_state=current.value,
                attempted_state=target.value,
                context={"current_height": current_height, "refund_height": refund_height},
            )

    return target
