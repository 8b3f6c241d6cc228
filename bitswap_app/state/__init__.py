"""Swap lifecycle state machine and runtime tracking."""

from .machine import ALLOWED_TRANSITIONS, TERMINAL_STATES, can_refund, next_state
from .models import StateTransition, SwapRole, SwapRuntimeState, SwapState, SwapTrigger
from .runtime import SwapRuntimeManager

__all__ = [
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATES",
    "StateTransition",
    "SwapRole",
    "SwapRuntimeManager",
    "SwapRuntimeState",
    "SwapState",
    "SwapTrigger",
    "can_refund",
    "next_state",
]
