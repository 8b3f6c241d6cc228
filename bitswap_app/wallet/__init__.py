"""Wallet capability: interface, discovery and a simulated implementation."""

from .base import ExecutionResult, ExecutionStatus, SigningWallet
from .discovery import UNAVAILABLE, acquire_with_retry, ensure_network, try_acquire
from .simulated import LedgerTransaction, SimulatedLedger, SimulatedWallet

__all__ = [
    "ExecutionResult",
    "ExecutionStatus",
    "LedgerTransaction",
    "SigningWallet",
    "SimulatedLedger",
    "SimulatedWallet",
    "UNAVAILABLE",
    "acquire_with_retry",
    "ensure_network",
    "try_acquire",
]
