"""
Swap program compiler.

Builds lock, counter-lock, claim and refund programs from validated swap
terms, one commitment at a time.
"""

from .locks import CommitmentLockTable
from .swap_compiler import LockSummary, SwapProgramCompiler, escrow_account, parse_escrow_account

__all__ = [
    "CommitmentLockTable",
    "LockSummary",
    "SwapProgramCompiler",
    "escrow_account",
    "parse_escrow_account",
]
