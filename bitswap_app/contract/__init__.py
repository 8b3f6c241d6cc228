"""
Contract program model.

A closed instruction set for straight-line HTLC programs, the immutable
program container with its wire codec, and a reference evaluator used to
audit a program before funds are locked against it.
"""

from .instructions import (
    AdjustBalance,
    AssertEqual,
    Hash,
    Instruction,
    LockFunds,
    OpCode,
    PushValue,
    Return,
    StoreKeyValue,
    Transfer,
)
from .program import ContractProgram

__all__ = [
    "OpCode",
    "Instruction",
    "PushValue",
    "StoreKeyValue",
    "Hash",
    "AssertEqual",
    "AdjustBalance",
    "Transfer",
    "LockFunds",
    "Return",
    "ContractProgram",
]
