"""
Reference evaluator for straight-line contract programs.

Used by a counterparty to dry-run a program before locking funds against
it, and by the simulated ledger to apply programs. Effects are staged and
only reported as committed when every step succeeds; a failing step (most
importantly a failing AssertEqual) leaves zero effects.
"""

import hashlib
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional

from .instructions import (
    AdjustBalance,
    Hash,
    LockFunds,
    OpCode,
    PushValue,
    StoreKeyValue,
    Transfer,
)
from .program import ContractProgram

BalanceKey = tuple[str, str]  # (account, token)


class ProgramAbort(Exception):
    """Raised inside a step to abort the whole program."""


@dataclass(frozen=True)
class StepTrace:
    """Outcome of one executed instruction."""
    index: int
    op: OpCode
    ok: bool
    detail: Optional[str] = None


@dataclass(frozen=True)
class EvaluationResult:
    """Result of evaluating a program against a ledger snapshot."""
    success: bool
    steps: tuple[StepTrace, ...]
    failed_step: Optional[int] = None
    error: Optional[str] = None
    storage_writes: dict[str, Any] = field(default_factory=dict)
    balance_deltas: dict[BalanceKey, Decimal] = field(default_factory=dict)

    @property
    def assertion_passed(self) -> Optional[bool]:
        """
        Whether every executed AssertEqual held.

        None if the program never reached an AssertEqual.
        """
        asserts = [step for step in self.steps if step.op == OpCode.ASSERT_EQUAL]
        if not asserts:
            return None
        return all(step.ok for step in asserts)

    @property
    def failed_op(self) -> Optional[OpCode]:
        """Opcode of the failing step, if any."""
        if self.failed_step is None:
            return None
        return self.steps[-1].op


class _Machine:
    """Mutable evaluation context for a single run."""

    def __init__(self, caller: str, balances: Mapping[BalanceKey, Decimal],
                 storage: Mapping[str, Any]):
        self.caller = caller
        self.balances = balances
        self.storage = storage
        self.stack: list[Any] = []
        self.storage_writes: dict[str, Any] = {}
        self.balance_deltas: dict[BalanceKey, Decimal] = {}

    def pop(self) -> Any:
        if not self.stack:
            raise ProgramAbort("stack underflow")
        return self.stack.pop()

    def balance(self, account: str, token: str) -> Decimal:
        key = (account, token)
        return self.balances.get(key, Decimal(0)) + self.balance_deltas.get(key, Decimal(0))

    def adjust(self, account: str, token: str, delta: Decimal) -> None:
        if self.balance(account, token) + delta < 0:
            raise ProgramAbort(f"insufficient {token} balance in {account}")
        key = (account, token)
        self.balance_deltas[key] = self.balance_deltas.get(key, Decimal(0)) + delta


def _push_value(machine: _Machine, ins: PushValue) -> bool:
    machine.stack.append(ins.value)
    return False


def _store_key_value(machine: _Machine, ins: StoreKeyValue) -> bool:
    if ins.key in machine.storage or ins.key in machine.storage_writes:
        raise ProgramAbort(f"storage key already set: {ins.key}")
    machine.storage_writes[ins.key] = ins.value
    return False


def _hash(machine: _Machine, ins: Hash) -> bool:
    if ins.algorithm != "sha256":
        raise ProgramAbort(f"unsupported hash algorithm: {ins.algorithm}")
    value = machine.pop()
    if not isinstance(value, bytes):
        raise ProgramAbort("hash operand must be bytes")
    machine.stack.append(hashlib.sha256(value).digest())
    return False


def _assert_equal(machine: _Machine, ins: Any) -> bool:
    right = machine.pop()
    left = machine.pop()
    if left != right:
        raise ProgramAbort("assertion failed: values differ")
    return False


def _adjust_balance(machine: _Machine, ins: AdjustBalance) -> bool:
    machine.adjust(ins.account, ins.token, ins.delta)
    return False


def _transfer(machine: _Machine, ins: Transfer) -> bool:
    if ins.amount <= 0:
        raise ProgramAbort("transfer amount must be positive")
    machine.adjust(ins.sender, ins.token, -ins.amount)
    machine.adjust(ins.recipient, ins.token, ins.amount)
    return False


def _lock_funds(machine: _Machine, ins: LockFunds) -> bool:
    if ins.amount <= 0:
        raise ProgramAbort("lock amount must be positive")
    machine.adjust(machine.caller, ins.token, -ins.amount)
    return False


def _return(machine: _Machine, ins: Any) -> bool:
    return True


_HANDLERS: dict[OpCode, Callable[[_Machine, Any], bool]] = {
    OpCode.PUSH_VALUE: _push_value,
    OpCode.STORE_KEY_VALUE: _store_key_value,
    OpCode.HASH: _hash,
    OpCode.ASSERT_EQUAL: _assert_equal,
    OpCode.ADJUST_BALANCE: _adjust_balance,
    OpCode.TRANSFER: _transfer,
    OpCode.LOCK_FUNDS: _lock_funds,
    OpCode.RETURN: _return,
}

if set(_HANDLERS) != set(OpCode):
    raise RuntimeError("Evaluator must handle every OpCode")


def evaluate(
    program: ContractProgram,
    caller: str,
    balances: Optional[Mapping[BalanceKey, Decimal]] = None,
    storage: Optional[Mapping[str, Any]] = None
) -> EvaluationResult:
    """
    Evaluate a program against a read-only ledger snapshot.

    Args:
        program: Program to run
        caller: Account executing the program (debited by LockFunds)
        balances: Current (account, token) balances
        storage: Current contract storage

    Returns:
        EvaluationResult; effects are populated only on success
    """
    machine = _Machine(caller, balances or {}, storage or {})
    steps: list[StepTrace] = []

    for index, instruction in enumerate(program):
        handler = _HANDLERS[instruction.op]
        try:
            stop = handler(machine, instruction)
        except ProgramAbort as e:
            steps.append(StepTrace(index=index, op=instruction.op, ok=False, detail=str(e)))
            return EvaluationResult(
                success=False,
                steps=tuple(steps),
                failed_step=index,
                error=str(e),
            )

        steps.append(StepTrace(index=index, op=instruction.op, ok=True))
        if stop:
            break

    return EvaluationResult(
        success=True,
        steps=tuple(steps),
        storage_writes=dict(machine.storage_writes),
        balance_deltas={k: v for k, v in machine.balance_deltas.items() if v != 0},
    )
