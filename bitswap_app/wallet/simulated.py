"""
Simulated ledger and wallet for local operation and tests.

SimulatedLedger stands in for a chain: it keeps contract storage, balances
and a height, and applies programs atomically through the reference
evaluator. Before evaluating, it enforces the HTLC release policy the
programs themselves cannot express:

* balance adjustments may only credit escrow accounts, and only with funds
  the same program locks
* spending from an escrow requires either a hash assertion for that
  escrow's commitment, paying the other leg's locker, or the locker's own
  refund once the chain is strictly past the leg's refund height

SimulatedWallet signs with Ed25519 keys from the cryptography package.
"""

import hashlib
from collections import defaultdict
import itertools
import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

import orjson
import structlog
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from ..compiler.swap_compiler import parse_escrow_account
from ..contract.evaluator import BalanceKey, evaluate
from ..contract.instructions import (
    AdjustBalance,
    AssertEqual,
    Hash,
    LockFunds,
    PushValue,
    Transfer,
)
from ..contract.program import ContractProgram
from ..crypto.commitment import sha256
from ..state.machine import can_refund
from .base import ExecutionResult, ExecutionStatus, SigningWallet

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LedgerTransaction:
    """A confirmed program, visible to every observer."""
    txid: str
    caller: str
    height: int
    program: ContractProgram


class SimulatedLedger:
    """In-memory chain applying contract programs atomically."""

    def __init__(self, network: str = "signet", height: int = 0, namespace: str = "htlc"):
        self.network = network
        self.namespace = namespace
        self._height = height
        self._lock = threading.Lock()
        self._balances: dict[BalanceKey, Decimal] = {}
        self._storage: dict[str, Any] = {}
        self._transactions: list[LedgerTransaction] = []
        self._sequence = itertools.count(1)

    @property
    def height(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        """Mine blocks. Returns the new height."""
        if blocks < 0:
            raise ValueError("Cannot rewind the chain")
        with self._lock:
            self._height += blocks
            return self._height

    def mint(self, account: str, token: str, amount: Decimal) -> None:
        """Credit an account out of thin air. Test setup only."""
        amount = Decimal(amount)
        with self._lock:
            key = (account, token)
            self._balances[key] = self._balances.get(key, Decimal(0)) + amount

    def balance_of(self, account: str, token: str) -> Decimal:
        with self._lock:
            return self._balances.get((account, token), Decimal(0))

    def balances_for(self, account: str) -> dict[str, Decimal]:
        with self._lock:
            return {
                token: amount for (owner, token), amount in self._balances.items()
                if owner == account and amount != 0
            }

    def get_storage(self, key: str) -> Any:
        with self._lock:
            return self._storage.get(key)

    @property
    def transactions(self) -> list[LedgerTransaction]:
        with self._lock:
            return list(self._transactions)

    def find_revealed_secret(self, commitment_hash: bytes) -> Optional[bytes]:
        """Scan confirmed programs for a preimage of commitment_hash."""
        for tx in self.transactions:
            preimage = tx.program.extract_preimage()
            if preimage is not None and sha256(preimage) == commitment_hash:
                return preimage
        return None

    def execute(self, program: ContractProgram, caller: str) -> ExecutionResult:
        """Apply a program for caller, all or nothing."""
        with self._lock:
            violation = self._policy_violation(program, caller)
            if violation is not None:
                logger.info("Program rejected by ledger policy",
                            caller=caller, program_digest=program.digest(), reason=violation)
                return ExecutionResult(status=ExecutionStatus.REJECTED, message=violation)

            result = evaluate(program, caller, self._balances, self._storage)
            if not result.success:
                logger.info("Program aborted", caller=caller, program_digest=program.digest(),
                            failed_step=result.failed_step, error=result.error)
                return ExecutionResult(status=ExecutionStatus.REJECTED, message=result.error)

            self._storage.update(result.storage_writes)
            for key, delta in result.balance_deltas.items():
                self._balances[key] = self._balances.get(key, Decimal(0)) + delta

            txid = hashlib.sha256(
                f"{program.digest()}:{caller}:{self._height}:{next(self._sequence)}".encode()
            ).hexdigest()
            self._transactions.append(LedgerTransaction(txid, caller, self._height, program))

        logger.info("Program confirmed", caller=caller, txid=txid, height=self._height)
        return ExecutionResult(status=ExecutionStatus.CONFIRMED, txid=txid)

    def _lock_record(self, commitment_hash: bytes, counter: bool) -> Optional[dict[str, Any]]:
        parts = [self.namespace, commitment_hash.hex()] + (["counter"] if counter else []) + ["terms"]
        raw = self._storage.get("/".join(parts))
        if raw is None:
            return None
        return orjson.loads(raw)

    def _policy_violation(self, program: ContractProgram, caller: str) -> Optional[str]:
        locked: dict[str, Decimal] = defaultdict(Decimal)
        credited: dict[str, Decimal] = defaultdict(Decimal)

        for index, ins in enumerate(program):
            if isinstance(ins, AdjustBalance):
                if parse_escrow_account(ins.account) is None:
                    return "balance adjustments are limited to escrow accounts"
                if ins.delta <= 0:
                    return "escrow credit must be positive"
                credited[ins.token] += ins.delta

            elif isinstance(ins, LockFunds):
                locked[ins.token] += ins.amount

            elif isinstance(ins, Transfer):
                parsed = parse_escrow_account(ins.sender)
                if parsed is None:
                    if ins.sender != caller:
                        return "transfers may only spend the caller's funds"
                    continue

                commitment_hash, counter = parsed
                if _asserts_preimage(program, index, commitment_hash):
                    # Each leg pays out to whoever locked the other leg.
                    other = self._lock_record(commitment_hash, not counter)
                    if other is None:
                        return "claim before the other leg is locked"
                    if ins.recipient != other["locker"]:
                        return "claim must pay the other leg's locker"
                    continue

                record = self._lock_record(commitment_hash, counter)
                if record is None:
                    return "escrow has no lock record"
                if caller != record["locker"] or ins.recipient != record["locker"]:
                    return "only the locker may refund"
                if not can_refund(self._height, record["refund_height"]):
                    return (f"refund height {record['refund_height']} not passed "
                            f"at height {self._height}")

        if credited != locked:
            return "escrow credit must match locked funds"
        return None


def _asserts_preimage(program: ContractProgram, before: int, commitment_hash: bytes) -> bool:
    """True if a push/hash/push/assert sequence for commitment_hash precedes index `before`."""
    for start in range(0, before - 3):
        window = program.instructions[start:start + 4]
        if (isinstance(window[0], PushValue) and isinstance(window[1], Hash)
                and isinstance(window[2], PushValue) and isinstance(window[3], AssertEqual)
                and window[2].value == commitment_hash):
            return True
    return False


class SimulatedWallet(SigningWallet):
    """Ed25519 wallet bound to a SimulatedLedger."""

    def __init__(self, ledger: SimulatedLedger, private_key: Optional[Ed25519PrivateKey] = None):
        self.ledger = ledger
        self._private_key = private_key or Ed25519PrivateKey.generate()
        self._public_key = self._private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        ).hex()

    def get_public_key(self) -> str:
        return self._public_key

    def sign(self, message: bytes) -> str:
        return self._private_key.sign(message).hex()

    def verify(self, pubkey: str, message: bytes, signature: str) -> bool:
        try:
            public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(pubkey))
            public_key.verify(bytes.fromhex(signature), message)
        except (InvalidSignature, ValueError):
            return False
        return True

    def execute(self, program: ContractProgram) -> ExecutionResult:
        return self.ledger.execute(program, caller=self._public_key)

    def get_balances(self) -> dict[str, Decimal]:
        return self.ledger.balances_for(self._public_key)

    def get_network(self) -> str:
        return self.ledger.network

    def get_chain_height(self) -> int:
        return self.ledger.height
