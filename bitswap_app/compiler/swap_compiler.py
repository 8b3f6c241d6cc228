"""
Swap program compiler.

Turns validated swap terms into the canonical HTLC programs:

* lock: record the commitment and terms, lock the locker's funds and credit
  a virtual escrow account tagged by the commitment hash
* counter-lock: the taker's mirrored leg against the same commitment
* claim: push the secret, hash it, compare with the commitment, then pay
  the escrow to the claimant
* refund: after the refund height, pay the escrow back to the locker

The programs encode the release policy; enforcing the refund-height branch
belongs to the execution engine that runs them.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Union

import orjson
import structlog

from ..contract.instructions import (
    AdjustBalance,
    AssertEqual,
    Hash,
    LockFunds,
    PushValue,
    Return,
    StoreKeyValue,
    Transfer,
)
from ..contract.program import ContractProgram
from ..crypto.commitment import Commitment
from ..data.models import SwapIntent, SwapTerms
from ..data.validators import parse_amount, validate_refund_height, validate_terms
from ..errors import ValidationError
from .locks import CommitmentLockTable

logger = structlog.get_logger(__name__)

COMMITMENT_HASH_BYTES = 32


def escrow_account(commitment_hash: bytes, counter: bool = False) -> str:
    """Virtual escrow account holding one leg of a swap."""
    suffix = ":counter" if counter else ""
    return f"escrow:{commitment_hash.hex()}{suffix}"


def parse_escrow_account(account: str) -> Optional[tuple[bytes, bool]]:
    """Inverse of escrow_account: (commitment_hash, counter) or None."""
    parts = account.split(":")
    if len(parts) not in (2, 3) or parts[0] != "escrow":
        return None
    if len(parts) == 3 and parts[2] != "counter":
        return None
    try:
        commitment_hash = bytes.fromhex(parts[1])
    except ValueError:
        return None
    if len(commitment_hash) != COMMITMENT_HASH_BYTES:
        return None
    return commitment_hash, len(parts) == 3


@dataclass(frozen=True)
class LockSummary:
    """What a lock program commits its author to."""
    commitment_hash: bytes
    counter: bool
    token: str
    amount: Decimal
    escrow: str
    refund_height: int
    locker: str
    terms: SwapTerms


def _commitment_hash(commitment: Union[Commitment, bytes]) -> bytes:
    commitment_hash = commitment.hash if isinstance(commitment, Commitment) else commitment
    if not isinstance(commitment_hash, bytes) or len(commitment_hash) != COMMITMENT_HASH_BYTES:
        raise ValidationError("Commitment hash must be 32 bytes",
                              field="commitment_hash", value=commitment_hash)
    return commitment_hash


def _require_key(key: str, field: str) -> None:
    if not isinstance(key, str) or not key:
        raise ValidationError(f"{field} must be a non-empty public key", field=field, value=key)


class SwapProgramCompiler:
    """Compiles HTLC programs under per-commitment mutual exclusion."""

    def __init__(
        self,
        namespace: str = "htlc",
        supported_tokens: Optional[Iterable[str]] = None,
        lock_table: Optional[CommitmentLockTable] = None
    ):
        self.namespace = namespace
        self.supported_tokens = tuple(supported_tokens) if supported_tokens else None
        self.lock_table = lock_table or CommitmentLockTable()
        self.logger = logger

    def storage_key(self, commitment_hash: bytes, *parts: str) -> str:
        """Namespaced storage key for one commitment."""
        return "/".join([self.namespace, commitment_hash.hex(), *parts])

    def compile_lock(
        self,
        initiator_key: str,
        commitment: Union[Commitment, bytes],
        terms: SwapTerms,
        refund_height: int,
        current_height: int
    ) -> ContractProgram:
        """
        Compile the initiator's lock program.

        Raises:
            ValidationError: On invalid terms or an already-expired refund height
            CommitmentBusyError: If another compile holds this commitment
        """
        _require_key(initiator_key, "initiator_key")
        commitment_hash = _commitment_hash(commitment)
        validate_terms(terms, self.supported_tokens)
        validate_refund_height(refund_height, current_height)

        with self.lock_table.hold(commitment_hash):
            program = self._emit_lock(
                locker_key=initiator_key,
                commitment_hash=commitment_hash,
                terms=terms,
                refund_height=refund_height,
                counter=False,
            )

        self.logger.info(
            "Compiled lock program",
            commitment_hash=commitment_hash.hex(),
            from_token=terms.from_token,
            from_amount=str(terms.from_amount),
            refund_height=refund_height,
            program_digest=program.digest(),
        )
        return program

    def compile_counter_lock(
        self,
        taker_key: str,
        intent: SwapIntent,
        refund_height: int,
        current_height: int
    ) -> ContractProgram:
        """
        Compile the taker's mirrored lock against the intent's commitment.

        The taker's leg must expire strictly before the initiator's, so the
        taker can still refund after the initiator could have claimed.

        Raises:
            ValidationError: On invalid terms or refund heights
            CommitmentBusyError: If another compile holds this commitment
        """
        _require_key(taker_key, "taker_key")
        commitment_hash = _commitment_hash(intent.commitment_hash)
        terms = intent.terms.mirrored()
        validate_terms(terms, self.supported_tokens)
        validate_refund_height(refund_height, current_height)

        if refund_height >= intent.refund_height:
            raise ValidationError(
                f"Counter-lock refund height {refund_height} must be below "
                f"the intent's refund height {intent.refund_height}",
                field="refund_height",
                value=refund_height,
            )

        with self.lock_table.hold(commitment_hash):
            program = self._emit_lock(
                locker_key=taker_key,
                commitment_hash=commitment_hash,
                terms=terms,
                refund_height=refund_height,
                counter=True,
            )

        self.logger.info(
            "Compiled counter-lock program",
            commitment_hash=commitment_hash.hex(),
            intent_id=intent.id,
            from_token=terms.from_token,
            from_amount=str(terms.from_amount),
            refund_height=refund_height,
        )
        return program

    def compile_claim(
        self,
        secret: bytes,
        commitment_hash: bytes,
        claimant_key: Optional[str] = None,
        token: Optional[str] = None,
        amount=None,
        escrow: Optional[str] = None
    ) -> ContractProgram:
        """
        Compile a claim program revealing the secret.

        The program does not check the secret at compile time: a wrong
        secret yields a program whose AssertEqual aborts it with no effects.
        With a claimant, the escrow is paid out after the assertion.

        Raises:
            ValidationError: On a malformed secret or incomplete payout
            CommitmentBusyError: If another compile holds this commitment
        """
        commitment_hash = _commitment_hash(commitment_hash)
        if not isinstance(secret, bytes) or not secret:
            raise ValidationError("Secret must be non-empty bytes", field="secret")

        instructions = [
            PushValue(secret),
            Hash("sha256"),
            PushValue(commitment_hash),
            AssertEqual(),
        ]

        if claimant_key is not None:
            _require_key(claimant_key, "claimant_key")
            if not token:
                raise ValidationError("token is required to pay out a claim", field="token")
            payout = parse_amount(amount, "amount")
            escrow = escrow or escrow_account(commitment_hash)
            instructions.extend([
                StoreKeyValue(self.storage_key(commitment_hash, "claim", escrow), claimant_key),
                Transfer(escrow, claimant_key, token, payout),
            ])

        instructions.append(Return())

        with self.lock_table.hold(commitment_hash):
            program = ContractProgram(tuple(instructions))

        self.logger.info(
            "Compiled claim program",
            commitment_hash=commitment_hash.hex(),
            claimant_key=claimant_key,
            escrow=escrow,
        )
        return program

    def compile_refund(
        self,
        locker_key: str,
        commitment_hash: bytes,
        terms: SwapTerms,
        refund_height: int,
        current_height: int,
        escrow: Optional[str] = None
    ) -> ContractProgram:
        """
        Compile a refund paying the escrow back to the locker.

        Raises:
            ValidationError: If current_height has not passed refund_height
            CommitmentBusyError: If another compile holds this commitment
        """
        _require_key(locker_key, "locker_key")
        commitment_hash = _commitment_hash(commitment_hash)

        if current_height <= refund_height:
            raise ValidationError(
                f"Refund not yet available: height {current_height} has not passed {refund_height}",
                field="current_height",
                value=current_height,
                context={"refund_height": refund_height},
            )

        escrow = escrow or escrow_account(commitment_hash)

        with self.lock_table.hold(commitment_hash):
            program = ContractProgram((
                StoreKeyValue(self.storage_key(commitment_hash, "refund", escrow), locker_key),
                Transfer(escrow, locker_key, terms.from_token, terms.from_amount),
                Return(),
            ))

        self.logger.info(
            "Compiled refund program",
            commitment_hash=commitment_hash.hex(),
            locker_key=locker_key,
            refund_height=refund_height,
            current_height=current_height,
        )
        return program

    def terms_key(self, commitment_hash: bytes, counter: bool = False) -> str:
        """Storage key of the terms record written by a lock program."""
        prefix = ("counter",) if counter else ()
        return self.storage_key(commitment_hash, *prefix, "terms")

    def inspect_lock(self, program: ContractProgram) -> LockSummary:
        """
        Audit a lock or counter-lock program without executing it.

        Checks that the program has the canonical lock shape, that its
        commitment, terms record and escrow all refer to the same hash, and
        that the escrow is credited exactly what is locked.

        Raises:
            ValidationError: If the program is not a canonical lock
        """
        def reject(reason: str) -> ValidationError:
            return ValidationError(f"Not a canonical lock program: {reason}",
                                   field="program", value=program.digest())

        shape = (StoreKeyValue, StoreKeyValue, LockFunds, AdjustBalance, Return)
        if len(program) != len(shape) or not all(
                isinstance(ins, kind) for ins, kind in zip(program, shape)):
            raise reject("unexpected instruction sequence")

        commitment_store, terms_store, lock, credit, _ = program

        parsed = parse_escrow_account(credit.account)
        if parsed is None:
            raise reject("escrow account is malformed")
        commitment_hash, counter = parsed

        if commitment_store.value != commitment_hash.hex():
            raise reject("commitment does not match escrow")
        prefix = ("counter",) if counter else ()
        if commitment_store.key != self.storage_key(commitment_hash, *prefix, "commitment"):
            raise reject("unexpected commitment key")
        if terms_store.key != self.terms_key(commitment_hash, counter):
            raise reject("unexpected terms key")

        if lock.token != credit.token or lock.amount != credit.delta:
            raise reject("escrow credit differs from locked funds")

        try:
            record = orjson.loads(terms_store.value)
            terms = SwapTerms(
                from_token=record["from_token"],
                from_amount=parse_amount(record["from_amount"], "from_amount"),
                to_token=record["to_token"],
                to_amount=parse_amount(record["to_amount"], "to_amount"),
            )
            refund_height = record["refund_height"]
            locker = record["locker"]
        except (orjson.JSONDecodeError, KeyError, TypeError, ValidationError) as e:
            raise reject(f"terms record unreadable: {e}") from e

        if terms.from_token != lock.token or terms.from_amount != lock.amount:
            raise reject("terms record differs from locked funds")

        return LockSummary(
            commitment_hash=commitment_hash,
            counter=counter,
            token=lock.token,
            amount=lock.amount,
            escrow=credit.account,
            refund_height=refund_height,
            locker=locker,
            terms=terms,
        )

    def _emit_lock(
        self,
        locker_key: str,
        commitment_hash: bytes,
        terms: SwapTerms,
        refund_height: int,
        counter: bool
    ) -> ContractProgram:
        """Emit the lock instruction sequence for one leg."""
        prefix = ("counter",) if counter else ()
        record = orjson.dumps({
            **terms.to_dict(),
            "refund_height": refund_height,
            "locker": locker_key,
        }, option=orjson.OPT_SORT_KEYS).decode()

        return ContractProgram((
            StoreKeyValue(self.storage_key(commitment_hash, *prefix, "commitment"),
                          commitment_hash.hex()),
            StoreKeyValue(self.terms_key(commitment_hash, counter), record),
            LockFunds(terms.from_token, terms.from_amount),
            AdjustBalance(escrow_account(commitment_hash, counter=counter),
                          terms.from_token, terms.from_amount),
            Return(),
        ))
