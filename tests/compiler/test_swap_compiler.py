"""Tests for HTLC program compilation."""

import threading
from decimal import Decimal

import pytest

from bitswap_app.compiler import (
    CommitmentLockTable,
    SwapProgramCompiler,
    escrow_account,
    parse_escrow_account,
)
from bitswap_app.contract import (
    AdjustBalance,
    AssertEqual,
    ContractProgram,
    LockFunds,
    OpCode,
    StoreKeyValue,
    Transfer,
)
from bitswap_app.contract.evaluator import evaluate
from bitswap_app.crypto import Commitment, generate_secret, sha256
from bitswap_app.data.models import SwapIntent, SwapTerms
from bitswap_app.errors import CommitmentBusyError, ValidationError


@pytest.fixture
def compiler() -> SwapProgramCompiler:
    return SwapProgramCompiler(supported_tokens=("SAT", "TEST", "ATOM", "BTC"))


@pytest.fixture
def commitment() -> Commitment:
    secret = generate_secret()
    return Commitment(secret=secret, hash=sha256(secret))


@pytest.fixture
def terms() -> SwapTerms:
    return SwapTerms("SAT", Decimal("100"), "TEST", Decimal("5000"))


def _intent(commitment_hash: bytes, terms: SwapTerms, refund_height: int = 244) -> SwapIntent:
    return SwapIntent(
        id="intent-1",
        proposer_key="alice",
        commitment_hash=commitment_hash,
        terms=terms,
        refund_height=refund_height,
        created_at=1_700_000_000,
    )


class TestEscrowAccount:
    """Test escrow account naming."""

    def test_round_trip(self):
        """Test escrow names parse back to their commitment."""
        h = bytes(range(32))
        assert parse_escrow_account(escrow_account(h)) == (h, False)
        assert parse_escrow_account(escrow_account(h, counter=True)) == (h, True)

    def test_not_an_escrow(self):
        """Test ordinary accounts are not escrows."""
        assert parse_escrow_account("alice") is None
        assert parse_escrow_account("escrow:zz") is None
        assert parse_escrow_account("escrow:" + "00" * 32 + ":other") is None


class TestCompileLock:
    """Test lock program compilation."""

    def test_lock_program_shape(self, compiler, commitment, terms):
        """Test the lock stores the hash and credits escrow with the amount."""
        program = compiler.compile_lock("alice", commitment, terms, 244, 100)

        assert program.opcodes() == [
            OpCode.STORE_KEY_VALUE,
            OpCode.STORE_KEY_VALUE,
            OpCode.LOCK_FUNDS,
            OpCode.ADJUST_BALANCE,
            OpCode.RETURN,
        ]
        assert program[0] == StoreKeyValue(f"htlc/{commitment.hash_hex}/commitment", commitment.hash_hex)
        assert program[2] == LockFunds("SAT", Decimal("100"))
        assert program[3] == AdjustBalance(escrow_account(commitment.hash), "SAT", Decimal("100"))

    def test_lock_never_contains_secret(self, compiler, commitment, terms):
        """Test the secret does not leak into the lock program."""
        program = compiler.compile_lock("alice", commitment, terms, 244, 100)
        assert commitment.secret.hex() not in program.to_wire().decode()
        assert program.extract_preimage() is None

    def test_lock_evaluates(self, compiler, commitment, terms):
        """Test the lock program runs against a funded caller."""
        program = compiler.compile_lock("alice", commitment, terms, 244, 100)
        result = evaluate(program, "alice", balances={("alice", "SAT"): Decimal("1000")})

        assert result.success
        assert result.balance_deltas[(escrow_account(commitment.hash), "SAT")] == Decimal("100")

    def test_equal_tokens_rejected(self, compiler, commitment):
        """Test swapping a token for itself."""
        terms = SwapTerms("SAT", Decimal("1"), "SAT", Decimal("2"))
        with pytest.raises(ValidationError) as exc_info:
            compiler.compile_lock("alice", commitment, terms, 244, 100)
        assert exc_info.value.field == "to_token"

    def test_non_positive_amount_rejected(self, compiler, commitment):
        """Test zero amounts."""
        terms = SwapTerms("SAT", Decimal("0"), "TEST", Decimal("2"))
        with pytest.raises(ValidationError):
            compiler.compile_lock("alice", commitment, terms, 244, 100)

    def test_unsupported_token_rejected(self, compiler, commitment):
        """Test tickers outside the configured list."""
        terms = SwapTerms("DOGE", Decimal("1"), "TEST", Decimal("2"))
        with pytest.raises(ValidationError):
            compiler.compile_lock("alice", commitment, terms, 244, 100)

    @pytest.mark.parametrize("refund_height", [100, 99])
    def test_refund_height_must_be_in_future(self, compiler, commitment, terms, refund_height):
        """Test refund heights at or below the current height."""
        with pytest.raises(ValidationError) as exc_info:
            compiler.compile_lock("alice", commitment, terms, refund_height, 100)
        assert exc_info.value.field == "refund_height"

    def test_bad_commitment_hash(self, compiler, terms):
        """Test commitment hashes of the wrong length."""
        with pytest.raises(ValidationError):
            compiler.compile_lock("alice", b"short", terms, 244, 100)


class TestCompileCounterLock:
    """Test counter-lock compilation."""

    def test_counter_lock_mirrors_terms(self, compiler, commitment, terms):
        """Test the taker locks the wanted token against the same hash."""
        intent = _intent(commitment.hash, terms)
        program = compiler.compile_counter_lock("bob", intent, 238, 100)

        assert program[0].key == f"htlc/{commitment.hash_hex}/counter/commitment"
        assert program[2] == LockFunds("TEST", Decimal("5000"))
        assert program[3].account == escrow_account(commitment.hash, counter=True)

    def test_counter_lock_must_expire_first(self, compiler, commitment, terms):
        """Test the counter-leg cannot outlive the initiator's leg."""
        intent = _intent(commitment.hash, terms, refund_height=244)
        with pytest.raises(ValidationError):
            compiler.compile_counter_lock("bob", intent, 244, 100)

    def test_inspect_counter_lock(self, compiler, commitment, terms):
        """Test auditing a counter-lock recovers its terms."""
        intent = _intent(commitment.hash, terms)
        program = compiler.compile_counter_lock("bob", intent, 238, 100)
        summary = compiler.inspect_lock(program)

        assert summary.counter is True
        assert summary.commitment_hash == commitment.hash
        assert summary.locker == "bob"
        assert summary.refund_height == 238
        assert summary.terms == terms.mirrored()

    def test_inspect_rejects_tampered_lock(self, compiler, commitment, terms):
        """Test an escrow credit larger than the locked funds is caught."""
        program = compiler.compile_lock("alice", commitment, terms, 244, 100)
        instructions = list(program)
        instructions[3] = AdjustBalance(instructions[3].account, "SAT", Decimal("1000"))

        with pytest.raises(ValidationError):
            compiler.inspect_lock(ContractProgram(instructions))


class TestCompileClaim:
    """Test claim compilation."""

    def test_correct_secret_passes(self, compiler, commitment):
        """Test a claim with the real preimage passes its assertion."""
        program = compiler.compile_claim(commitment.secret, commitment.hash)
        result = evaluate(program, "bob")

        assert result.success
        assert result.assertion_passed is True

    def test_wrong_secret_fails_assertion(self, compiler, commitment):
        """Test a claim with another secret fails at AssertEqual with no effects."""
        program = compiler.compile_claim(generate_secret(), commitment.hash, "bob", "SAT", Decimal("100"))
        result = evaluate(
            program, "bob",
            balances={(escrow_account(commitment.hash), "SAT"): Decimal("100")},
        )

        assert not result.success
        assert result.failed_op == OpCode.ASSERT_EQUAL
        assert result.assertion_passed is False
        assert result.balance_deltas == {}
        assert result.storage_writes == {}

    def test_claim_pays_out_escrow(self, compiler, commitment):
        """Test a claim with a claimant transfers the escrow."""
        program = compiler.compile_claim(commitment.secret, commitment.hash, "bob", "SAT", Decimal("100"))

        assert program.extract_preimage() == commitment.secret
        assert Transfer(escrow_account(commitment.hash), "bob", "SAT", Decimal("100")) in program
        assert program.find(OpCode.ASSERT_EQUAL)[0][1] == AssertEqual()

    def test_claim_payout_requires_token(self, compiler, commitment):
        """Test an incomplete payout."""
        with pytest.raises(ValidationError):
            compiler.compile_claim(commitment.secret, commitment.hash, "bob", None, Decimal("1"))

    def test_empty_secret_rejected(self, compiler, commitment):
        """Test empty secrets."""
        with pytest.raises(ValidationError):
            compiler.compile_claim(b"", commitment.hash)


class TestCompileRefund:
    """Test refund compilation."""

    @pytest.mark.parametrize("current_height", [243, 244])
    def test_refund_before_timeout_rejected(self, compiler, commitment, terms, current_height):
        """Test refunds at or before the refund height."""
        with pytest.raises(ValidationError):
            compiler.compile_refund("alice", commitment.hash, terms, 244, current_height)

    def test_refund_after_timeout(self, compiler, commitment, terms):
        """Test the refund returns the escrow to the locker."""
        program = compiler.compile_refund("alice", commitment.hash, terms, 244, 245)
        assert Transfer(escrow_account(commitment.hash), "alice", "SAT", Decimal("100")) in program


class TestCommitmentLockTable:
    """Test per-commitment mutual exclusion."""

    def test_hold_releases(self):
        """Test the lock is released after the block."""
        table = CommitmentLockTable()
        with table.hold(b"h"):
            assert table.is_held(b"h")
        assert not table.is_held(b"h")
        assert len(table) == 0

    def test_concurrent_hold_is_busy(self):
        """Test a second holder for the same hash is refused."""
        table = CommitmentLockTable()
        with table.hold(b"h"):
            with pytest.raises(CommitmentBusyError):
                with table.hold(b"h"):
                    pass
            with table.hold(b"other"):
                assert len(table) == 2

    def test_concurrent_compile_same_hash(self, compiler, commitment, terms):
        """Test compiling while another thread holds the commitment."""
        entered = threading.Event()
        release = threading.Event()

        def holder():
            with compiler.lock_table.hold(commitment.hash):
                entered.set()
                release.wait(timeout=5)

        thread = threading.Thread(target=holder)
        thread.start()
        entered.wait(timeout=5)
        try:
            with pytest.raises(CommitmentBusyError):
                compiler.compile_lock("alice", commitment, terms, 244, 100)
        finally:
            release.set()
            thread.join()
