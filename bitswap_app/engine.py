"""
Swap engine coordinator.

Wires the commitment engine, program compiler, state machine and order book
to a wallet and a broadcast channel, and drives one party's side of each
swap:

Initiator: propose → execute lock → announce → observe counter-lock → claim
Taker:     sync order book → take intent → claim with the revealed secret
Either:    refund once the chain is past the leg's refund height
"""

from dataclasses import asdict, dataclass
from typing import Any, Optional, Union

import structlog

from .broadcast.base import BroadcastChannel
from .broadcast.message import SignedMessage, sign_message
from .compiler.swap_compiler import LockSummary, SwapProgramCompiler, escrow_account
from .config.defaults import DefaultConfig
from .config.loader import ConfigLoader
from .config.validation import ConfigValidator
from .contract.program import ContractProgram
from .crypto.commitment import CommitmentEngine
from .data.models import SwapIntent, SwapTerms
from .data.parsers import encode_intent_payload
from .data.validators import make_terms, validate_refund_height
from .errors import (
    AmbiguousExecutionError,
    ExecutionRejectedError,
    HashMismatchError,
    StateError,
    ValidationError,
)
from .orderbook.synchronizer import OrderBookSynchronizer
from .persistence.secret_store import SecretStore
from .state.machine import next_state
from .state.models import SwapRole, SwapRuntimeState, SwapTrigger
from .state.runtime import SwapRuntimeManager
from .wallet.base import ExecutionResult, ExecutionStatus, SigningWallet
from .wallet.discovery import ensure_network

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SwapProposal:
    """A freshly proposed swap, ready for its lock to be executed."""
    swap_id: str
    commitment_hash: bytes
    terms: SwapTerms
    refund_height: int
    lock_program: ContractProgram


class SwapEngine:
    """
    Coordinates one party's participation in HTLC swaps.

    The swap id is the hex commitment hash, shared by both parties.
    """

    def __init__(
        self,
        wallet: SigningWallet,
        channel: BroadcastChannel,
        config: Optional[DefaultConfig] = None,
        secret_store: Optional[SecretStore] = None,
        config_dir: Optional[str] = None,
        network: Optional[str] = None
    ) -> None:
        """
        Initialize the swap engine.

        Raises:
            ValidationError: If the configuration is invalid
            WrongNetworkError: If the wallet is on another network
        """
        self.logger = logger
        self.config = config or ConfigLoader.create(config_dir).load(network)

        issues = ConfigValidator.validate_config(asdict(self.config))
        if issues:
            first = issues[0]
            raise ValidationError(
                f"Invalid configuration: {first.field}: {first.message}",
                field=first.field,
                value=first.value,
                context={"issues": [f"{i.field}: {i.message}" for i in issues]},
            )

        ensure_network(wallet, self.config.network.network)

        self.wallet = wallet
        self.channel = channel
        self.identity = wallet.get_public_key()

        store = secret_store or SecretStore(self.config.storage.secret_db_path)
        self.commitments = CommitmentEngine(store, self.identity, self.config.swap.secret_bytes)
        self.compiler = SwapProgramCompiler(
            namespace=self.config.swap.key_namespace,
            supported_tokens=self.config.network.supported_tokens,
        )
        self.runtime = SwapRuntimeManager()
        self.orderbook = OrderBookSynchronizer(
            verifier=wallet,
            capacity=self.config.orderbook.capacity,
            seen_ids_capacity=self.config.orderbook.seen_ids_capacity,
            topic=self.config.orderbook.topic,
            max_future_skew_seconds=self.config.orderbook.max_future_skew_seconds,
        )

        self._lock_programs: dict[str, ContractProgram] = {}
        self._intents: dict[str, SwapIntent] = {}

        self.logger.info(
            "Swap engine initialized",
            identity=self.identity,
            network=self.config.network.network
        )

    # Initiator side

    def propose_swap(
        self,
        from_token: str,
        from_amount: Any,
        to_token: str,
        to_amount: Any,
        refund_delta: Optional[int] = None
    ) -> SwapProposal:
        """
        Create a commitment and compile the lock program for a new swap.

        The secret is persisted before the proposal is returned, so a lock can
        never exist for a secret this party has lost.
        """
        terms = make_terms(from_token, from_amount, to_token, to_amount,
                           supported_tokens=self.config.network.supported_tokens)
        current_height = self.wallet.get_chain_height()
        if refund_delta is None:
            refund_delta = self.config.swap.default_refund_delta
        refund_height = current_height + refund_delta
        validate_refund_height(refund_height, current_height)

        commitment = self.commitments.create_commitment()
        program = self.compiler.compile_lock(
            self.identity, commitment, terms, refund_height, current_height
        )

        swap_id = commitment.hash_hex
        self.runtime.start_initiator(swap_id, terms=terms, refund_height=refund_height)
        self._lock_programs[swap_id] = program

        return SwapProposal(
            swap_id=swap_id,
            commitment_hash=commitment.hash,
            terms=terms,
            refund_height=refund_height,
            lock_program=program,
        )

    def execute_lock(self, swap_id: str) -> ExecutionResult:
        """Execute a proposed swap's lock program through the wallet."""
        self._check_trigger(swap_id, SwapTrigger.LOCK_CONFIRMED)
        program = self._lock_programs[swap_id]

        result = self._execute(swap_id, program, "lock")
        self.runtime.apply(swap_id, SwapTrigger.LOCK_CONFIRMED, txid=result.txid)
        return result

    def announce(self, swap_id: str) -> SignedMessage:
        """Publish the secret-free intent for a locked swap."""
        state = self._check_trigger(swap_id, SwapTrigger.INTENT_PUBLISHED)
        commitment_hash = bytes.fromhex(swap_id)

        topic = self.config.orderbook.topic
        payload = encode_intent_payload(commitment_hash, state.terms, state.refund_height)
        message = sign_message(self.wallet, topic, payload)

        self.channel.publish_with_retry(
            topic,
            message,
            max_retries=self.config.broadcast.retry_attempts,
            retry_delay=self.config.broadcast.retry_delay_seconds,
        )
        self.runtime.apply(swap_id, SwapTrigger.INTENT_PUBLISHED, message_id=message.id)
        return message

    def observe_counter_lock(self, swap_id: str, counter_program: ContractProgram) -> LockSummary:
        """
        Audit a taker's counter-lock and record it.

        Raises:
            ValidationError: If the program does not lock the expected
                counter-leg against this swap's commitment in time
        """
        state = self._check_trigger(swap_id, SwapTrigger.COUNTER_LOCK_OBSERVED)
        summary = self.compiler.inspect_lock(counter_program)
        expected = state.terms.mirrored()

        problems = []
        if not summary.counter:
            problems.append("not a counter-lock")
        if summary.commitment_hash.hex() != swap_id:
            problems.append("different commitment")
        if summary.terms != expected:
            problems.append("terms differ from the intent")
        if summary.refund_height >= state.refund_height:
            problems.append("counter-lock outlives the initiator's refund height")

        if problems:
            raise ValidationError(
                f"Counter-lock rejected: {', '.join(problems)}",
                field="counter_program",
                value=counter_program.digest(),
            )

        self.runtime.apply(
            swap_id,
            SwapTrigger.COUNTER_LOCK_OBSERVED,
            taker=summary.locker,
            counter_refund_height=summary.refund_height,
        )
        return summary

    def claim(self, swap_id: str) -> ExecutionResult:
        """
        Claim the taker's counter-leg, revealing the secret.

        Raises:
            HashMismatchError: If the stored secret does not match the commitment
        """
        state = self._check_trigger(swap_id, SwapTrigger.CLAIM_EXECUTED)
        if state.role != SwapRole.INITIATOR:
            raise StateError("Only the initiator claims with its own secret",
                             current_state=state.state.value)

        commitment_hash = bytes.fromhex(swap_id)
        secret = self.commitments.lookup_secret(commitment_hash)
        self._verify_preimage(secret, commitment_hash)

        program = self.compiler.compile_claim(
            secret,
            commitment_hash,
            claimant_key=self.identity,
            token=state.terms.to_token,
            amount=state.terms.to_amount,
            escrow=escrow_account(commitment_hash, counter=True),
        )
        result = self._execute(swap_id, program, "claim")
        self.runtime.apply(swap_id, SwapTrigger.CLAIM_EXECUTED, txid=result.txid)
        return result

    # Taker side

    def sync_orderbook(self, limit: Optional[int] = None) -> dict[str, int]:
        """Ingest everything currently on the intent topic."""
        topic = self.config.orderbook.topic
        return self.orderbook.sync(self.channel.subscribe(topic), limit=limit)

    def find_intents(self, from_token: str, to_token: str) -> list[SwapIntent]:
        """Intents offering from_token for to_token, most recent first."""
        return self.orderbook.query(from_token, to_token)

    def take_intent(
        self,
        intent: Union[SwapIntent, str],
        refund_margin: Optional[int] = None
    ) -> ExecutionResult:
        """
        Lock the counter-leg of an intent from the order book.

        The counter-lock expires refund_margin blocks before the intent.
        """
        if isinstance(intent, str):
            found = self.orderbook.get_intent(intent)
            if found is None:
                raise ValidationError(f"Unknown intent {intent}", field="intent", value=intent)
            intent = found

        if intent.proposer_key == self.identity:
            raise ValidationError("Cannot take an intent this party proposed",
                                  field="intent", value=intent.id)

        margin = self.config.swap.counter_refund_margin if refund_margin is None else refund_margin
        current_height = self.wallet.get_chain_height()
        refund_height = intent.refund_height - margin

        program = self.compiler.compile_counter_lock(self.identity, intent, refund_height, current_height)

        swap_id = intent.commitment_hex
        self.runtime.start_taker(swap_id, terms=intent.terms.mirrored(), refund_height=refund_height)
        self._intents[swap_id] = intent

        try:
            result = self._execute(swap_id, program, "counter_lock")
        except ExecutionRejectedError:
            # Nothing landed; forget the swap so the intent can be retried.
            self.runtime.stop_listening(swap_id)
            self._intents.pop(swap_id, None)
            raise

        self.runtime.apply(swap_id, SwapTrigger.COUNTER_LOCK_OBSERVED,
                           txid=result.txid, intent_id=intent.id)
        return result

    def claim_with_revealed_secret(
        self,
        swap_id: str,
        revealed: Union[ContractProgram, bytes]
    ) -> ExecutionResult:
        """
        Claim the initiator's leg with the secret from its claim program.

        Args:
            swap_id: Commitment hash of a swap this party took
            revealed: The initiator's claim program as observed, or the secret

        Raises:
            HashMismatchError: If no matching preimage was revealed
        """
        state = self._check_trigger(swap_id, SwapTrigger.CLAIM_EXECUTED)
        if state.role != SwapRole.TAKER:
            raise StateError("Only the taker claims with a revealed secret",
                             current_state=state.state.value)

        commitment_hash = bytes.fromhex(swap_id)
        secret = revealed.extract_preimage() if isinstance(revealed, ContractProgram) else revealed
        if secret is None:
            raise HashMismatchError("Program reveals no preimage", commitment_hash=swap_id)
        self._verify_preimage(secret, commitment_hash)

        intent = self._intents[swap_id]
        program = self.compiler.compile_claim(
            secret,
            commitment_hash,
            claimant_key=self.identity,
            token=intent.terms.from_token,
            amount=intent.terms.from_amount,
            escrow=escrow_account(commitment_hash),
        )
        result = self._execute(swap_id, program, "claim")
        self.runtime.apply(swap_id, SwapTrigger.CLAIM_EXECUTED, txid=result.txid)
        return result

    # Either side

    def refund(self, swap_id: str) -> ExecutionResult:
        """
        Recover this party's own leg after its refund height.

        Raises:
            StateError: If the swap is not refundable yet or is settled
        """
        current_height = self.wallet.get_chain_height()
        state = self._check_trigger(swap_id, SwapTrigger.REFUND_EXECUTED, current_height)
        commitment_hash = bytes.fromhex(swap_id)

        program = self.compiler.compile_refund(
            self.identity,
            commitment_hash,
            state.terms,
            state.refund_height,
            current_height,
            escrow=escrow_account(commitment_hash, counter=state.role == SwapRole.TAKER),
        )
        result = self._execute(swap_id, program, "refund")
        self.runtime.apply(swap_id, SwapTrigger.REFUND_EXECUTED,
                           current_height=current_height, txid=result.txid)
        return result

    def get_swap_state(self, swap_id: str) -> Optional[SwapRuntimeState]:
        return self.runtime.get_state(swap_id)

    def stop_listening(self, swap_id: str) -> None:
        """Forget local state for a swap. Anything already locked stays locked."""
        self.runtime.stop_listening(swap_id)
        self._lock_programs.pop(swap_id, None)
        self._intents.pop(swap_id, None)

    def get_runtime_stats(self) -> dict[str, Any]:
        """Get engine runtime statistics."""
        return {
            "identity": self.identity,
            "active_swaps": len(self.runtime.active_swaps()),
            "orderbook": self.orderbook.get_stats(),
            "channel": self.channel.get_stats(),
        }

    def _check_trigger(
        self,
        swap_id: str,
        trigger: SwapTrigger,
        current_height: Optional[int] = None
    ) -> SwapRuntimeState:
        """Fail before touching the wallet if the trigger could not be applied."""
        state = self.runtime.get_state(swap_id)
        if state is None:
            raise StateError(f"Swap {swap_id} is not tracked", attempted_state=trigger.value)
        next_state(state.state, trigger, current_height=current_height,
                   refund_height=state.refund_height)
        return state

    def _verify_preimage(self, secret: bytes, commitment_hash: bytes) -> None:
        if not CommitmentEngine.verify(secret, commitment_hash):
            raise HashMismatchError(
                "Preimage does not match commitment",
                commitment_hash=commitment_hash.hex(),
            )

    def _execute(self, swap_id: str, program: ContractProgram, action: str) -> ExecutionResult:
        """Run a program through the wallet, mapping outcomes to errors."""
        digest = program.digest()
        try:
            result = self.wallet.execute(program)
        except Exception as e:
            self.logger.error("Wallet execution failed", swap_id=swap_id, action=action,
                              program_digest=digest, error=str(e))
            raise AmbiguousExecutionError(
                f"{action} submission failed with an unknown outcome: {e}",
                program_digest=digest,
                context={"swap_id": swap_id, "action": action},
            ) from e

        if result.status == ExecutionStatus.CONFIRMED:
            self.logger.info("Program executed", swap_id=swap_id, action=action, txid=result.txid)
            return result

        if result.status == ExecutionStatus.REJECTED:
            self.logger.warning("Program rejected", swap_id=swap_id, action=action,
                                reason=result.message)
            raise ExecutionRejectedError(
                f"{action} rejected: {result.message}",
                program_digest=digest,
                context={"swap_id": swap_id, "action": action},
            )

        self.logger.error("Program outcome unknown", swap_id=swap_id, action=action,
                          txid=result.txid, reason=result.message)
        raise AmbiguousExecutionError(
            f"{action} outcome unknown: {result.message}",
            program_digest=digest,
            txid=result.txid,
            context={"swap_id": swap_id, "action": action},
        )
