"""
Order book synchronization from the broadcast channel.

Each inbound message goes through, in order: duplicate check by id, id
integrity, signature verification through the wallet, timestamp skew and
payload schema. Accepted intents enter the bounded index; rejected messages
are not remembered, so a later valid copy can still be accepted.
"""

import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from ..broadcast.message import SignedMessage
from ..data.models import SwapIntent
from ..data.parsers import parse_intent_message
from ..errors import MalformedMessageError
from ..logging.config import get_orderbook_logger, log_ingest_decision
from ..utils.time import validate_message_time
from ..validation.intent_schema import IntentValidator
from .index import OrderBookIndex

orderbook_logger = get_orderbook_logger(__name__)


class IngestOutcome(str, Enum):
    """What ingest did with a message."""
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class IngestResult:
    """Result of ingesting one message."""
    outcome: IngestOutcome
    message_id: Optional[str] = None
    reason: Optional[str] = None
    intent: Optional[SwapIntent] = None


class OrderBookSynchronizer:
    """Thread-safe order book fed by broadcast messages."""

    def __init__(
        self,
        verifier: Any,
        capacity: int = 100,
        seen_ids_capacity: int = 1000,
        topic: Optional[str] = None,
        max_future_skew_seconds: int = 300,
        validator: Optional[IntentValidator] = None
    ):
        """
        Args:
            verifier: Wallet-like object providing verify(pubkey, message, signature)
            capacity: Maximum intents kept in the index
            seen_ids_capacity: How many accepted ids to remember for dedup
            topic: If set, messages on other topics are rejected
            max_future_skew_seconds: Tolerated clock skew for created_at
            validator: Payload validator
        """
        self.verifier = verifier
        self.topic = topic
        self.max_future_skew_seconds = max_future_skew_seconds
        self.validator = validator or IntentValidator()
        self.index = OrderBookIndex(capacity)
        self.logger = orderbook_logger

        self._lock = threading.Lock()
        self._seen_ids: set[str] = set()
        self._seen_order: deque[str] = deque()
        self._seen_capacity = max(seen_ids_capacity, capacity)

        self._accepted = 0
        self._rejected = 0
        self._duplicates = 0

    def ingest(self, message: Any) -> IngestResult:
        """
        Ingest one message from the channel.

        Args:
            message: SignedMessage, decoded envelope dict, or raw wire bytes

        Returns:
            IngestResult with ACCEPTED, REJECTED or DUPLICATE
        """
        try:
            message = self._coerce(message)
        except MalformedMessageError as e:
            return self._reject(None, e.reason)

        with self._lock:
            if message.id in self._seen_ids:
                self._duplicates += 1
                log_ingest_decision(self.logger, message.id, IngestOutcome.DUPLICATE.value)
                return IngestResult(IngestOutcome.DUPLICATE, message_id=message.id)

        reason = self._check(message)
        if reason is not None:
            return self._reject(message.id, reason)

        try:
            intent = parse_intent_message(message, validator=self.validator)
        except MalformedMessageError as e:
            return self._reject(message.id, e.reason)

        with self._lock:
            # Another thread may have accepted the same id meanwhile.
            if message.id in self._seen_ids:
                self._duplicates += 1
                log_ingest_decision(self.logger, message.id, IngestOutcome.DUPLICATE.value)
                return IngestResult(IngestOutcome.DUPLICATE, message_id=message.id)

            self._remember(message.id)
            evicted = self.index.add(intent)
            self._accepted += 1

        log_ingest_decision(
            self.logger,
            message.id,
            IngestOutcome.ACCEPTED.value,
            context={
                "pair": f"{intent.terms.from_token}/{intent.terms.to_token}",
                "commitment_hash": intent.commitment_hex,
                "evicted": evicted.id if evicted else None,
            },
        )
        return IngestResult(IngestOutcome.ACCEPTED, message_id=message.id, intent=intent)

    def query(self, from_token: str, to_token: str) -> list[SwapIntent]:
        """Intents offering from_token for to_token, most recent first."""
        with self._lock:
            return self.index.query(from_token, to_token)

    def get_intent(self, intent_id: str) -> Optional[SwapIntent]:
        with self._lock:
            return self.index.get(intent_id)

    def sync(self, subscription: Iterable[Any], limit: Optional[int] = None) -> dict[str, int]:
        """
        Drain a subscription through ingest.

        Args:
            subscription: Iterator of messages from a channel
            limit: Stop after this many messages

        Returns:
            Count per outcome for this run
        """
        counts = {outcome.value: 0 for outcome in IngestOutcome}

        for processed, message in enumerate(subscription, start=1):
            result = self.ingest(message)
            counts[result.outcome.value] += 1
            if limit is not None and processed >= limit:
                break

        self.logger.info("Order book sync complete", **counts, index_size=len(self))
        return counts

    def get_stats(self) -> dict[str, int]:
        """Get ingest statistics."""
        with self._lock:
            return {
                "accepted": self._accepted,
                "rejected": self._rejected,
                "duplicate": self._duplicates,
                "index_size": len(self.index),
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self.index)

    def _coerce(self, message: Any) -> SignedMessage:
        if isinstance(message, SignedMessage):
            return message
        if isinstance(message, (bytes, str)):
            return SignedMessage.from_wire(message)
        return SignedMessage.from_dict(message)

    def _check(self, message: SignedMessage) -> Optional[str]:
        """Envelope checks. Returns a rejection reason or None."""
        if self.topic is not None and message.topic != self.topic:
            return "wrong_topic"

        if not message.has_valid_id():
            return "id_mismatch"

        if not self.verifier.verify(message.pubkey, message.id.encode(), message.signature):
            return "bad_signature"

        if not validate_message_time(message.created_at, self.max_future_skew_seconds):
            return "bad_timestamp"

        return None

    def _remember(self, message_id: str) -> None:
        self._seen_ids.add(message_id)
        self._seen_order.append(message_id)
        if len(self._seen_order) > self._seen_capacity:
            self._seen_ids.discard(self._seen_order.popleft())

    def _reject(self, message_id: Optional[str], reason: str) -> IngestResult:
        with self._lock:
            self._rejected += 1
        log_ingest_decision(self.logger, message_id or "unknown", IngestOutcome.REJECTED.value, reason=reason)
        return IngestResult(IngestOutcome.REJECTED, message_id=message_id, reason=reason)
