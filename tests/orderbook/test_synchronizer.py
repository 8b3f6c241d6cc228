"""
Tests for order book synchronization.

Covers duplicate suppression, envelope integrity, signature checks,
timestamp skew, schema validation and capacity eviction.
"""

from dataclasses import replace

import pytest

from bitswap_app.broadcast.message import compute_message_id
from bitswap_app.orderbook.synchronizer import IngestOutcome, OrderBookSynchronizer
from bitswap_app.utils.time import now_unix

TOPIC = "bitswap/intents"


@pytest.fixture
def book(alice) -> OrderBookSynchronizer:
    return OrderBookSynchronizer(alice, capacity=100, topic=TOPIC)


def _resign(wallet, message, **changes):
    """Rebuild a message with changed fields and a consistent id and signature."""
    changed = replace(message, **changes)
    message_id = compute_message_id(changed.pubkey, changed.created_at, changed.topic, changed.payload)
    return replace(changed, id=message_id, signature=wallet.sign(message_id.encode()))


class TestIngest:
    """Test single-message ingest decisions."""

    def test_accepts_valid_intent(self, book, bob, make_intent_message):
        message = make_intent_message(bob)

        result = book.ingest(message)

        assert result.outcome == IngestOutcome.ACCEPTED
        assert result.intent.proposer_key == bob.get_public_key()
        assert result.intent.refund_height == 244
        assert book.get_intent(message.id) == result.intent

    def test_duplicate_is_idempotent(self, book, bob, make_intent_message):
        """The same message twice yields one index entry."""
        message = make_intent_message(bob)

        first = book.ingest(message)
        second = book.ingest(message)

        assert first.outcome == IngestOutcome.ACCEPTED
        assert second.outcome == IngestOutcome.DUPLICATE
        assert len(book) == 1

    def test_accepts_wire_and_dict_forms(self, book, bob, make_intent_message):
        assert book.ingest(make_intent_message(bob).to_wire()).outcome == IngestOutcome.ACCEPTED
        assert book.ingest(make_intent_message(bob).to_dict()).outcome == IngestOutcome.ACCEPTED
        assert len(book) == 2

    def test_rejects_invalid_json(self, book):
        result = book.ingest(b"{not json")

        assert result.outcome == IngestOutcome.REJECTED
        assert result.reason == "invalid_json"

    def test_rejects_bad_envelope(self, book):
        result = book.ingest({"id": "x"})

        assert result.outcome == IngestOutcome.REJECTED
        assert result.reason == "bad_envelope"

    def test_rejects_tampered_payload(self, book, bob, make_intent_message):
        """Changing the payload without recomputing the id is detected."""
        message = make_intent_message(bob)
        tampered = replace(message, payload={**message.payload, "toAmount": 1})

        result = book.ingest(tampered)

        assert result.outcome == IngestOutcome.REJECTED
        assert result.reason == "id_mismatch"
        assert len(book) == 0

    def test_rejects_bad_signature(self, book, alice, bob, make_intent_message):
        """A signature by another key fails verification."""
        message = make_intent_message(bob)
        forged = replace(message, signature=alice.sign(message.id.encode()))

        result = book.ingest(forged)

        assert result.outcome == IngestOutcome.REJECTED
        assert result.reason == "bad_signature"

    def test_rejected_message_not_remembered(self, book, alice, bob, make_intent_message):
        """A later valid copy of a rejected id is still accepted."""
        message = make_intent_message(bob)
        forged = replace(message, signature=alice.sign(message.id.encode()))

        assert book.ingest(forged).outcome == IngestOutcome.REJECTED
        assert book.ingest(message).outcome == IngestOutcome.ACCEPTED

    def test_rejects_wrong_topic(self, book, bob, make_intent_message):
        result = book.ingest(make_intent_message(bob, topic="other/topic"))

        assert result.outcome == IngestOutcome.REJECTED
        assert result.reason == "wrong_topic"

    def test_rejects_future_timestamp(self, book, bob, make_intent_message):
        message = make_intent_message(bob, created_at=now_unix() + 3600)

        result = book.ingest(message)

        assert result.outcome == IngestOutcome.REJECTED
        assert result.reason == "bad_timestamp"

    @pytest.mark.parametrize("field, value", [
        ("fromAmount", 0),
        ("fromAmount", -5),
        ("toAmount", True),
        ("toToken", "SAT"),
        ("commitmentHash", "zz"),
        ("refundBlockHeight", "244"),
    ])
    def test_rejects_schema_violations(self, book, bob, make_intent_message, field, value):
        message = make_intent_message(bob)
        bad = _resign(bob, message, payload={**message.payload, field: value})

        result = book.ingest(bad)

        assert result.outcome == IngestOutcome.REJECTED
        assert result.reason.startswith("schema:")

    def test_rejects_missing_field(self, book, bob, make_intent_message):
        message = make_intent_message(bob)
        payload = dict(message.payload)
        del payload["refundBlockHeight"]

        result = book.ingest(_resign(bob, message, payload=payload))

        assert result.outcome == IngestOutcome.REJECTED
        assert "refundBlockHeight" in result.reason

    def test_rejects_oversized_payload_integer(self, book, bob, make_intent_message):
        """An amount with no 64-bit encoding cannot match its id."""
        message = make_intent_message(bob)
        oversized = replace(message, payload={**message.payload, "fromAmount": 10**30})

        result = book.ingest(oversized)

        assert result.outcome == IngestOutcome.REJECTED
        assert result.reason == "id_mismatch"
        assert len(book) == 0

    @pytest.mark.parametrize("created_at", [10**30, -1])
    def test_rejects_out_of_range_created_at(self, book, bob, make_intent_message, created_at):
        envelope = {**make_intent_message(bob).to_dict(), "created_at": created_at}

        result = book.ingest(envelope)

        assert result.outcome == IngestOutcome.REJECTED
        assert result.reason == "bad_envelope"


class TestCapacityAndSync:
    """Test bounded capacity and channel draining."""

    def test_keeps_most_recent(self, alice, bob, make_intent_message):
        """150 distinct intents leave the 100 most recent."""
        book = OrderBookSynchronizer(alice, capacity=100, topic=TOPIC)
        messages = [make_intent_message(bob) for _ in range(150)]

        for message in messages:
            assert book.ingest(message).outcome == IngestOutcome.ACCEPTED

        kept = [intent.id for intent in book.index]
        assert len(kept) == 100
        assert kept == [m.id for m in reversed(messages[50:])]

    def test_evicted_message_still_duplicate(self, alice, bob, make_intent_message):
        """Dedup memory outlives index eviction."""
        book = OrderBookSynchronizer(alice, capacity=2, seen_ids_capacity=10)
        messages = [make_intent_message(bob) for _ in range(3)]
        for message in messages:
            book.ingest(message)

        assert messages[0].id not in book.index
        assert book.ingest(messages[0]).outcome == IngestOutcome.DUPLICATE

    def test_query_most_recent_first(self, book, bob, make_intent_message):
        first = make_intent_message(bob)
        other = make_intent_message(bob, from_token="TEST", from_amount=5000,
                                    to_token="SAT", to_amount=100)
        second = make_intent_message(bob)
        for message in (first, other, second):
            book.ingest(message)

        assert [i.id for i in book.query("SAT", "TEST")] == [second.id, first.id]
        assert [i.id for i in book.query("TEST", "SAT")] == [other.id]

    def test_sync_counts(self, book, channel, bob, make_intent_message):
        good = make_intent_message(bob)
        channel.publish(TOPIC, good)
        channel.publish(TOPIC, make_intent_message(bob))

        counts = book.sync(channel.subscribe(TOPIC))
        again = book.sync(channel.subscribe(TOPIC))

        assert counts == {"accepted": 2, "rejected": 0, "duplicate": 0}
        assert again == {"accepted": 0, "rejected": 0, "duplicate": 2}
        assert book.get_stats() == {
            "accepted": 2, "rejected": 0, "duplicate": 2, "index_size": 2,
        }

    def test_sync_limit(self, book, channel, bob, make_intent_message):
        for _ in range(3):
            channel.publish(TOPIC, make_intent_message(bob))

        counts = book.sync(channel.subscribe(TOPIC), limit=2)

        assert counts["accepted"] == 2
        assert len(book) == 2

    def test_sync_continues_past_unencodable_message(self, book, bob, make_intent_message):
        """One message with oversized integers does not stop the drain."""
        before = make_intent_message(bob)
        oversized = replace(make_intent_message(bob), created_at=10**30)
        after = make_intent_message(bob)

        counts = book.sync([before, oversized, after])

        assert counts == {"accepted": 2, "rejected": 1, "duplicate": 0}
        assert book.get_intent(after.id) is not None
