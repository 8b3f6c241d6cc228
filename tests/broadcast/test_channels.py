"""
Tests for broadcast channels.

Covers idempotent publishing, fault injection, bounded retries and the
JSONL file channel's resumable subscriptions.
"""

from unittest.mock import patch

import pytest

from bitswap_app.broadcast import (
    FileBroadcastChannel,
    InMemoryBroadcastChannel,
    PublishStatus,
    SignedMessage,
    sign_message,
)
from bitswap_app.errors import MalformedMessageError, PublishError

TOPIC = "bitswap/intents"


@pytest.fixture
def message(alice) -> SignedMessage:
    return sign_message(alice, TOPIC, {"hello": "world"}, created_at=1_700_000_000)


class TestSignedMessage:
    """Test envelope construction and parsing."""

    def test_signed_message_has_valid_id(self, alice, message):
        assert message.has_valid_id()
        assert message.pubkey == alice.get_public_key()
        assert alice.verify(message.pubkey, message.id.encode(), message.signature)

    def test_id_covers_payload(self, alice):
        a = sign_message(alice, TOPIC, {"n": 1}, created_at=1)
        b = sign_message(alice, TOPIC, {"n": 2}, created_at=1)
        assert a.id != b.id

    def test_wire_roundtrip(self, message):
        assert SignedMessage.from_wire(message.to_wire()) == message

    def test_invalid_json(self):
        with pytest.raises(MalformedMessageError) as exc_info:
            SignedMessage.from_wire(b"not json")
        assert exc_info.value.reason == "invalid_json"

    @pytest.mark.parametrize("change", [
        {"created_at": "yesterday"},
        {"created_at": True},
        {"payload": []},
        {"signature": ""},
    ])
    def test_bad_envelope(self, message, change):
        raw = {**message.to_dict(), **change}
        with pytest.raises(MalformedMessageError) as exc_info:
            SignedMessage.from_dict(raw)
        assert exc_info.value.reason == "bad_envelope"


class TestInMemoryChannel:
    """Test the in-process channel."""

    def test_publish_and_subscribe(self, message):
        channel = InMemoryBroadcastChannel()

        result = channel.publish(TOPIC, message)

        assert result.acked
        assert list(channel.subscribe(TOPIC)) == [message]
        assert list(channel.subscribe("other")) == []

    def test_publish_is_idempotent(self, message):
        channel = InMemoryBroadcastChannel()
        channel.publish(TOPIC, message)

        result = channel.publish(TOPIC, message)

        assert result.status == PublishStatus.ACK
        assert result.reason == "already_published"
        assert len(channel) == 1

    def test_topic_mismatch(self, message):
        result = InMemoryBroadcastChannel().publish("other", message)

        assert result.status == PublishStatus.FAILED
        assert result.reason == "topic_mismatch"

    def test_subscribe_from_offset(self, alice):
        channel = InMemoryBroadcastChannel()
        messages = [sign_message(alice, TOPIC, {"n": n}) for n in range(3)]
        for m in messages:
            channel.publish(TOPIC, m)

        assert list(channel.subscribe(TOPIC, from_offset=1)) == messages[1:]

    def test_dropped_message_not_delivered(self, message):
        channel = InMemoryBroadcastChannel()
        channel.drop_next()

        assert channel.publish(TOPIC, message).acked
        assert list(channel.subscribe(TOPIC)) == []

    def test_duplicate_delivery(self, message):
        channel = InMemoryBroadcastChannel(duplicate_delivery=True)
        channel.publish(TOPIC, message)

        assert list(channel.subscribe(TOPIC)) == [message, message]


class TestPublishWithRetry:
    """Test bounded retries."""

    def test_recovers_after_failures(self, message):
        channel = InMemoryBroadcastChannel()
        channel.fail_next(2)

        result = channel.publish_with_retry(TOPIC, message, max_retries=3, retry_delay=0)

        assert result.acked
        assert result.attempt_count == 3
        assert channel.get_stats()["publish_count"] == 1

    def test_raises_after_exhausting_retries(self, message):
        channel = InMemoryBroadcastChannel()
        channel.fail_next(5)

        with pytest.raises(PublishError) as exc_info:
            channel.publish_with_retry(TOPIC, message, max_retries=2, retry_delay=0)

        assert exc_info.value.message_id == message.id
        assert exc_info.value.topic == TOPIC
        assert channel.get_stats()["error_count"] == 1
        assert len(channel) == 0

    def test_os_errors_are_retried(self, message):
        channel = InMemoryBroadcastChannel()
        original = channel.publish
        calls = []

        def flaky(topic, msg):
            calls.append(msg.id)
            if len(calls) == 1:
                raise OSError("connection reset")
            return original(topic, msg)

        with patch.object(channel, "publish", side_effect=flaky):
            result = channel.publish_with_retry(TOPIC, message, retry_delay=0)

        assert result.acked
        assert calls == [message.id, message.id]


class TestFileChannel:
    """Test the JSONL file channel."""

    def test_publish_and_subscribe(self, tmp_path, message):
        channel = FileBroadcastChannel(tmp_path / "log" / "intents.jsonl")

        assert channel.publish(TOPIC, message).acked
        assert list(channel.subscribe(TOPIC)) == [message]

    def test_dedup_by_id(self, tmp_path, message):
        path = tmp_path / "intents.jsonl"
        channel = FileBroadcastChannel(path)
        channel.publish(TOPIC, message)

        result = channel.publish(TOPIC, message)

        assert result.reason == "already_published"
        assert len(path.read_bytes().splitlines()) == 1

    def test_shared_between_instances(self, tmp_path, message):
        path = tmp_path / "intents.jsonl"
        FileBroadcastChannel(path, name="writer").publish(TOPIC, message)

        assert list(FileBroadcastChannel(path, name="reader").subscribe(TOPIC)) == [message]

    def test_resume_from_offset(self, tmp_path, alice):
        channel = FileBroadcastChannel(tmp_path / "intents.jsonl")
        messages = [sign_message(alice, TOPIC, {"n": n}) for n in range(3)]
        for m in messages:
            channel.publish(TOPIC, m)

        assert list(channel.subscribe(TOPIC, from_offset=2)) == messages[2:]

    def test_skips_malformed_lines(self, tmp_path, message):
        path = tmp_path / "intents.jsonl"
        path.write_bytes(b"garbage\n")
        channel = FileBroadcastChannel(path)
        channel.publish(TOPIC, message)

        assert list(channel.subscribe(TOPIC)) == [message]

    def test_missing_file_yields_nothing(self, tmp_path):
        assert list(FileBroadcastChannel(tmp_path / "absent.jsonl").subscribe(TOPIC)) == []

    def test_health_check(self, tmp_path):
        assert FileBroadcastChannel(tmp_path / "intents.jsonl").health_check()
