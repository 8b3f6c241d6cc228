"""In-process broadcast channel with optional fault injection."""

import threading
from typing import Iterator

from .base import BroadcastChannel, PublishResult, PublishStatus
from .message import SignedMessage


class InMemoryBroadcastChannel(BroadcastChannel):
    """
    Broadcast channel shared by peers in one process.

    Fault injection:
        fail_next(n): the next n publishes return FAILED
        drop_next(n): the next n publishes are acknowledged but never delivered
        duplicate_delivery: every message is yielded twice to subscribers
    """

    def __init__(self, name: str = "memory", duplicate_delivery: bool = False):
        super().__init__(name)
        self.duplicate_delivery = duplicate_delivery
        self._lock = threading.Lock()
        self._topics: dict[str, list[SignedMessage]] = {}
        self._published_ids: set[str] = set()
        self._fail_remaining = 0
        self._drop_remaining = 0

    def fail_next(self, count: int = 1) -> None:
        self._fail_remaining = count

    def drop_next(self, count: int = 1) -> None:
        self._drop_remaining = count

    def publish(self, topic: str, message: SignedMessage) -> PublishResult:
        if message.topic != topic:
            return PublishResult(status=PublishStatus.FAILED, reason="topic_mismatch")

        with self._lock:
            if self._fail_remaining > 0:
                self._fail_remaining -= 1
                return PublishResult(status=PublishStatus.FAILED, reason="injected_failure")

            if message.id in self._published_ids:
                return PublishResult(status=PublishStatus.ACK, reason="already_published")

            self._published_ids.add(message.id)

            if self._drop_remaining > 0:
                self._drop_remaining -= 1
                self.logger.debug("Dropped message", channel=self.name, message_id=message.id)
                return PublishResult(status=PublishStatus.ACK)

            self._topics.setdefault(topic, []).append(message)

        self.logger.debug("Published message", channel=self.name, topic=topic, message_id=message.id)
        return PublishResult(status=PublishStatus.ACK)

    def subscribe(self, topic: str, from_offset: int = 0) -> Iterator[SignedMessage]:
        """Yield messages published so far, starting at from_offset."""
        offset = from_offset
        while True:
            with self._lock:
                messages = self._topics.get(topic, [])
                if offset >= len(messages):
                    return
                message = messages[offset]
            offset += 1
            yield message
            if self.duplicate_delivery:
                yield message

    def health_check(self) -> bool:
        return True

    def __len__(self) -> int:
        with self._lock:
            return sum(len(messages) for messages in self._topics.values())
