"""Base classes for broadcast channels."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Optional

import structlog

from ..errors import PublishError
from .message import SignedMessage


class PublishStatus(str, Enum):
    """Outcome of a publish attempt."""
    ACK = "ack"
    FAILED = "failed"


@dataclass
class PublishResult:
    """Result of a publish attempt."""
    status: PublishStatus
    reason: Optional[str] = None
    attempt_count: int = 1
    publish_time_ms: Optional[int] = None

    @property
    def acked(self) -> bool:
        return self.status == PublishStatus.ACK


class BroadcastChannel(ABC):
    """
    Publish/subscribe channel acting as the public order book.

    Delivery is best effort: messages may be duplicated, reordered or lost.
    Publishing is idempotent by message id.
    """

    def __init__(self, name: str):
        self.name = name
        self.logger = structlog.get_logger(f"broadcast.channel.{name}")
        self._publish_count = 0
        self._error_count = 0

    @abstractmethod
    def publish(self, topic: str, message: SignedMessage) -> PublishResult:
        """
        Publish a signed message to a topic.

        Args:
            topic: Topic name
            message: Signed message whose topic matches

        Returns:
            PublishResult with ACK or FAILED
        """
        pass

    @abstractmethod
    def subscribe(self, topic: str, from_offset: int = 0) -> Iterator[SignedMessage]:
        """Lazy stream of messages on a topic, restartable from an offset."""
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """Check if the channel is usable."""
        pass

    def publish_with_retry(
        self,
        topic: str,
        message: SignedMessage,
        max_retries: int = 3,
        retry_delay: float = 1.0
    ) -> PublishResult:
        """
        Publish with bounded retries of the same message.

        Args:
            topic: Topic name
            message: Signed message, re-sent unchanged on every attempt
            max_retries: Maximum number of retry attempts
            retry_delay: Delay between retries in seconds

        Returns:
            The acknowledged PublishResult

        Raises:
            PublishError: If every attempt failed
        """
        attempt = 0
        last_reason = None

        while attempt <= max_retries:
            try:
                start_time = time.time()
                result = self.publish(topic, message)
                publish_time = int((time.time() - start_time) * 1000)

                if result.acked:
                    result.publish_time_ms = publish_time
                    result.attempt_count = attempt + 1
                    self._publish_count += 1
                    return result

                last_reason = result.reason

            except OSError as e:
                last_reason = str(e)

            attempt += 1

            if attempt <= max_retries:
                self.logger.warning(
                    f"Publish attempt {attempt} failed, retrying in {retry_delay}s",
                    channel=self.name,
                    message_id=message.id,
                    reason=last_reason
                )
                time.sleep(retry_delay)

        self._error_count += 1
        self.logger.error(
            "Publish failed after retries",
            channel=self.name,
            topic=topic,
            message_id=message.id,
            attempts=attempt,
            reason=last_reason
        )
        raise PublishError(
            f"Max retries exceeded publishing {message.id}: {last_reason}",
            topic=topic,
            message_id=message.id,
        )

    def get_stats(self) -> dict[str, Any]:
        """Get publish statistics."""
        return {
            "name": self.name,
            "publish_count": self._publish_count,
            "error_count": self._error_count,
        }
