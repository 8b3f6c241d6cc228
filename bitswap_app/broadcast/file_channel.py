"""JSONL file broadcast channel, shareable across processes on one host."""

import fcntl
from pathlib import Path
from typing import Iterator, Union

from ..errors import MalformedMessageError
from .base import BroadcastChannel, PublishResult, PublishStatus
from .message import SignedMessage


class FileBroadcastChannel(BroadcastChannel):
    """
    Append-only JSONL log of signed messages.

    Every line is one envelope. Writers take an exclusive flock; subscribers
    read by line offset, so a subscription can be resumed where it stopped.
    """

    def __init__(self, output_path: Union[str, Path], name: str = "file", create_dirs: bool = True):
        super().__init__(name)
        self.output_path = Path(output_path)

        if create_dirs:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)

    def publish(self, topic: str, message: SignedMessage) -> PublishResult:
        """Append a message unless its id is already in the log."""
        if message.topic != topic:
            return PublishResult(status=PublishStatus.FAILED, reason="topic_mismatch")

        try:
            with open(self.output_path, "a+b") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                f.seek(0)
                for line in f:
                    if not line.strip():
                        continue
                    try:
                        existing = SignedMessage.from_wire(line)
                    except MalformedMessageError:
                        continue
                    if existing.id == message.id:
                        return PublishResult(status=PublishStatus.ACK, reason="already_published")

                f.write(message.to_wire() + b"\n")
                f.flush()

        except OSError as e:
            self.logger.warning(
                "Broadcast file error",
                channel=self.name,
                output_path=str(self.output_path),
                error=str(e)
            )
            return PublishResult(status=PublishStatus.FAILED, reason=f"File system error: {e}")

        self.logger.info(
            "Message written to file",
            channel=self.name,
            topic=topic,
            message_id=message.id,
            output_path=str(self.output_path)
        )
        return PublishResult(status=PublishStatus.ACK)

    def subscribe(self, topic: str, from_offset: int = 0) -> Iterator[SignedMessage]:
        """
        Yield messages on a topic, skipping the first from_offset lines.

        Unparseable lines are logged and skipped; the ingesting side decides
        what counts as a valid message.
        """
        if not self.output_path.exists():
            return

        with open(self.output_path, "rb") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_SH)
            lines = f.readlines()

        for line_no, line in enumerate(lines[from_offset:], start=from_offset):
            if not line.strip():
                continue
            try:
                message = SignedMessage.from_wire(line)
            except MalformedMessageError as e:
                self.logger.warning(
                    "Skipping malformed line",
                    channel=self.name,
                    line=line_no,
                    reason=e.reason
                )
                continue
            if message.topic == topic:
                yield message

    def health_check(self) -> bool:
        """Check if the log directory is writable."""
        try:
            test_file = self.output_path.parent / ".health_check_test"
            test_file.write_text("test")
            test_file.unlink()
            return True

        except OSError as e:
            self.logger.warning(
                "Health check failed",
                channel=self.name,
                error=str(e)
            )
            return False
