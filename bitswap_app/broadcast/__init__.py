"""Broadcast channels carrying signed swap intents."""

from .base import BroadcastChannel, PublishResult, PublishStatus
from .file_channel import FileBroadcastChannel
from .memory_channel import InMemoryBroadcastChannel
from .message import SignedMessage, compute_message_id, sign_message

__all__ = [
    "BroadcastChannel",
    "FileBroadcastChannel",
    "InMemoryBroadcastChannel",
    "PublishResult",
    "PublishStatus",
    "SignedMessage",
    "compute_message_id",
    "sign_message",
]
