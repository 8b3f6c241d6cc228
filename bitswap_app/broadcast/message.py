"""
Signed broadcast message envelope.

A message id is the SHA-256 hex digest of the canonical serialization of
[pubkey, created_at, topic, payload]; the author signs the id. Peers
recompute the id on ingest, so any tampering with the envelope changes it.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import orjson

from ..errors import MalformedMessageError
from ..utils.time import now_unix

ENVELOPE_FIELDS = ("id", "topic", "pubkey", "created_at", "payload", "signature")
MAX_CREATED_AT = 2**63 - 1


def canonical_bytes(value: Any) -> bytes:
    """Deterministic JSON encoding used for ids and the wire."""
    return orjson.dumps(value, option=orjson.OPT_SORT_KEYS)


def compute_message_id(pubkey: str, created_at: int, topic: str, payload: dict[str, Any]) -> str:
    """Content address of a message."""
    return hashlib.sha256(canonical_bytes([pubkey, created_at, topic, payload])).hexdigest()


@dataclass(frozen=True)
class SignedMessage:
    """A payload published to a topic, signed by its author."""
    id: str
    topic: str
    pubkey: str
    created_at: int
    payload: dict[str, Any] = field(hash=False)
    signature: str

    def expected_id(self) -> str:
        """Id recomputed from the envelope contents."""
        return compute_message_id(self.pubkey, self.created_at, self.topic, self.payload)

    def has_valid_id(self) -> bool:
        """False when the id does not match, or the envelope has no canonical encoding."""
        try:
            return self.expected_id() == self.id
        except orjson.JSONEncodeError:
            return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "topic": self.topic,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "payload": self.payload,
            "signature": self.signature,
        }

    def to_wire(self) -> bytes:
        return canonical_bytes(self.to_dict())

    @classmethod
    def from_dict(cls, raw: Any) -> "SignedMessage":
        """
        Build a message from a decoded envelope.

        Raises:
            MalformedMessageError: If the envelope is structurally invalid
        """
        if not isinstance(raw, dict):
            raise MalformedMessageError("Message envelope must be an object", reason="bad_envelope")

        missing = [name for name in ENVELOPE_FIELDS if name not in raw]
        if missing:
            raise MalformedMessageError(
                f"Message envelope missing fields: {missing}",
                reason="bad_envelope",
                message_id=raw.get("id") if isinstance(raw.get("id"), str) else None,
            )

        for name in ("id", "topic", "pubkey", "signature"):
            if not isinstance(raw[name], str) or not raw[name]:
                raise MalformedMessageError(f"Envelope field {name} must be a non-empty string",
                                            reason="bad_envelope")

        created_at = raw["created_at"]
        if isinstance(created_at, bool) or not isinstance(created_at, int):
            raise MalformedMessageError("created_at must be an integer", reason="bad_envelope")
        if not 0 <= created_at <= MAX_CREATED_AT:
            raise MalformedMessageError(f"created_at out of range: {created_at}", reason="bad_envelope")

        if not isinstance(raw["payload"], dict):
            raise MalformedMessageError("payload must be an object", reason="bad_envelope")

        return cls(
            id=raw["id"],
            topic=raw["topic"],
            pubkey=raw["pubkey"],
            created_at=created_at,
            payload=raw["payload"],
            signature=raw["signature"],
        )

    @classmethod
    def from_wire(cls, data: Union[bytes, str]) -> "SignedMessage":
        try:
            raw = orjson.loads(data)
        except orjson.JSONDecodeError as e:
            raise MalformedMessageError(f"Message is not valid JSON: {e}", reason="invalid_json") from e
        return cls.from_dict(raw)


def sign_message(
    signer: Any,
    topic: str,
    payload: dict[str, Any],
    created_at: Optional[int] = None
) -> SignedMessage:
    """
    Build and sign a message with a wallet.

    Args:
        signer: Anything with get_public_key() and sign(bytes) -> str
        topic: Broadcast topic
        payload: JSON-serializable payload
        created_at: Unix timestamp, defaults to now
    """
    pubkey = signer.get_public_key()
    created_at = now_unix() if created_at is None else created_at
    message_id = compute_message_id(pubkey, created_at, topic, payload)

    return SignedMessage(
        id=message_id,
        topic=topic,
        pubkey=pubkey,
        created_at=created_at,
        payload=payload,
        signature=signer.sign(message_id.encode()),
    )
