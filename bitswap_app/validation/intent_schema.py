"""Schema validation for swap intent payloads on the wire."""

import math
import re
from typing import Any

import structlog

from ..errors import MalformedMessageError

logger = structlog.get_logger(__name__)

HEX_HASH_PATTERN = re.compile(r"[0-9a-fA-F]{64}")

# Intent payload schema. Extra fields are ignored.
INTENT_SCHEMA = {
    "type": "object",
    "required": ["commitmentHash", "fromToken", "fromAmount", "toToken", "toAmount", "refundBlockHeight"],
    "properties": {
        "commitmentHash": {
            "type": "string",
            "pattern": "^[0-9a-fA-F]{64}$",
            "description": "SHA-256 of the proposer's secret, hex"
        },
        "fromToken": {
            "type": "string",
            "minLength": 1,
            "description": "Ticker the proposer locks"
        },
        "fromAmount": {
            "type": "number",
            "exclusiveMinimum": 0,
            "description": "Amount the proposer locks"
        },
        "toToken": {
            "type": "string",
            "minLength": 1,
            "description": "Ticker the proposer wants"
        },
        "toAmount": {
            "type": "number",
            "exclusiveMinimum": 0,
            "description": "Amount the proposer wants"
        },
        "refundBlockHeight": {
            "type": "integer",
            "minimum": 0,
            "description": "Chain height after which the proposer may refund"
        }
    },
    "additionalProperties": True
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class IntentValidator:
    """Validates intent payloads against INTENT_SCHEMA."""

    def __init__(self):
        self.logger = logger
        self.schema = INTENT_SCHEMA

    def validate_payload(self, payload: Any) -> bool:
        """
        Validate an intent payload.

        Args:
            payload: Decoded payload of a broadcast message

        Returns:
            True if valid

        Raises:
            MalformedMessageError: With a reason naming the failed check
        """
        try:
            if not isinstance(payload, dict):
                raise ValueError("payload must be an object")
            self._validate_required_fields(payload)
            self._validate_field_types(payload)
            self._validate_field_values(payload)
            return True

        except ValueError as e:
            error_msg = f"Intent validation failed: {e}"
            self.logger.debug(error_msg)
            raise MalformedMessageError(error_msg, reason=f"schema: {e}") from e

    def _validate_required_fields(self, payload: dict[str, Any]) -> None:
        """Validate required fields are present."""
        missing_fields = [field for field in self.schema["required"] if field not in payload]

        if missing_fields:
            raise ValueError(f"Missing required fields: {missing_fields}")

    def _validate_field_types(self, payload: dict[str, Any]) -> None:
        """Validate field types match schema."""
        commitment_hash = payload["commitmentHash"]
        if not isinstance(commitment_hash, str) or not HEX_HASH_PATTERN.fullmatch(commitment_hash):
            raise ValueError("commitmentHash must be a 64-character hex string")

        for field in ("fromToken", "toToken"):
            if not isinstance(payload[field], str) or not payload[field]:
                raise ValueError(f"{field} must be a non-empty string")

        for field in ("fromAmount", "toAmount"):
            if not _is_number(payload[field]):
                raise ValueError(f"{field} must be a number, got: {payload[field]!r}")

        refund_height = payload["refundBlockHeight"]
        if isinstance(refund_height, bool) or not isinstance(refund_height, int):
            raise ValueError(f"refundBlockHeight must be an integer, got: {refund_height!r}")

    def _validate_field_values(self, payload: dict[str, Any]) -> None:
        """Validate field values are within acceptable ranges."""
        for field in ("fromAmount", "toAmount"):
            value = payload[field]
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"{field} must be positive, got: {value}")

        if payload["refundBlockHeight"] < 0:
            raise ValueError(f"refundBlockHeight must not be negative, got: {payload['refundBlockHeight']}")

        if payload["fromToken"] == payload["toToken"]:
            raise ValueError("fromToken and toToken must differ")

    def get_schema(self) -> dict[str, Any]:
        """Get the JSON schema for intent payloads."""
        return self.schema.copy()
