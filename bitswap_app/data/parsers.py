"""
Conversion between swap intents and their broadcast payloads.

Amounts travel as JSON numbers and are read back through their decimal
string form, so 0.1 arrives as Decimal("0.1").
"""

from decimal import Decimal
from typing import Any, Optional

from ..errors import MalformedMessageError
from ..validation.intent_schema import IntentValidator
from .models import SwapIntent, SwapTerms

_validator = IntentValidator()


def encode_amount(amount: Decimal) -> Any:
    """JSON number for an amount: int when integral, float otherwise."""
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


def encode_intent_payload(commitment_hash: bytes, terms: SwapTerms, refund_height: int) -> dict[str, Any]:
    """Secret-free payload announcing a locked swap."""
    return {
        "commitmentHash": commitment_hash.hex(),
        "fromToken": terms.from_token,
        "fromAmount": encode_amount(terms.from_amount),
        "toToken": terms.to_token,
        "toAmount": encode_amount(terms.to_amount),
        "refundBlockHeight": refund_height,
    }


def parse_intent_payload(
    payload: Any,
    message_id: str,
    proposer_key: str,
    created_at: int,
    validator: Optional[IntentValidator] = None
) -> SwapIntent:
    """
    Validate a payload and build the SwapIntent it announces.

    Raises:
        MalformedMessageError: If the payload fails schema validation
    """
    (validator or _validator).validate_payload(payload)

    try:
        terms = SwapTerms(
            from_token=payload["fromToken"],
            from_amount=Decimal(str(payload["fromAmount"])),
            to_token=payload["toToken"],
            to_amount=Decimal(str(payload["toAmount"])),
        )
        commitment_hash = bytes.fromhex(payload["commitmentHash"])
    except ValueError as e:
        raise MalformedMessageError(f"Invalid intent payload: {e}", reason="bad_payload",
                                    message_id=message_id) from e

    return SwapIntent(
        id=message_id,
        proposer_key=proposer_key,
        commitment_hash=commitment_hash,
        terms=terms,
        refund_height=payload["refundBlockHeight"],
        created_at=created_at,
    )


def parse_intent_message(message: Any, validator: Optional[IntentValidator] = None) -> SwapIntent:
    """Build a SwapIntent from a SignedMessage."""
    return parse_intent_payload(
        message.payload,
        message_id=message.id,
        proposer_key=message.pubkey,
        created_at=message.created_at,
        validator=validator,
    )
