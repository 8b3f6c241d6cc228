"""
Validation of swap terms and refund heights.

Every check raises ValidationError naming the offending field, before any
program is compiled or any state is touched.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from ..errors import ValidationError
from .models import SwapTerms


def parse_amount(value: Any, field: str) -> Decimal:
    """
    Convert a wire or user value into a positive, finite Decimal amount.

    Raises:
        ValidationError: If the value is not a positive finite number
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field, value=value)

    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValidationError(f"{field} must be a number", field=field, value=value) from e

    if not amount.is_finite():
        raise ValidationError(f"{field} must be finite", field=field, value=value)

    if amount <= 0:
        raise ValidationError(f"{field} must be positive", field=field, value=value)

    return amount


def validate_terms(terms: SwapTerms, supported_tokens: Optional[Iterable[str]] = None) -> None:
    """
    Validate swap terms.

    Raises:
        ValidationError: On empty or equal tickers, unsupported tokens,
            or non-positive amounts
    """
    for field in ("from_token", "to_token"):
        ticker = getattr(terms, field)
        if not isinstance(ticker, str) or not ticker.strip():
            raise ValidationError(f"{field} must be a non-empty ticker", field=field, value=ticker)

    if terms.from_token == terms.to_token:
        raise ValidationError(
            f"Cannot swap {terms.from_token} for itself",
            field="to_token",
            value=terms.to_token,
        )

    if supported_tokens is not None:
        supported = set(supported_tokens)
        for field in ("from_token", "to_token"):
            ticker = getattr(terms, field)
            if ticker not in supported:
                raise ValidationError(f"Unsupported token {ticker}", field=field, value=ticker)

    parse_amount(terms.from_amount, "from_amount")
    parse_amount(terms.to_amount, "to_amount")


def validate_refund_height(refund_height: Any, current_height: int) -> None:
    """
    Validate that a refund height lies strictly in the future.

    Raises:
        ValidationError: If the refund path would already be open
    """
    if not isinstance(refund_height, int) or isinstance(refund_height, bool):
        raise ValidationError("refund_height must be an integer",
                              field="refund_height", value=refund_height)

    if refund_height <= current_height:
        raise ValidationError(
            f"refund_height {refund_height} must be above current height {current_height}",
            field="refund_height",
            value=refund_height,
            context={"current_height": current_height},
        )


def make_terms(from_token: str, from_amount: Any, to_token: str, to_amount: Any,
               supported_tokens: Optional[Iterable[str]] = None) -> SwapTerms:
    """Build validated SwapTerms from loose inputs."""
    terms = SwapTerms(
        from_token=from_token,
        from_amount=parse_amount(from_amount, "from_amount"),
        to_token=to_token,
        to_amount=parse_amount(to_amount, "to_amount"),
    )
    validate_terms(terms, supported_tokens)
    return terms
