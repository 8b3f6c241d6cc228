"""
Time helpers for message timestamps and local bookkeeping.

Broadcast messages carry unix-second timestamps chosen by their author.
These are informational only; refund eligibility is decided by chain
height, never by wall-clock time.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def now_unix() -> int:
    """Current wall-clock time in whole unix seconds."""
    return int(utc_now().timestamp())


def from_unix(ts: int) -> datetime:
    """
    Convert unix seconds to an aware UTC datetime.

    Args:
        ts: Unix timestamp in seconds

    Returns:
        UTC datetime
    """
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def format_utc(ts: datetime) -> str:
    """Format a datetime as ISO8601 for logging and persistence."""
    return ts.isoformat()


def validate_message_time(
    created_at: int,
    max_future_skew_seconds: int = 300,
    now: Optional[int] = None
) -> bool:
    """
    Check that an author-supplied timestamp is not implausibly far in the future.

    Old messages are fine: intents stay valid until their refund height.

    Args:
        created_at: Message timestamp in unix seconds
        max_future_skew_seconds: Tolerated clock skew
        now: Reference time in unix seconds, defaults to wall clock

    Returns:
        True if the timestamp is acceptable
    """
    if now is None:
        now = now_unix()

    if created_at < 0:
        return False

    return created_at - now <= max_future_skew_seconds
