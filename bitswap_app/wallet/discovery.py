"""
Capability discovery for collaborators that may appear late.

A wallet extension, for example, may take a moment to inject itself. The
caller drives the retry loop; the swap core only ever sees an acquired
capability or a CollaboratorUnavailableError.
"""

import time
from typing import Any, Callable, Optional

import structlog

from ..errors import CollaboratorUnavailableError, WrongNetworkError

logger = structlog.get_logger(__name__)


class _Unavailable:
    """Sentinel returned when a probe finds nothing."""

    def __repr__(self) -> str:
        return "UNAVAILABLE"

    def __bool__(self) -> bool:
        return False


UNAVAILABLE = _Unavailable()

Probe = Callable[[], Optional[Any]]


def try_acquire(probe: Probe) -> Any:
    """
    Run a probe once.

    Returns:
        The capability, or UNAVAILABLE if the probe returned None or
        failed with a connection error
    """
    try:
        capability = probe()
    except (ConnectionError, CollaboratorUnavailableError) as e:
        logger.debug("Capability probe failed", error=str(e))
        return UNAVAILABLE

    return UNAVAILABLE if capability is None else capability


def acquire_with_retry(
    probe: Probe,
    max_attempts: int = 15,
    interval_seconds: float = 0.2,
    capability: str = "wallet",
    sleep: Callable[[float], None] = time.sleep
) -> Any:
    """
    Poll a probe until it yields a capability.

    Args:
        probe: Zero-argument callable returning the capability or None
        max_attempts: Number of probes before giving up
        interval_seconds: Delay between probes
        capability: Name used in logs and the error
        sleep: Delay function, replaceable in tests

    Returns:
        The acquired capability

    Raises:
        CollaboratorUnavailableError: If every probe came back empty
    """
    for attempt in range(1, max_attempts + 1):
        result = try_acquire(probe)
        if result is not UNAVAILABLE:
            logger.info("Capability acquired", capability=capability, attempts=attempt)
            return result

        if attempt < max_attempts:
            sleep(interval_seconds)

    logger.warning("Capability not found", capability=capability, attempts=max_attempts)
    raise CollaboratorUnavailableError(
        f"{capability} not available after {max_attempts} attempts",
        capability=capability,
        attempts=max_attempts,
    )


def ensure_network(wallet: Any, expected: str = "signet") -> str:
    """
    Check the wallet is on the expected network.

    Raises:
        WrongNetworkError: If the wallet reports another network
    """
    actual = wallet.get_network()
    if actual != expected:
        logger.warning("Wallet on wrong network", expected=expected, actual=actual)
        raise WrongNetworkError(
            f"Wallet is on {actual}, expected {expected}",
            expected=expected,
            actual=actual,
        )
    return actual
