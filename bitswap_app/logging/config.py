"""
Centralized logging configuration for the swap core.

This module provides standardized logging configuration using structlog
for all components. Secrets and preimages are masked by a processor in the
chain so that no log renderer ever sees them.
"""
import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, FilteringBoundLogger, WrappedLogger

REDACTED = "<redacted>"
SENSITIVE_KEYS = frozenset({"secret", "preimage", "secret_hex", "private_key"})


def redact_secrets(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask values stored under sensitive keys, including one level of nesting."""
    for key, value in list(event_dict.items()):
        if key in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, dict):
            event_dict[key] = {
                k: (REDACTED if k in SENSITIVE_KEYS else v) for k, v in value.items()
            }
    return event_dict


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list] = None
) -> None:
    """
    Configure structlog for the entire application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: If True, output JSON format; otherwise human-readable
        include_timestamp: Include timestamp in log output
        include_caller: Include caller information (filename, line number)
        extra_processors: Additional structlog processors to include
    """
    log_level = getattr(logging, level.upper())

    logging.basicConfig(
        level=log_level,
        stream=sys.stdout,
        format="%(message)s"  # structlog will handle formatting
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        redact_secrets,
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.FILENAME,
                       structlog.processors.CallsiteParameter.LINENO]
        ))

    if extra_processors:
        processors.extend(extra_processors)

    # Final renderer
    if format_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """
    Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)


def get_state_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger bound for swap state machine audit trails.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger for state transitions
    """
    logger = get_logger(name)

    return logger.bind(
        subsystem="swap_state",
        audit_trail=True
    )


def get_orderbook_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger bound for order book ingestion decisions.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger for the order book
    """
    logger = get_logger(name)

    return logger.bind(
        subsystem="orderbook",
        audit_trail=True
    )


def log_ingest_decision(
    logger: FilteringBoundLogger,
    message_id: str,
    outcome: str,
    reason: Optional[str] = None,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log an order book ingest decision with standardized format.

    Args:
        logger: Structlog logger instance
        message_id: ID of the inbound message
        outcome: accepted, rejected or duplicate
        reason: Rejection reason, if any
        context: Additional context data
    """
    bound_logger = logger.bind(
        message_id=message_id,
        outcome=outcome,
        reason=reason,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    if outcome == "rejected":
        bound_logger.warning("Message rejected")
    else:
        bound_logger.debug("Message ingested")


def log_state_transition(
    logger: FilteringBoundLogger,
    swap_id: str,
    from_state: str,
    to_state: str,
    trigger: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a swap state transition with standardized format.

    Args:
        logger: Structlog logger instance
        swap_id: Commitment hash identifying the swap
        from_state: Current state
        to_state: Target state
        trigger: What triggered the transition
        context: Additional context data
    """
    bound_logger = logger.bind(
        swap_id=swap_id,
        from_state=from_state,
        to_state=to_state,
        trigger=trigger,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.info("State transition")
