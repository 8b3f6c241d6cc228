"""Configuration validation utilities."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ConfigIssue:
    """Represents a configuration validation problem."""
    field: str
    message: str
    value: Any


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_network_params(params: dict[str, Any]) -> list[ConfigIssue]:
        """Validate network parameters."""
        errors = []

        if "network" in params:
            value = params["network"]
            if not isinstance(value, str) or not value:
                errors.append(ConfigIssue(
                    field="network",
                    message="Must be a non-empty string",
                    value=value
                ))

        if "supported_tokens" in params:
            value = params["supported_tokens"]
            if (not isinstance(value, (list, tuple)) or not value
                    or not all(isinstance(t, str) and t for t in value)):
                errors.append(ConfigIssue(
                    field="supported_tokens",
                    message="Must be a non-empty list of tickers",
                    value=value
                ))
            elif len(set(value)) != len(value):
                errors.append(ConfigIssue(
                    field="supported_tokens",
                    message="Tickers must be unique",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_swap_params(params: dict[str, Any]) -> list[ConfigIssue]:
        """Validate swap construction parameters."""
        errors = []

        if "secret_bytes" in params:
            value = params["secret_bytes"]
            if not isinstance(value, int) or isinstance(value, bool) or value < 32:
                errors.append(ConfigIssue(
                    field="secret_bytes",
                    message="Must be an integer of at least 32",
                    value=value
                ))

        for field in ("default_refund_delta", "counter_refund_margin"):
            if field in params and not _is_positive_int(params[field]):
                errors.append(ConfigIssue(
                    field=field,
                    message="Must be a positive integer",
                    value=params[field]
                ))

        if ("default_refund_delta" in params and "counter_refund_margin" in params
                and _is_positive_int(params["default_refund_delta"])
                and _is_positive_int(params["counter_refund_margin"])
                and params["counter_refund_margin"] >= params["default_refund_delta"]):
            errors.append(ConfigIssue(
                field="counter_refund_margin",
                message="Must be smaller than default_refund_delta",
                value=params["counter_refund_margin"]
            ))

        if "key_namespace" in params:
            value = params["key_namespace"]
            if not isinstance(value, str) or not value or "/" in value:
                errors.append(ConfigIssue(
                    field="key_namespace",
                    message="Must be a non-empty string without '/'",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_orderbook_params(params: dict[str, Any]) -> list[ConfigIssue]:
        """Validate order book parameters."""
        errors = []

        for field in ("capacity", "seen_ids_capacity", "max_future_skew_seconds"):
            if field in params and not _is_positive_int(params[field]):
                errors.append(ConfigIssue(
                    field=field,
                    message="Must be a positive integer",
                    value=params[field]
                ))

        if ("capacity" in params and "seen_ids_capacity" in params
                and _is_positive_int(params["capacity"])
                and _is_positive_int(params["seen_ids_capacity"])
                and params["seen_ids_capacity"] < params["capacity"]):
            errors.append(ConfigIssue(
                field="seen_ids_capacity",
                message="Must be at least the index capacity",
                value=params["seen_ids_capacity"]
            ))

        if "topic" in params:
            value = params["topic"]
            if not isinstance(value, str) or not value:
                errors.append(ConfigIssue(
                    field="topic",
                    message="Must be a non-empty string",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_broadcast_params(params: dict[str, Any]) -> list[ConfigIssue]:
        """Validate broadcast retry parameters."""
        errors = []

        if "retry_attempts" in params:
            value = params["retry_attempts"]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                errors.append(ConfigIssue(
                    field="retry_attempts",
                    message="Must be a non-negative integer",
                    value=value
                ))

        if "retry_delay_seconds" in params:
            value = params["retry_delay_seconds"]
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value < 0:
                errors.append(ConfigIssue(
                    field="retry_delay_seconds",
                    message="Must be a non-negative number",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ConfigIssue]:
        """Validate complete configuration."""
        errors = []

        if "network" in config:
            errors.extend(ConfigValidator.validate_network_params(config["network"]))

        if "swap" in config:
            errors.extend(ConfigValidator.validate_swap_params(config["swap"]))

        if "orderbook" in config:
            errors.extend(ConfigValidator.validate_orderbook_params(config["orderbook"]))

        if "broadcast" in config:
            errors.extend(ConfigValidator.validate_broadcast_params(config["broadcast"]))

        return errors
