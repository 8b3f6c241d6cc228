"""Unit tests for configuration management."""

from dataclasses import asdict
from pathlib import Path

import pytest

from bitswap_app.config.defaults import get_default_config
from bitswap_app.config.loader import ConfigLoader, build_config
from bitswap_app.config.validation import ConfigValidator


class TestDefaultConfig:
    """Test suite for default configuration."""

    def test_default_config_creation(self) -> None:
        """Test the built-in defaults."""
        config = get_default_config()
        assert config.network.network == "signet"
        assert config.network.supported_tokens == ("SAT", "TEST", "ATOM", "BTC")
        assert config.swap.secret_bytes == 32
        assert config.swap.default_refund_delta == 144
        assert config.orderbook.capacity == 100
        assert config.orderbook.seen_ids_capacity == 1000
        assert config.discovery.max_attempts == 15
        assert config.discovery.interval_ms == 200

    def test_defaults_are_valid(self) -> None:
        """Test the defaults pass validation."""
        assert ConfigValidator.validate_config(asdict(get_default_config())) == []


class TestConfigLoader:
    """Test suite for configuration loader."""

    def test_config_loader_creation(self) -> None:
        """Test that ConfigLoader points at the repository config directory."""
        loader = ConfigLoader.create()
        assert isinstance(loader.config_dir, Path)
        assert (loader.config_dir / "networks.yaml").exists()

    def test_merge_config_defaults_only(self) -> None:
        """Test merging for a network without overrides."""
        config = ConfigLoader.create().merge_config("mainnet-unknown")
        assert config["swap"]["default_refund_delta"] == 144
        assert config["network"]["supported_tokens"] == ["SAT", "TEST", "ATOM", "BTC"]

    def test_network_overrides(self) -> None:
        """Test per-network overrides from networks.yaml."""
        config = ConfigLoader.create().load("regtest")
        assert config.network.network == "regtest"
        assert config.swap.default_refund_delta == 20
        assert config.swap.counter_refund_margin == 2
        assert config.orderbook.capacity == 50
        assert config.orderbook.seen_ids_capacity == 1000

    def test_explicit_overrides_win(self) -> None:
        """Test explicit overrides take precedence over network overrides."""
        config = ConfigLoader.create().load(
            "regtest", overrides={"swap": {"default_refund_delta": 30}}
        )
        assert config.swap.default_refund_delta == 30
        assert config.swap.counter_refund_margin == 2

    def test_missing_config_dir(self, tmp_path) -> None:
        """Test loading without a networks file falls back to defaults."""
        config = ConfigLoader.create(tmp_path).load("signet")
        assert config == get_default_config()

    def test_custom_networks_file(self, tmp_path) -> None:
        """Test a custom networks file is read."""
        (tmp_path / "networks.yaml").write_text(
            "networks:\n  testnet:\n    network:\n      network: testnet\n"
            "      supported_tokens: [BTC, ATOM]\n"
        )
        config = ConfigLoader.create(tmp_path).load("testnet")
        assert config.network.network == "testnet"
        assert config.network.supported_tokens == ("BTC", "ATOM")

    def test_build_config_ignores_unknown_keys(self) -> None:
        """Test unknown keys in merged config are dropped."""
        config = build_config({"swap": {"default_refund_delta": 10, "bogus": 1}})
        assert config.swap.default_refund_delta == 10


class TestConfigValidator:
    """Test suite for configuration validation."""

    def test_short_secret_rejected(self) -> None:
        """Test secrets shorter than 32 bytes."""
        issues = ConfigValidator.validate_swap_params({"secret_bytes": 16})
        assert [i.field for i in issues] == ["secret_bytes"]

    def test_margin_must_be_below_delta(self) -> None:
        """Test the counter margin cannot swallow the refund window."""
        issues = ConfigValidator.validate_swap_params(
            {"default_refund_delta": 6, "counter_refund_margin": 6}
        )
        assert [i.field for i in issues] == ["counter_refund_margin"]

    def test_namespace_without_separator(self) -> None:
        """Test key namespaces containing '/'."""
        issues = ConfigValidator.validate_swap_params({"key_namespace": "a/b"})
        assert issues and issues[0].field == "key_namespace"

    def test_seen_ids_at_least_capacity(self) -> None:
        """Test dedup memory smaller than the index."""
        issues = ConfigValidator.validate_orderbook_params(
            {"capacity": 100, "seen_ids_capacity": 50}
        )
        assert [i.field for i in issues] == ["seen_ids_capacity"]

    @pytest.mark.parametrize("tokens", [[], ["SAT", "SAT"], ["SAT", ""], "SAT"])
    def test_bad_token_lists(self, tokens) -> None:
        """Test malformed token lists."""
        issues = ConfigValidator.validate_network_params({"supported_tokens": tokens})
        assert issues and issues[0].field == "supported_tokens"

    def test_negative_retry_delay(self) -> None:
        """Test negative retry delays."""
        issues = ConfigValidator.validate_broadcast_params({"retry_delay_seconds": -1})
        assert issues[0].field == "retry_delay_seconds"
