#!/usr/bin/env python3
"""Configuration validation script."""

import sys
from typing import Any, Optional

import yaml

from bitswap_app.config.loader import ConfigLoader
from bitswap_app.config.validation import ConfigIssue, ConfigValidator


def validate_network_config(
    loader: ConfigLoader,
    network: str,
    overrides: Optional[dict[str, Any]] = None
) -> list[ConfigIssue]:
    """Validate the merged configuration for one network."""
    config = loader.merge_config(network, overrides)
    return ConfigValidator.validate_config(config)


def configured_networks(loader: ConfigLoader) -> list[str]:
    """Networks listed in networks.yaml."""
    networks_file = loader.config_dir / "networks.yaml"
    if not networks_file.exists():
        return []
    with open(networks_file) as f:
        return sorted((yaml.safe_load(f) or {}).get("networks", {}))


def main() -> None:
    """Main validation function."""
    print("🔍 Validating BitSwap configuration...")

    loader = ConfigLoader.create()
    networks = configured_networks(loader) + ["unknown-network"]  # falls back to defaults
    all_valid = True

    for network in networks:
        print(f"\n🌐 Validating {network}...")
        issues = validate_network_config(loader, network)

        if issues:
            print(f"❌ Found {len(issues)} validation errors:")
            for issue in issues:
                print(f"  • {issue.field}: {issue.message} (value: {issue.value})")
            all_valid = False
        else:
            print(f"✅ {network} configuration is valid")

    print("\n📋 Testing explicit overrides...")
    issues = validate_network_config(
        loader, "signet", {"swap": {"default_refund_delta": 72, "counter_refund_margin": 12}}
    )
    if issues:
        print("❌ Override validation failed:")
        for issue in issues:
            print(f"  • {issue.field}: {issue.message}")
        all_valid = False
    else:
        print("✅ Override validation passed")

    if all_valid:
        print("\n🎉 All configuration validation passed!")
        sys.exit(0)
    else:
        print("\n❌ Configuration validation failed!")
        sys.exit(1)


if __name__ == "__main__":
    main()
