"""Configuration loader with 3-tier parameter precedence."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from .defaults import DefaultConfig, get_default_config


@dataclass(frozen=True)
class ConfigLoader:
    """Manages configuration loading with 3-tier precedence."""

    config_dir: Path
    defaults: DefaultConfig

    @classmethod
    def create(cls, config_dir: Optional[Path] = None) -> "ConfigLoader":
        """Create a ConfigLoader instance."""
        if config_dir is None:
            config_dir = Path(__file__).parent.parent.parent / "config"

        return cls(
            config_dir=Path(config_dir),
            defaults=get_default_config(),
        )

    def load_network_config(self, network: str) -> dict[str, Any]:
        """Load network-specific configuration overrides."""
        networks_file = self.config_dir / "networks.yaml"

        if not networks_file.exists():
            return {}

        with open(networks_file) as f:
            networks_config = yaml.safe_load(f) or {}

        return networks_config.get("networks", {}).get(network, {})  # type: ignore[no-any-return]

    def merge_config(
        self,
        network: Optional[str] = None,
        overrides: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        """
        Merge configuration with 3-tier precedence.

        Priority order:
        1. Explicit overrides (highest priority)
        2. Network-specific overrides from networks.yaml
        3. Global defaults (lowest priority)
        """
        config = self._dataclass_to_dict(self.defaults)

        network = network or config["network"]["network"]
        network_config = self.load_network_config(network)
        config = self._deep_merge(config, network_config)

        if overrides:
            config = self._deep_merge(config, overrides)

        return config

    def _dataclass_to_dict(self, obj: Any) -> dict[str, Any]:
        """Convert nested dataclasses to dictionary."""
        if hasattr(obj, '__dataclass_fields__'):
            result = {}
            for field_name, _field in obj.__dataclass_fields__.items():
                value = getattr(obj, field_name)
                if hasattr(value, '__dataclass_fields__'):
                    result[field_name] = self._dataclass_to_dict(value)
                elif isinstance(value, tuple):
                    result[field_name] = list(value)
                else:
                    result[field_name] = value
            return result
        return obj  # type: ignore[no-any-return]

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def load(
        self,
        network: Optional[str] = None,
        overrides: Optional[dict[str, Any]] = None
    ) -> DefaultConfig:
        """Merge configuration tiers and rebuild the typed configuration."""
        merged = self.merge_config(network, overrides)
        return build_config(merged)


def build_config(merged: dict[str, Any]) -> DefaultConfig:
    """Rebuild a typed DefaultConfig from a merged configuration dict."""
    defaults = get_default_config()
    sections = {}

    for section_name in defaults.__dataclass_fields__:
        section_default = getattr(defaults, section_name)
        section_cls = type(section_default)
        values = dict(merged.get(section_name, {}))
        known = {k: v for k, v in values.items() if k in section_cls.__dataclass_fields__}
        if "supported_tokens" in known:
            known["supported_tokens"] = tuple(known["supported_tokens"])
        sections[section_name] = section_cls(**known)

    return DefaultConfig(**sections)
