"""Configuration loader with 3-tier parameter precedence."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from .defaults import (
    CacheParams,
    CoinInfo,
    LoggingParams,
    MarketParams,
    ProviderParams,
    SentimentParams,
    StorageParams,
    SyncParams,
    TrackerConfig,
    TTLParams,
    get_default_config,
)
from .validation import ConfigValidationError, ConfigValidator

CONFIG_FILENAME = "tracker.yaml"


@dataclass(frozen=True)
class ConfigLoader:
    """Manages configuration loading with 3-tier precedence."""

    config_dir: Path
    defaults: TrackerConfig

    @classmethod
    def create(cls, config_dir: Optional[Path] = None) -> "ConfigLoader":
        """Create a ConfigLoader instance."""
        if config_dir is None:
            config_dir = Path(__file__).parent.parent.parent / "config"

        return cls(
            config_dir=Path(config_dir),
            defaults=get_default_config(),
        )

    def load_file_config(self) -> dict[str, Any]:
        """Load overrides from tracker.yaml, empty when the file is absent."""
        config_file = self.config_dir / CONFIG_FILENAME

        if not config_file.exists():
            return {}

        with open(config_file) as f:
            file_config = yaml.safe_load(f)

        return file_config or {}

    def merge_config(self, overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        Merge configuration with 3-tier precedence.

        Priority order:
        1. Explicit overrides (highest priority)
        2. tracker.yaml in the config directory
        3. Built-in defaults (lowest priority)
        """
        config = self._dataclass_to_dict(self.defaults)
        config = self._deep_merge(config, self.load_file_config())

        if overrides:
            config = self._deep_merge(config, overrides)

        return config

    def load(self, overrides: Optional[dict[str, Any]] = None) -> TrackerConfig:
        """Merge, validate and build the typed configuration."""
        merged = self.merge_config(overrides)

        errors = ConfigValidator.validate_config(merged)
        if errors:
            raise ConfigValidationError(errors)

        return self._dict_to_config(merged)

    def _dataclass_to_dict(self, obj: Any) -> Any:
        """Convert nested dataclasses (and tuples of them) to plain data."""
        if hasattr(obj, '__dataclass_fields__'):
            return {
                field_name: self._dataclass_to_dict(getattr(obj, field_name))
                for field_name in obj.__dataclass_fields__
            }
        if isinstance(obj, tuple):
            return [self._dataclass_to_dict(item) for item in obj]
        return obj

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _dict_to_config(self, data: dict[str, Any]) -> TrackerConfig:
        cache = data["cache"]
        market = data["market"]

        return TrackerConfig(
            cache=CacheParams(
                prices=TTLParams(**cache["prices"]),
                ohlc=TTLParams(**cache["ohlc"]),
                namespace=cache["namespace"],
            ),
            sentiment=SentimentParams(**data["sentiment"]),
            sync=SyncParams(**data["sync"]),
            provider=ProviderParams(**data["provider"]),
            market=MarketParams(
                coins=tuple(CoinInfo(**coin) for coin in market["coins"]),
                ranges=tuple(market["ranges"]),
                default_range=market["default_range"],
            ),
            storage=StorageParams(**data["storage"]),
            logging=LoggingParams(**data["logging"]),
        )
