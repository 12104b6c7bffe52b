"""Configuration defaults, loading and validation."""
from .defaults import CoinInfo, LoggingParams, TrackerConfig, TTLParams, get_default_config
from .loader import ConfigLoader
from .validation import ConfigValidationError, ConfigValidator

__all__ = [
    "CoinInfo",
    "ConfigLoader",
    "ConfigValidationError",
    "ConfigValidator",
    "LoggingParams",
    "TTLParams",
    "TrackerConfig",
    "get_default_config",
]
