"""Configuration validation utilities."""

from dataclasses import dataclass
from typing import Any

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


class ConfigValidationError(ValueError):
    """Raised by ConfigLoader.load when validation fails."""

    def __init__(self, errors: list[ValidationError]):
        details = "; ".join(f"{err.field}: {err.message} (got: {err.value!r})" for err in errors)
        super().__init__(f"Invalid configuration: {details}")
        self.errors = errors


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_ttl_params(kind: str, params: dict[str, Any]) -> list[ValidationError]:
        """Validate fresh/stale thresholds for one cache kind."""
        errors = []
        fresh = params.get("fresh_ttl_ms")
        stale = params.get("stale_ttl_ms")

        if not _is_positive_int(fresh):
            errors.append(ValidationError(
                field=f"cache.{kind}.fresh_ttl_ms",
                message="Must be a positive integer",
                value=fresh
            ))

        if not _is_positive_int(stale):
            errors.append(ValidationError(
                field=f"cache.{kind}.stale_ttl_ms",
                message="Must be a positive integer",
                value=stale
            ))

        if not errors and fresh >= stale:
            errors.append(ValidationError(
                field=f"cache.{kind}.stale_ttl_ms",
                message="Must be greater than fresh_ttl_ms",
                value=stale
            ))

        return errors

    @staticmethod
    def validate_sync_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate scheduler intervals."""
        errors = []

        if "debounce_ms" in params:
            value = params["debounce_ms"]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                errors.append(ValidationError(
                    field="sync.debounce_ms",
                    message="Must be a non-negative integer",
                    value=value
                ))

        for name in ("auto_refresh_ms", "countdown_tick_ms"):
            if name in params and not _is_positive_int(params[name]):
                errors.append(ValidationError(
                    field=f"sync.{name}",
                    message="Must be a positive integer",
                    value=params[name]
                ))

        return errors

    @staticmethod
    def validate_market_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate supported coins and ranges."""
        errors = []

        coins = params.get("coins")
        if not coins:
            errors.append(ValidationError(
                field="market.coins",
                message="At least one coin is required",
                value=coins
            ))
        else:
            for coin in coins:
                if not isinstance(coin, dict) or not all(coin.get(k) for k in ("id", "name", "symbol")):
                    errors.append(ValidationError(
                        field="market.coins",
                        message="Each coin needs id, name and symbol",
                        value=coin
                    ))

        ranges = params.get("ranges")
        if not ranges or not all(_is_positive_int(r) for r in ranges):
            errors.append(ValidationError(
                field="market.ranges",
                message="Must be a non-empty list of positive day counts",
                value=ranges
            ))
        elif params.get("default_range") not in ranges:
            errors.append(ValidationError(
                field="market.default_range",
                message="Must be one of market.ranges",
                value=params.get("default_range")
            ))

        return errors

    @staticmethod
    def validate_logging_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate the log level name."""
        level = params.get("level", "INFO")
        if not isinstance(level, str) or level.upper() not in LOG_LEVELS:
            return [ValidationError(
                field="logging.level",
                message=f"Must be one of {', '.join(LOG_LEVELS)}",
                value=level
            )]
        return []

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ValidationError]:
        """Validate complete configuration."""
        errors = []

        cache = config.get("cache", {})
        for kind in ("prices", "ohlc"):
            if kind in cache:
                errors.extend(ConfigValidator.validate_ttl_params(kind, cache[kind]))

        if "sync" in config:
            errors.extend(ConfigValidator.validate_sync_params(config["sync"]))

        if "market" in config:
            errors.extend(ConfigValidator.validate_market_params(config["market"]))

        if "logging" in config:
            errors.extend(ConfigValidator.validate_logging_params(config["logging"]))

        sentiment = config.get("sentiment", {})
        for name in ("ttl_ms", "refresh_interval_ms", "limit"):
            if name in sentiment and not _is_positive_int(sentiment[name]):
                errors.append(ValidationError(
                    field=f"sentiment.{name}",
                    message="Must be a positive integer",
                    value=sentiment[name]
                ))

        return errors
