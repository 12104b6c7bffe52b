#!/usr/bin/env python3
"""Configuration validation script."""

import sys
from pathlib import Path
from typing import Any, Optional

from crypto_tracker.config.loader import CONFIG_FILENAME, ConfigLoader
from crypto_tracker.config.validation import ConfigValidator


def check(loader: ConfigLoader, label: str, overrides: Optional[dict[str, Any]] = None) -> bool:
    """Validate the merged configuration and print any errors."""
    print(f"\n📋 {label}...")
    errors = ConfigValidator.validate_config(loader.merge_config(overrides))

    if errors:
        print(f"❌ Found {len(errors)} validation errors:")
        for error in errors:
            print(f"  • {error.field}: {error.message} (value: {error.value})")
        return False

    print("✅ Configuration is valid")
    return True


def main():
    """Main validation function."""
    config_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else None
    loader = ConfigLoader.create(config_dir)

    print(f"🔍 Validating {loader.config_dir / CONFIG_FILENAME}...")

    all_valid = check(loader, "Defaults merged with file")

    # Overrides a caller is expected to apply on top of the file
    all_valid &= check(loader, "Fast refresh override", {"sync": {"auto_refresh_ms": 15_000}})
    all_valid &= check(loader, "Single-coin override", {
        "market": {"coins": [{"id": "bitcoin", "name": "Bitcoin", "symbol": "BTC"}]},
    })

    if all_valid:
        config = loader.load()
        print(f"\n🎉 All configuration validation passed! Tracking {', '.join(config.market.coin_ids)}")
        sys.exit(0)

    print("\n❌ Configuration validation failed!")
    sys.exit(1)


if __name__ == "__main__":
    main()
