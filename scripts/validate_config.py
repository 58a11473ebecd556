#!/usr/bin/env python3
"""Configuration validation script."""

import argparse
import sys
from pathlib import Path
from typing import List

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from consensus_app.config.loader import ConfigLoader
from consensus_app.config.validation import ConfigValidator, ValidationError
from consensus_app.errors import ConfigurationError

# Window profiles the shipped file must stay valid under
WINDOW_PROFILES = {
    "15m": {"scheduler": {"window_seconds": 900, "window_prefix": "btc-updown-15m",
                          "min_wait_seconds": 120, "max_wait_seconds": 600}},
    "1h": {},
    "4h": {"scheduler": {"window_seconds": 14400, "window_prefix": "btc-updown-4h",
                         "min_wait_seconds": 3600, "max_wait_seconds": 10800}},
}


def validate_engine_config(config_dir=None, overrides=None) -> List[ValidationError]:
    """Validate the merged engine configuration."""
    loader = ConfigLoader.create(config_dir)
    config = loader.merge_config(overrides)
    return ConfigValidator.validate_config(config)


def describe_schedule(config_dir=None) -> str:
    scheduler = ConfigLoader.create(config_dir).build_config().scheduler
    return (f"{scheduler.window_prefix}: {scheduler.window_seconds}s windows, "
            f"commit between {scheduler.min_wait_seconds:.0f}s and {scheduler.max_wait_seconds:.0f}s")


def main():
    """Main validation function."""
    parser = argparse.ArgumentParser(description="Validate consensus engine configuration")
    parser.add_argument("--config-dir", default=None, help="Directory containing engine.yaml")
    args = parser.parse_args()

    print("🔍 Validating consensus engine configuration...")

    all_valid = True

    for profile, overrides in WINDOW_PROFILES.items():
        print(f"\n📊 Validating {profile} window profile...")

        try:
            errors = validate_engine_config(args.config_dir, overrides)
        except ConfigurationError as e:
            print(f"❌ Error loading configuration: {e}")
            all_valid = False
            break

        if errors:
            print(f"❌ Found {len(errors)} validation errors:")
            for error in errors:
                print(f"  • {error.field}: {error.message} (value: {error.value})")
            all_valid = False
        else:
            print(f"✅ {profile} profile is valid")

    if all_valid:
        print(f"\n📋 Effective schedule: {describe_schedule(args.config_dir)}")
        print("\n🎉 All configuration validation passed!")
        sys.exit(0)
    else:
        print("\n❌ Configuration validation failed!")
        sys.exit(1)


if __name__ == "__main__":
    main()
