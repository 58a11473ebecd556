#!/usr/bin/env python3
"""Run the consensus engine loop against the configured HTTP sources."""

import argparse
import signal
import sys
import threading
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from consensus_app.config.loader import ConfigLoader
from consensus_app.engine import ConsensusEngine
from consensus_app.errors import ConfigurationError
from consensus_app.logging import configure_logging, get_logger


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Market signal consensus engine")
    parser.add_argument(
        "--config-dir",
        default=None,
        help="Directory containing engine.yaml (default: repo config/)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override the configured log level, e.g. DEBUG",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit JSON log lines",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and print the snapshots",
    )
    parser.add_argument(
        "--no-persistence",
        action="store_true",
        help="Do not record predictions to SQLite",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    try:
        logging_config = ConfigLoader.create(args.config_dir).build_config().logging
    except ConfigurationError as e:
        print(f"Cannot load configuration: {e}", file=sys.stderr)
        return 1

    configure_logging(
        level=args.log_level or logging_config.level,
        format_json=args.json or logging_config.format_json,
    )
    logger = get_logger("run_engine")

    overrides = {"persistence": {"enabled": False}} if args.no_persistence else None
    try:
        engine = ConsensusEngine(config_dir=args.config_dir, overrides=overrides)
    except ConfigurationError as e:
        logger.error("Engine configuration invalid", error=str(e), errors=e.errors)
        return 1

    if args.once:
        result = engine.run_once()
        print(result["prediction"])
        print(result["consensus"])
        return 0

    stop_event = threading.Event()

    def handle_signal(signum, frame):
        logger.info("Shutdown requested", signal=signum)
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    engine.run_forever(stop_event)
    return 0


if __name__ == "__main__":
    sys.exit(main())
