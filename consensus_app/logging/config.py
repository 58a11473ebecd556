"""
Centralized logging configuration for the consensus engine.

All components log through structlog so that window lock transitions,
commit decisions and trader ranking refreshes share one structured format.
"""
import logging
import sys
from typing import Any, Optional, TextIO

import structlog
from structlog.types import FilteringBoundLogger, Processor


def build_processors(
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list[Processor]] = None,
    colors: bool = True
) -> list[Processor]:
    """
    Build the structlog processor chain, renderer last.

    Timestamps are UTC so they line up with window boundaries.
    """
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
    ]
    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))

    processors += [
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.FILENAME,
                        structlog.processors.CallsiteParameter.LINENO]
        ))

    processors.extend(extra_processors or [])

    if format_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=colors))
    return processors


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list[Processor]] = None,
    stream: TextIO = sys.stdout
) -> None:
    """
    Configure structlog for the entire application.

    Safe to call more than once; the latest call wins.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: If True, output JSON lines; otherwise human-readable
        include_timestamp: Include a UTC ISO timestamp
        include_caller: Include caller information (filename, line number)
        extra_processors: Additional processors, run before rendering
        stream: Output stream; console colors only when it is a terminal
    """
    log_level = getattr(logging, level.upper())

    logging.basicConfig(level=log_level, stream=stream, format="%(message)s", force=True)

    colors = hasattr(stream, "isatty") and stream.isatty()
    structlog.configure(
        processors=build_processors(format_json, include_timestamp, include_caller,
                                    extra_processors, colors=colors),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """
    Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)


def get_state_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger bound for window lock state transitions.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger for window lock events
    """
    return get_logger(name).bind(
        subsystem="window_lock",
        audit_trail=True
    )


def get_ranking_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger bound for trader discovery and consensus voting.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger for trader ranking events
    """
    return get_logger(name).bind(subsystem="traders")


def log_commit_decision(
    logger: FilteringBoundLogger,
    window_id: str,
    committed: bool,
    elapsed_seconds: float,
    threshold_seconds: float,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log whether a tick committed the window's prediction.

    Args:
        logger: Structlog logger instance
        window_id: Window being evaluated
        committed: Whether the elapsed time passed the adaptive threshold
        elapsed_seconds: Seconds since window start
        threshold_seconds: Adaptive commit threshold for this tick
        context: Additional context data
    """
    bound_logger = logger.bind(
        window_id=window_id,
        decision="COMMIT" if committed else "WAIT",
        elapsed_seconds=round(elapsed_seconds, 1),
        threshold_seconds=round(threshold_seconds, 1),
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    if committed:
        bound_logger.info("Commit threshold reached")
    else:
        bound_logger.debug("Waiting for commit threshold")


def log_state_transition(
    logger: FilteringBoundLogger,
    window_id: str,
    from_state: str,
    to_state: str,
    trigger: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a window lock state transition with standardized format.

    Args:
        logger: Structlog logger instance
        window_id: ID of the window transitioning
        from_state: Current state
        to_state: Target state
        trigger: What triggered the transition
        context: Additional context data
    """
    bound_logger = logger.bind(
        window_id=window_id,
        from_state=from_state,
        to_state=to_state,
        trigger=trigger,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.info("State transition")
