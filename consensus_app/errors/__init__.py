"""
Error classification for the consensus engine.

Data quality errors describe recoverable problems with market or participant
data; system failures describe programming errors and broken invariants.
External source failures are not exceptions: they travel as ``FetchResult``
failures and are absorbed by the market data cache.
"""

from .data_quality import (
    DataQualityError,
    MissingDataError,
    MalformedDataError,
)
from .system_failures import (
    SystemFailureError,
    StateTransitionError,
    PersistenceError,
    ConfigurationError,
)

__all__ = [
    # Data Quality Errors
    "DataQualityError",
    "MissingDataError",
    "MalformedDataError",
    # System Failures
    "SystemFailureError",
    "StateTransitionError",
    "PersistenceError",
    "ConfigurationError",
]
