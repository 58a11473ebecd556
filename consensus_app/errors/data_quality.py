"""
Data quality error classifications for market and participant data.

These exceptions describe market or participant payloads that are missing or
malformed. They are recoverable: the next scheduled tick retries.
"""

from typing import Any, Dict, Optional

# Raw payload excerpts kept on errors are cut to this length
RAW_EXCERPT_LENGTH = 100


class DataQualityError(Exception):
    """Base class for payload problems that end a fetch, never the engine."""

    recoverable = True

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


class MissingDataError(DataQualityError):
    """A feed returned nothing for the requested key."""

    def __init__(self, message: str, data_type: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.data_type = data_type


class MalformedDataError(DataQualityError):
    """A payload or one of its rows cannot be interpreted."""

    def __init__(self, message: str, raw_data: Any = None,
                 expected_format: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.raw_data = str(raw_data)[:RAW_EXCERPT_LENGTH] if raw_data is not None else None
        self.expected_format = expected_format
