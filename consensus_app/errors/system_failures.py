"""
System failure error classifications.

These exceptions represent programming errors or broken invariants, such as
recommitting a window. They are never recovered from by overwriting state.
"""

from typing import Any, Dict, List, Optional


class SystemFailureError(Exception):
    """Base class for unrecoverable failures."""

    recoverable = False

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


class StateTransitionError(SystemFailureError):
    """Invalid window lock transition."""

    def __init__(self, message: str, window_id: Optional[str] = None,
                 current_state: Optional[str] = None,
                 attempted_transition: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.window_id = window_id
        self.current_state = current_state
        self.attempted_transition = attempted_transition


class PersistenceError(SystemFailureError):
    """Prediction store failures."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 target: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.target = target


class ConfigurationError(SystemFailureError):
    """Configuration that cannot be loaded or fails validation."""

    def __init__(self, message: str, errors: Optional[List[str]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or []
