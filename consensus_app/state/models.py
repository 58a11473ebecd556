"""
Window lock data models.

A WindowLock is created OPEN at window start, transitions to COMMITTED
exactly once, and is discarded at rollover. Transitions return new records;
an existing record is never mutated.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from ..errors import StateTransitionError
from ..scoring.scorer import PredictionResult


class LockState(str, Enum):
    """Window lock lifecycle states."""
    OPEN = "open"
    COMMITTED = "committed"


@dataclass(frozen=True)
class WindowLock:
    """The single prediction record for one fixed time window."""

    window_id: str
    window_start: datetime
    state: LockState = LockState.OPEN
    committed_prediction: Optional[PredictionResult] = None
    committed_at_offset: Optional[float] = None       # Seconds since window start
    reference_price: Optional[float] = None
    reference_attempted: bool = False                 # One-shot opening price lookup

    @property
    def committed(self) -> bool:
        return self.state == LockState.COMMITTED

    def with_commit(self, prediction: Optional[PredictionResult], offset: float) -> 'WindowLock':
        """
        Commit ``prediction`` at ``offset`` seconds into the window.

        Raises:
            StateTransitionError: if already committed or ``prediction`` is None
        """
        if self.committed:
            raise StateTransitionError(
                f"Window {self.window_id} is already committed",
                window_id=self.window_id,
                current_state=self.state.value,
                attempted_transition=LockState.COMMITTED.value,
            )
        if prediction is None:
            raise StateTransitionError(
                f"Cannot commit window {self.window_id} without a prediction",
                window_id=self.window_id,
                current_state=self.state.value,
                attempted_transition=LockState.COMMITTED.value,
            )

        return replace(
            self,
            state=LockState.COMMITTED,
            committed_prediction=prediction,
            committed_at_offset=offset,
        )

    def with_reference_price(self, price: Optional[float]) -> 'WindowLock':
        """Record the reference price lookup; marks the attempt even when ``price`` is None."""
        return replace(
            self,
            reference_price=price if price is not None else self.reference_price,
            reference_attempted=True,
        )


@dataclass(frozen=True)
class PredictionSnapshot:
    """Read-only view of the active window's prediction for external callers."""

    window_id: str
    committed: bool
    direction: Optional[str] = None
    confidence: Optional[int] = None
    committed_at_offset: Optional[float] = None
    reference_price: Optional[float] = None

    @classmethod
    def from_lock(cls, lock: WindowLock) -> 'PredictionSnapshot':
        prediction = lock.committed_prediction
        return cls(
            window_id=lock.window_id,
            committed=lock.committed,
            direction=prediction.direction.value if prediction else None,
            confidence=prediction.confidence if prediction else None,
            committed_at_offset=lock.committed_at_offset,
            reference_price=lock.reference_price,
        )

    def to_dict(self) -> dict:
        return {
            "windowId": self.window_id,
            "committed": self.committed,
            "direction": self.direction,
            "confidence": self.confidence,
            "committedAtOffset": self.committed_at_offset,
            "referencePrice": self.reference_price,
        }
