"""
Canonical data models for external market and participant data.

These immutable records are what the parsers produce and what the rest of
the engine consumes; raw payload shapes never leave the data package.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class Side(str, Enum):
    """Binary outcome of a window: YES means the price finished up."""
    YES = "YES"
    NO = "NO"

    @classmethod
    def from_label(cls, label: str) -> Optional["Side"]:
        """Map an outcome label ("Up", "Yes", "Down", "No") to a side."""
        normalized = str(label).strip().lower()
        if normalized in ("up", "yes"):
            return cls.YES
        if normalized in ("down", "no"):
            return cls.NO
        return None


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Outcome of one external call: a value or a failure reason, never an exception."""
    ok: bool
    value: Optional[T] = None
    reason: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "FetchResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, reason: str) -> "FetchResult[T]":
        return cls(ok=False, reason=reason)


@dataclass(frozen=True)
class ParticipantPosition:
    """One participant's position in a resolved window."""
    trader_id: str
    side: Side
    size: float
    display_name: Optional[str] = None


@dataclass(frozen=True)
class WindowResolution:
    """Resolution state of one window and the positions held in it."""
    window_id: str
    resolved: bool
    settlement: tuple[tuple[Side, float], ...] = ()
    positions: tuple[ParticipantPosition, ...] = ()

    def winner(self, threshold: float) -> Optional[Side]:
        """The side whose settlement price exceeds ``threshold``, if any."""
        if not self.resolved:
            return None
        for side, price in self.settlement:
            if price > threshold:
                return side
        return None


@dataclass(frozen=True)
class PositionRecord:
    """A live position or trade of one participant in the current window."""
    side: Side
    size: float
    source: str          # "positions" or "activity"
