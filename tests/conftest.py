"""Pytest configuration and shared fixtures."""

import pytest
from datetime import datetime, timezone
from typing import List

from consensus_app.data.models import ParticipantPosition, Side, WindowResolution


class ManualClock:
    """Monotonic clock stand-in advanced explicitly by tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> ManualClock:
    """Manually advanced monotonic clock."""
    return ManualClock()


@pytest.fixture
def window_open() -> datetime:
    """Start of an hourly window (epoch 1700002800, a multiple of 3600)."""
    return datetime(2023, 11, 14, 23, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def rising_prices() -> List[float]:
    """Thirty strictly rising closes, 100 through 129."""
    return [100.0 + i for i in range(30)]


@pytest.fixture
def choppy_prices() -> List[float]:
    """Forty closes oscillating around 100 with a mild upward drift."""
    pattern = [0.0, 1.5, -0.5, 2.0, 0.5, -1.0, 1.0, 2.5]
    return [100.0 + pattern[i % len(pattern)] + i * 0.1 for i in range(40)]


def make_resolution(window_id: str, winner: Side, positions: list) -> WindowResolution:
    """Build a resolved window where ``winner`` settled at 1.0."""
    loser = Side.NO if winner == Side.YES else Side.YES
    return WindowResolution(
        window_id=window_id,
        resolved=True,
        settlement=((winner, 1.0), (loser, 0.0)),
        positions=tuple(
            ParticipantPosition(trader_id=t, side=s, size=size, display_name=f"name-{t}")
            for t, s, size in positions
        ),
    )


@pytest.fixture
def resolution_factory():
    """Factory for resolved windows: ``resolution_factory(id, winner, [(trader, side, size)])``."""
    return make_resolution
