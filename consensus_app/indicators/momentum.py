"""Price velocity and acceleration"""

from dataclasses import dataclass
from typing import Optional, Sequence

ACCELERATING_UP = "ACCELERATING UP"
ACCELERATING_DOWN = "ACCELERATING DOWN"
DECELERATING_UP = "DECELERATING UP"
DECELERATING_DOWN = "DECELERATING DOWN"
NEUTRAL = "NEUTRAL"


@dataclass(frozen=True)
class PriceVelocity:
    """Recent and prior rate of change (percent per step) and their difference."""
    velocity: float
    prev_velocity: float
    acceleration: float
    signal: str


def _rate_of_change(start: float, end: float, steps: int) -> Optional[float]:
    if start == 0:
        return None
    return (end - start) / start * 100.0 / steps


def price_velocity(prices: Sequence[float], min_points: int = 10) -> Optional[PriceVelocity]:
    """
    Classify short-term momentum

    Compares the 3-step average rate of change ending at the latest price
    with the one ending 4 points back (starting 8 points back).

    Returns:
        PriceVelocity or None if fewer than ``min_points`` prices
    """
    if len(prices) < max(min_points, 8):
        return None

    velocity = _rate_of_change(prices[-4], prices[-1], 3)
    prev_velocity = _rate_of_change(prices[-8], prices[-5], 3)
    if velocity is None or prev_velocity is None:
        return None

    acceleration = velocity - prev_velocity

    if velocity > 0:
        signal = ACCELERATING_UP if acceleration > 0 else DECELERATING_UP
    elif velocity < 0:
        signal = ACCELERATING_DOWN if acceleration < 0 else DECELERATING_DOWN
    else:
        signal = NEUTRAL

    return PriceVelocity(
        velocity=velocity,
        prev_velocity=prev_velocity,
        acceleration=acceleration,
        signal=signal,
    )
