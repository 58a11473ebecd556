"""Bollinger Band calculations"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence


@dataclass(frozen=True)
class BollingerBands:
    """Bands at mean +/- num_std population standard deviations."""
    upper: float
    middle: float
    lower: float

    @property
    def width(self) -> float:
        return self.upper - self.lower

    def position(self, price: float) -> Optional[float]:
        """Where ``price`` sits in the band: 0 at lower, 1 at upper, None if flat."""
        if self.width <= 0:
            return None
        return (price - self.lower) / self.width


def bollinger_bands(prices: Sequence[float], period: int = 20,
                    num_std: float = 2.0) -> Optional[BollingerBands]:
    """
    Calculate Bollinger Bands over the last ``period`` prices

    Returns:
        BollingerBands or None if insufficient data
    """
    if period <= 0 or len(prices) < period:
        return None

    recent = prices[-period:]
    mean = sum(recent) / period
    variance = sum((p - mean) ** 2 for p in recent) / period
    std = math.sqrt(variance)

    return BollingerBands(
        upper=mean + num_std * std,
        middle=mean,
        lower=mean - num_std * std,
    )
