"""RSI and Stochastic RSI oscillators"""

from dataclasses import dataclass
from typing import Optional, Sequence

OVERBOUGHT = "OVERBOUGHT"
OVERSOLD = "OVERSOLD"
BULLISH = "BULLISH"
BEARISH = "BEARISH"


@dataclass(frozen=True)
class StochasticRsi:
    """Normalized RSI oscillator (0-100) with its classification."""
    value: float
    signal: str      # OVERBOUGHT, OVERSOLD, BULLISH or BEARISH

    @property
    def overbought(self) -> bool:
        return self.signal == OVERBOUGHT

    @property
    def oversold(self) -> bool:
        return self.signal == OVERSOLD


def rsi(prices: Sequence[float], period: int = 14) -> Optional[float]:
    """
    Relative Strength Index over the last ``period`` deltas

    RSI = 100 - 100 / (1 + avg_gain / avg_loss), and exactly 100 when
    there are no losses in the lookback.

    Args:
        prices: Price sequence, oldest first
        period: Number of deltas in the lookback (needs period + 1 prices)

    Returns:
        RSI value or None if insufficient data
    """
    if period <= 0 or len(prices) < period + 1:
        return None

    window = prices[-(period + 1):]
    gains = 0.0
    losses = 0.0
    for previous, current in zip(window, window[1:]):
        delta = current - previous
        if delta > 0:
            gains += delta
        elif delta < 0:
            losses -= delta

    avg_gain = gains / period
    avg_loss = losses / period
    if avg_loss == 0:
        return 100.0

    return 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)


def rsi_series(prices: Sequence[float], period: int = 14) -> list[float]:
    """RSI of every prefix of ``prices`` long enough to compute one."""
    return [
        rsi(prices[:end], period)
        for end in range(period + 1, len(prices) + 1)
    ]


def stochastic_rsi(prices: Sequence[float], rsi_period: int = 14,
                   smooth_period: int = 14) -> Optional[StochasticRsi]:
    """
    Stochastic RSI

    Min-max normalizes the most recent ``smooth_period`` RSI readings into a
    0-100 oscillator. A flat RSI range normalizes to 0.

    Returns:
        StochasticRsi or None if fewer than smooth_period RSI readings exist
    """
    readings = rsi_series(prices, rsi_period)
    if smooth_period <= 0 or len(readings) < smooth_period:
        return None

    recent = readings[-smooth_period:]
    low = min(recent)
    span = (max(recent) - low) or 1.0
    value = (recent[-1] - low) / span * 100.0

    if value > 80:
        signal = OVERBOUGHT
    elif value < 20:
        signal = OVERSOLD
    elif value >= 50:
        signal = BULLISH
    else:
        signal = BEARISH

    return StochasticRsi(value=value, signal=signal)
