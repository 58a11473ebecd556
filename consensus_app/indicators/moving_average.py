"""Moving averages and the trend signals built on them (MACD, EMA crossover)"""

from dataclasses import dataclass
from typing import Optional, Sequence


@dataclass(frozen=True)
class MacdResult:
    """MACD line value and its directional reading."""
    value: float
    bullish: bool


@dataclass(frozen=True)
class EmaCrossover:
    """Fast/slow EMA relationship at the latest point."""
    ema_fast: float
    ema_slow: float
    cross_up: bool       # Fast crossed above slow on the latest point
    cross_down: bool     # Fast crossed below slow on the latest point
    bullish: bool        # Fast currently above slow


def sma(prices: Sequence[float], period: int) -> Optional[float]:
    """
    Simple Moving Average of the last ``period`` prices

    Args:
        prices: Price sequence, oldest first
        period: Number of trailing values to average

    Returns:
        SMA value or None if insufficient data
    """
    if period <= 0 or len(prices) < period:
        return None

    recent = prices[-period:]
    return sum(recent) / period


def ema(prices: Sequence[float], period: int) -> Optional[float]:
    """
    Exponential Moving Average

    Seeded with the SMA of the first ``period`` prices, then
    e[i] = price[i] * k + e[i-1] * (1 - k) with k = 2 / (period + 1).

    Args:
        prices: Price sequence, oldest first
        period: EMA period

    Returns:
        EMA value at the latest price or None if insufficient data
    """
    if period <= 0 or len(prices) < period:
        return None

    k = 2.0 / (period + 1)
    value = sum(prices[:period]) / period
    for price in prices[period:]:
        value = price * k + value * (1 - k)

    return value


def macd(prices: Sequence[float], fast: int = 12, slow: int = 26) -> Optional[MacdResult]:
    """
    MACD line (fast EMA minus slow EMA)

    Returns:
        MacdResult or None if either EMA lacks history
    """
    fast_ema = ema(prices, fast)
    slow_ema = ema(prices, slow)
    if fast_ema is None or slow_ema is None:
        return None

    value = fast_ema - slow_ema
    return MacdResult(value=value, bullish=value > 0)


def ema_crossover(prices: Sequence[float], fast: int = 9, slow: int = 21,
                  min_points: int = 25) -> Optional[EmaCrossover]:
    """
    Detect a fast/slow EMA crossing on the latest point

    The previous relationship is measured on the series without its last
    element, so a cross is reported only on the point where it happens.

    Returns:
        EmaCrossover or None if fewer than ``min_points`` prices
    """
    if len(prices) < min_points:
        return None

    fast_now = ema(prices, fast)
    slow_now = ema(prices, slow)
    fast_prev = ema(prices[:-1], fast)
    slow_prev = ema(prices[:-1], slow)
    if None in (fast_now, slow_now, fast_prev, slow_prev):
        return None

    return EmaCrossover(
        ema_fast=fast_now,
        ema_slow=slow_now,
        cross_up=fast_prev <= slow_prev and fast_now > slow_now,
        cross_down=fast_prev >= slow_prev and fast_now < slow_now,
        bullish=fast_now > slow_now,
    )
