"""Data models for indicator calculations"""

from dataclasses import dataclass
from typing import Optional

from ..indicators.momentum import PriceVelocity
from ..indicators.moving_average import EmaCrossover, MacdResult
from ..indicators.oscillators import StochasticRsi
from ..indicators.volatility import BollingerBands


@dataclass(frozen=True)
class IndicatorSet:
    """Indicator outputs computed from one price series at one instant"""
    price: float
    point_count: int
    sma: Optional[float] = None
    ema_fast: Optional[float] = None
    ema_slow: Optional[float] = None
    rsi: Optional[float] = None
    macd: Optional[MacdResult] = None
    bollinger: Optional[BollingerBands] = None
    ema_cross: Optional[EmaCrossover] = None
    stoch_rsi: Optional[StochasticRsi] = None
    velocity: Optional[PriceVelocity] = None

    def available(self) -> list[str]:
        """Names of the indicators that had enough history"""
        names = ["sma", "ema_fast", "ema_slow", "rsi", "macd", "bollinger",
                 "ema_cross", "stoch_rsi", "velocity"]
        return [name for name in names if getattr(self, name) is not None]

    def to_dict(self) -> dict:
        """Flat summary for logging and snapshots"""
        return {
            "price": self.price,
            "points": self.point_count,
            "rsi": round(self.rsi, 2) if self.rsi is not None else None,
            "macd": round(self.macd.value, 4) if self.macd else None,
            "ema_cross": (
                "cross_up" if self.ema_cross.cross_up
                else "cross_down" if self.ema_cross.cross_down
                else "bullish" if self.ema_cross.bullish
                else "bearish"
            ) if self.ema_cross else None,
            "bollinger_position": (
                round(self.bollinger.position(self.price), 3)
                if self.bollinger and self.bollinger.position(self.price) is not None
                else None
            ),
            "stoch_rsi": self.stoch_rsi.signal if self.stoch_rsi else None,
            "velocity": self.velocity.signal if self.velocity else None,
        }
