"""Technical indicator library operating on a rolling price series"""

from .calculator import IndicatorCalculator
from .momentum import price_velocity
from .moving_average import ema, ema_crossover, macd, sma
from .oscillators import rsi, stochastic_rsi
from .volatility import bollinger_bands

__all__ = [
    "IndicatorCalculator",
    "sma",
    "ema",
    "macd",
    "ema_crossover",
    "rsi",
    "stochastic_rsi",
    "bollinger_bands",
    "price_velocity",
]
