"""Indicator calculator producing one IndicatorSet per price series"""

from typing import TYPE_CHECKING, Optional, Sequence

from ..config.defaults import IndicatorParams
from ..errors import MissingDataError
from .momentum import price_velocity
from .moving_average import ema, ema_crossover, macd, sma
from .oscillators import rsi, stochastic_rsi
from .volatility import bollinger_bands

if TYPE_CHECKING:
    from ..models.indicators import IndicatorSet


class IndicatorCalculator:
    """
    Single entry point for every consumer of the indicator library.

    Indicators lacking history are left as None in the snapshot rather than
    raising.
    """

    def __init__(self, params: Optional[IndicatorParams] = None):
        self.params = params or IndicatorParams()

    def calculate(self, prices: Sequence[float]) -> "IndicatorSet":
        """
        Calculate every indicator for ``prices``

        Raises:
            MissingDataError: if the series is empty
        """
        if not prices:
            raise MissingDataError("Price series is empty", data_type="prices")

        from ..models.indicators import IndicatorSet

        p = self.params
        series = list(prices)

        return IndicatorSet(
            price=series[-1],
            point_count=len(series),
            sma=sma(series, p.sma_period),
            ema_fast=ema(series, p.ema_fast),
            ema_slow=ema(series, p.ema_slow),
            rsi=rsi(series, p.rsi_period),
            macd=macd(series, p.macd_fast, p.macd_slow),
            bollinger=bollinger_bands(series, p.bollinger_period, p.bollinger_std),
            ema_cross=ema_crossover(series, p.ema_fast, p.ema_slow),
            stoch_rsi=stochastic_rsi(series, p.rsi_period, p.stoch_smooth_period),
            velocity=price_velocity(series),
        )

    def get_warmup_period(self) -> int:
        """Minimum number of prices needed for every indicator to be available"""
        p = self.params
        return max(p.macd_slow, p.bollinger_period, 25,
                   p.rsi_period + p.stoch_smooth_period, 10)
