"""
Prediction scorer.

Turns one IndicatorSet and one reference price into a directional
prediction. Each signal contributes its full weight when its condition
holds and nothing otherwise; confidence is compressed into a narrow band so
a small signal set never produces extreme output.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional, Sequence

import structlog

from ..config.defaults import IndicatorParams, ScoringParams
from ..indicators.calculator import IndicatorCalculator
from ..indicators.momentum import (
    ACCELERATING_DOWN,
    ACCELERATING_UP,
    DECELERATING_DOWN,
    DECELERATING_UP,
)

if TYPE_CHECKING:
    from ..models.indicators import IndicatorSet

logger = structlog.get_logger(__name__)


class Direction(str, Enum):
    """Predicted finish relative to the reference price."""
    UP = "UP"
    DOWN = "DOWN"


@dataclass(frozen=True)
class PredictionResult:
    """Deterministic scoring outcome for one price series and reference price."""
    direction: Direction
    confidence: int
    bull_score: float
    bear_score: float
    margin: float
    signals: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "direction": self.direction.value,
            "confidence": self.confidence,
            "bull_score": self.bull_score,
            "bear_score": self.bear_score,
            "margin": round(self.margin, 4),
            "signals": list(self.signals),
        }


class PredictionScorer:
    """Weighted scorer over the shared indicator library."""

    def __init__(self, params: Optional[ScoringParams] = None,
                 indicator_params: Optional[IndicatorParams] = None):
        self.params = params or ScoringParams()
        self.calculator = IndicatorCalculator(indicator_params)

        warmup = self.calculator.get_warmup_period()
        if self.params.min_points < warmup:
            # Early-window scores run without the slowest indicators
            logger.debug("Scoring starts before full indicator warmup",
                         min_points=self.params.min_points, warmup_points=warmup)

    def score(self, prices: Sequence[float],
              reference_price: Optional[float]) -> Optional[PredictionResult]:
        """
        Score a price series against the window's reference price.

        Args:
            prices: Closing prices for the current window, oldest first
            reference_price: Price-to-beat, None if not yet known

        Returns:
            PredictionResult, or None if fewer than ``min_points`` prices
        """
        if len(prices) < self.params.min_points:
            return None

        indicators = self.calculator.calculate(prices)
        return self.score_indicators(indicators, reference_price)

    def score_indicators(self, ind: "IndicatorSet",
                         reference_price: Optional[float]) -> PredictionResult:
        """Tally bull and bear points from an already computed IndicatorSet."""
        p = self.params
        bull = 0.0
        bear = 0.0
        fired: list[str] = []

        def add(side: str, weight: float, name: str) -> None:
            nonlocal bull, bear
            if side == "bull":
                bull += weight
            else:
                bear += weight
            fired.append(f"{name}:{side}")

        # Velocity
        if ind.velocity is not None:
            signal = ind.velocity.signal
            if signal == ACCELERATING_UP:
                add("bull", p.velocity_accel_weight, "velocity_accel")
            elif signal == ACCELERATING_DOWN:
                add("bear", p.velocity_accel_weight, "velocity_accel")
            elif signal == DECELERATING_UP:
                add("bull", p.velocity_decel_weight, "velocity_decel")
            elif signal == DECELERATING_DOWN:
                add("bear", p.velocity_decel_weight, "velocity_decel")

        # RSI
        if ind.rsi is not None:
            if ind.rsi < p.rsi_oversold:
                add("bull", p.rsi_extreme_weight, "rsi_extreme")
            elif ind.rsi > p.rsi_overbought:
                add("bear", p.rsi_extreme_weight, "rsi_extreme")
            elif ind.rsi < p.rsi_lean_bull:
                add("bull", p.rsi_lean_weight, "rsi_lean")
            elif ind.rsi > p.rsi_lean_bear:
                add("bear", p.rsi_lean_weight, "rsi_lean")

        # EMA crossover
        if ind.ema_cross is not None:
            if ind.ema_cross.cross_up:
                add("bull", p.ema_cross_weight, "ema_cross")
            elif ind.ema_cross.cross_down:
                add("bear", p.ema_cross_weight, "ema_cross")
            elif ind.ema_cross.bullish:
                add("bull", p.ema_state_weight, "ema_state")
            else:
                add("bear", p.ema_state_weight, "ema_state")

        # MACD
        if ind.macd is not None:
            if ind.macd.value > 0:
                add("bull", p.macd_weight, "macd")
            elif ind.macd.value < 0:
                add("bear", p.macd_weight, "macd")

        # Bollinger position
        if ind.bollinger is not None:
            position = ind.bollinger.position(ind.price)
            if position is not None:
                if position < p.bollinger_edge_pct:
                    add("bull", p.bollinger_weight, "bollinger")
                elif position > 1 - p.bollinger_edge_pct:
                    add("bear", p.bollinger_weight, "bollinger")

        # Stochastic RSI
        if ind.stoch_rsi is not None:
            if ind.stoch_rsi.oversold:
                add("bull", p.stoch_rsi_weight, "stoch_rsi")
            elif ind.stoch_rsi.overbought:
                add("bear", p.stoch_rsi_weight, "stoch_rsi")

        # Reference price gap
        if reference_price is not None:
            gap = ind.price - reference_price
            if gap > p.reference_gap_units:
                add("bull", p.reference_gap_weight, "reference_gap")
            elif gap < -p.reference_gap_units:
                add("bear", p.reference_gap_weight, "reference_gap")

        direction = Direction.UP if bull > bear else Direction.DOWN
        bull_fraction = bull / max(bull + bear, 1.0)
        margin = abs(bull_fraction - 0.5) * 2
        raw_confidence = p.confidence_base + margin * p.confidence_span
        confidence = round(min(max(raw_confidence, p.confidence_min), p.confidence_max))

        result = PredictionResult(
            direction=direction,
            confidence=int(confidence),
            bull_score=bull,
            bear_score=bear,
            margin=margin,
            signals=tuple(fired),
        )

        logger.debug(
            "Scored price series",
            direction=direction.value,
            confidence=result.confidence,
            bull_score=bull,
            bear_score=bear,
            indicators=ind.to_dict()
        )

        return result
