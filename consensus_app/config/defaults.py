"""Default configuration parameters for the consensus engine."""

from dataclasses import dataclass


@dataclass(frozen=True)
class IndicatorParams:
    """Indicator periods shared by every caller of the indicator library."""
    rsi_period: int = 14
    sma_period: int = 20
    bollinger_period: int = 20
    bollinger_std: float = 2.0
    ema_fast: int = 9
    ema_slow: int = 21
    macd_fast: int = 12
    macd_slow: int = 26
    stoch_smooth_period: int = 14


@dataclass(frozen=True)
class ScoringParams:
    """Signal weights and thresholds for the bull/bear tally."""
    min_points: int = 26                      # EMA-26 floor

    velocity_accel_weight: float = 3.0
    velocity_decel_weight: float = 1.0

    rsi_extreme_weight: float = 2.5
    rsi_lean_weight: float = 1.0
    rsi_oversold: float = 30.0
    rsi_overbought: float = 70.0
    rsi_lean_bull: float = 45.0
    rsi_lean_bear: float = 55.0

    ema_cross_weight: float = 3.0
    ema_state_weight: float = 1.5
    macd_weight: float = 1.5

    bollinger_weight: float = 2.0
    bollinger_edge_pct: float = 0.15          # Bottom/top fraction of the band

    stoch_rsi_weight: float = 2.0

    reference_gap_weight: float = 0.5
    reference_gap_units: float = 200.0        # Price units above/below reference

    confidence_base: float = 52.0
    confidence_span: float = 36.0
    confidence_min: float = 50.0
    confidence_max: float = 88.0


@dataclass(frozen=True)
class SchedulerParams:
    """Window lock timing parameters (seconds and price units)."""
    window_seconds: int = 3600
    poll_interval_seconds: int = 60
    window_prefix: str = "btc-updown-1h"
    min_wait_seconds: float = 600.0           # Commit delay when the gap is clear
    max_wait_seconds: float = 2400.0          # Commit delay when the gap is close
    clear_gap: float = 300.0
    close_gap: float = 50.0
    margin_pull_threshold: float = 0.5
    margin_pull_seconds: float = 600.0


@dataclass(frozen=True)
class CacheParams:
    """Time-to-live per cached external source."""
    price_ttl_seconds: float = 30.0
    resolution_ttl_seconds: float = 3600.0    # Resolved windows never change
    position_ttl_seconds: float = 60.0


@dataclass(frozen=True)
class DiscoveryParams:
    """Trader discovery parameters."""
    lookback_windows: int = 24
    rediscovery_interval_seconds: float = 3600.0
    win_threshold: float = 0.95               # Settlement price marking the winner
    min_position_size: float = 10.0
    min_windows: int = 5
    top_n: int = 10


@dataclass(frozen=True)
class ConsensusParams:
    """Consensus vote parameters."""
    vote_ttl_seconds: float = 60.0


@dataclass(frozen=True)
class SourceParams:
    """External HTTP source endpoints."""
    price_url: str = "https://api.binance.com/api/v3/klines"
    symbol: str = "BTCUSDT"
    interval: str = "1m"
    resolution_url: str = "https://gamma-api.polymarket.com/windows"
    positions_url: str = "https://data-api.polymarket.com/positions"
    activity_url: str = "https://data-api.polymarket.com/activity"
    timeout_seconds: float = 10.0
    user_agent: str = "consensus-app/0.1"


@dataclass(frozen=True)
class LoggingParams:
    """Logging output parameters."""
    level: str = "INFO"
    format_json: bool = False


@dataclass(frozen=True)
class PersistenceParams:
    """Prediction history storage."""
    enabled: bool = True
    db_path: str = "predictions.db"


@dataclass(frozen=True)
class DefaultConfig:
    """Complete default configuration."""
    indicators: IndicatorParams
    scoring: ScoringParams
    scheduler: SchedulerParams
    cache: CacheParams
    discovery: DiscoveryParams
    consensus: ConsensusParams
    sources: SourceParams
    logging: LoggingParams
    persistence: PersistenceParams


def get_default_config() -> DefaultConfig:
    """Get the default configuration instance."""
    return DefaultConfig(
        indicators=IndicatorParams(),
        scoring=ScoringParams(),
        scheduler=SchedulerParams(),
        cache=CacheParams(),
        discovery=DiscoveryParams(),
        consensus=ConsensusParams(),
        sources=SourceParams(),
        logging=LoggingParams(),
        persistence=PersistenceParams(),
    )
