"""
Main consensus engine coordinator.

Owns every stateful component of one running engine and drives them on a
fixed interval: window lock tick, trader discovery, consensus vote. Snapshot
accessors expose the results as plain dictionaries for a serving layer.
"""

import threading
import time
from datetime import datetime
from typing import Any, Callable, Optional

import structlog

from .config.defaults import DefaultConfig
from .config.loader import ConfigLoader
from .config.validation import ConfigValidator
from .data.cache import UNAVAILABLE
from .data.sources import (
    HttpLivePositionSource,
    HttpPriceHistorySource,
    HttpWindowResolutionSource,
    LivePositionSource,
    PriceHistorySource,
    WindowResolutionSource,
)
from .errors import ConfigurationError, DataQualityError, StateTransitionError
from .persistence.prediction_store import PredictionStore
from .scoring.scorer import PredictionScorer
from .state.models import WindowLock
from .state.scheduler import WindowLockScheduler
from .traders.consensus import ConsensusAggregator
from .traders.discovery import TraderDiscoveryEngine
from .utils.time import elapsed_in_window, utc_now

logger = structlog.get_logger(__name__)


class ConsensusEngine:
    """
    Coordinator for the market signal consensus pipeline.

    Per cycle:
    Price history → Indicators → Score → Window lock
    Resolved windows → Trader ranking → Live positions → Consensus vote
    """

    def __init__(
        self,
        config_dir: Optional[str] = None,
        overrides: Optional[dict[str, Any]] = None,
        price_source: Optional[PriceHistorySource] = None,
        resolution_source: Optional[WindowResolutionSource] = None,
        position_source: Optional[LivePositionSource] = None,
        store: Optional[PredictionStore] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the consensus engine.

        Args:
            config_dir: Directory holding ``engine.yaml`` (repo ``config/`` by default)
            overrides: Explicit configuration overrides, highest precedence
            price_source: Price history source, HTTP source from config if omitted
            resolution_source: Window resolution source, HTTP source from config if omitted
            position_source: Live position source, HTTP source from config if omitted
            store: Prediction store, created from config when persistence is enabled
            clock: Monotonic clock shared by caches and refresh intervals

        Raises:
            ConfigurationError: if the merged configuration fails validation
        """
        self.logger = logger
        self.config_loader = ConfigLoader.create(config_dir)
        self.config = self._load_config(overrides)
        config = self.config

        price_source = price_source or HttpPriceHistorySource(config.sources)
        resolution_source = resolution_source or HttpWindowResolutionSource(config.sources)
        position_source = position_source or HttpLivePositionSource(config.sources)

        self.scorer = PredictionScorer(config.scoring, config.indicators)
        self.scheduler = WindowLockScheduler(
            self.scorer,
            price_source=price_source,
            params=config.scheduler,
            cache_params=config.cache,
        )
        self.discovery = TraderDiscoveryEngine(
            resolution_source=resolution_source,
            params=config.discovery,
            scheduler_params=config.scheduler,
            cache_params=config.cache,
            clock=clock,
        )
        self.aggregator = ConsensusAggregator(
            self.discovery,
            position_source=position_source,
            params=config.consensus,
            scheduler_params=config.scheduler,
            cache_params=config.cache,
            clock=clock,
        )

        if store is None and config.persistence.enabled:
            store = PredictionStore(config.persistence.db_path)
        self.store = store
        if self.store is not None:
            self.scheduler.on_rollover(self._record_window)

        self.logger.info(
            "Consensus engine initialized",
            window_prefix=config.scheduler.window_prefix,
            window_seconds=config.scheduler.window_seconds,
            poll_interval_seconds=config.scheduler.poll_interval_seconds,
            persistence=self.store is not None
        )

    def _load_config(self, overrides: Optional[dict[str, Any]]) -> DefaultConfig:
        merged = self.config_loader.merge_config(overrides)
        validation_errors = ConfigValidator.validate_config(merged)
        if validation_errors:
            error_msgs = [f"{err.field}: {err.message} (got: {err.value})" for err in validation_errors]
            self.logger.error("Configuration validation failed", errors=error_msgs)
            raise ConfigurationError("Invalid engine configuration", errors=error_msgs)
        return self.config_loader.build_config(overrides)

    def run_once(self, now: Optional[datetime] = None) -> dict[str, Any]:
        """
        Run one evaluation cycle.

        Every step is isolated: a failing step is logged and the remaining
        steps still run.

        Returns:
            Prediction and consensus snapshots after the cycle
        """
        now = now or utc_now()

        self._run_step("window_tick", self.scheduler.tick, now)
        self._run_step("trader_discovery", self.discovery.discover, now)
        self._run_step("consensus_vote", self.aggregator.vote, now)

        return {
            "prediction": self.prediction_snapshot(now),
            "consensus": self.consensus_snapshot(),
        }

    def run_forever(self, stop_event: Optional[threading.Event] = None) -> None:
        """Run cycles every ``poll_interval_seconds`` until ``stop_event`` is set."""
        stop_event = stop_event or threading.Event()
        interval = self.config.scheduler.poll_interval_seconds

        self.logger.info("Consensus engine loop started", poll_interval_seconds=interval)
        while not stop_event.is_set():
            self.run_once()
            stop_event.wait(interval)
        self.logger.info("Consensus engine loop stopped")

    def _run_step(self, step: str, func: Callable[[datetime], Any], now: datetime) -> Any:
        try:
            return func(now)

        except DataQualityError as e:
            self.logger.warning(
                "Data quality issue during cycle",
                step=step,
                error=str(e),
                error_type=type(e).__name__,
                context=getattr(e, 'context', {})
            )

        except StateTransitionError as e:
            self.logger.error(
                "State transition error during cycle",
                step=step,
                error=str(e),
                window_id=e.window_id,
                current_state=e.current_state,
                attempted_transition=e.attempted_transition
            )

        except Exception as e:
            self.logger.error(
                "Unexpected error during cycle",
                step=step,
                error=str(e),
                error_type=type(e).__name__
            )

        return None

    def _record_window(self, lock: WindowLock) -> None:
        """Rollover hook: store the finished window and settle earlier outcomes."""
        if lock.committed:
            self.store.record_commit(lock)
        else:
            self.logger.warning("Window ended without a committed prediction", window_id=lock.window_id)
        self._settle_outcomes()

    def _settle_outcomes(self) -> None:
        threshold = self.config.discovery.win_threshold
        pending = self.store.get_unresolved(limit=self.config.discovery.lookback_windows)

        for prediction in pending:
            resolution = self.discovery.resolution_cache.fetch(prediction.window_id)
            if resolution is UNAVAILABLE or not resolution.resolved:
                continue
            winner = resolution.winner(threshold)
            if winner is None:
                continue
            if self.store.record_outcome(prediction.window_id, winner):
                self.logger.info(
                    "Prediction outcome recorded",
                    window_id=prediction.window_id,
                    direction=prediction.direction,
                    outcome=winner.value
                )

    def set_reference_price(self, window_id: str, price: float) -> None:
        """Supply the price-to-beat for a window from an external feed."""
        self.scheduler.set_reference_price(window_id, price)

    def prediction_snapshot(self, now: Optional[datetime] = None) -> dict[str, Any]:
        """Current window's prediction as a plain dictionary."""
        return self.scheduler.snapshot(now).to_dict()

    def consensus_snapshot(self) -> dict[str, Any]:
        """Latest consensus vote as a plain dictionary."""
        vote = self.aggregator.last_vote
        if vote is None:
            return {"windowId": None, "direction": None, "confidence": 0.0, "contributors": []}
        return vote.to_dict()

    def ranking_snapshot(self) -> list[dict[str, Any]]:
        """Current trader ranking as a list of profile dictionaries."""
        ranking = self.discovery.ranking
        if ranking is None:
            return []
        return [profile.to_dict() for profile in ranking.profiles]

    def get_runtime_stats(self) -> dict[str, Any]:
        """Get runtime statistics."""
        lock = self.scheduler.current_lock
        preview = self.scheduler.latest_preview
        ranking = self.discovery.ranking
        return {
            'window_id': lock.window_id if lock else None,
            'elapsed_seconds': elapsed_in_window(utc_now(), self.config.scheduler.window_seconds),
            'committed': lock.committed if lock else False,
            'latest_preview': preview.to_dict() if preview else None,
            'ranked_traders': len(ranking) if ranking else 0,
            'price_cache': vars(self.scheduler.price_cache.stats),
            'resolution_cache': vars(self.discovery.resolution_cache.stats),
            'accuracy': self.store.accuracy() if self.store else None,
        }
