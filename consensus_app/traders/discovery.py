"""
Trader discovery.

Scans recently resolved windows, scores every participant with a qualifying
position by whether they held the winning side, and ranks those with enough
observed windows by win rate. Each cycle builds a new ranking that replaces
the previous one in a single assignment.
"""

import time
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ..config.defaults import CacheParams, DiscoveryParams, SchedulerParams
from ..data.cache import UNAVAILABLE, MarketDataCache
from ..data.models import Side, WindowResolution
from ..data.sources import WindowResolutionSource
from ..logging.config import get_ranking_logger
from ..utils.time import previous_window_starts, utc_now, window_id
from .models import TraderProfile, TraderRanking

ranking_logger = get_ranking_logger(__name__)


@dataclass
class _Tally:
    display_name: Optional[str] = None
    wins: int = 0
    losses: int = 0
    volume: float = 0.0


class TraderDiscoveryEngine:
    """Ranks participants of recently resolved windows by win rate."""

    def __init__(
        self,
        resolution_source: Optional[WindowResolutionSource] = None,
        params: Optional[DiscoveryParams] = None,
        scheduler_params: Optional[SchedulerParams] = None,
        cache_params: Optional[CacheParams] = None,
        resolution_cache: Optional[MarketDataCache] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.params = params or DiscoveryParams()
        self.scheduler_params = scheduler_params or SchedulerParams()
        self.clock = clock
        self.logger = ranking_logger

        if resolution_cache is None:
            if resolution_source is None:
                raise ValueError("Either resolution_source or resolution_cache is required")
            ttl = (cache_params or CacheParams()).resolution_ttl_seconds
            resolution_cache = MarketDataCache(
                "resolutions", resolution_source.fetch_resolution, ttl, clock=clock
            )
        self.resolution_cache = resolution_cache

        self._ranking: Optional[TraderRanking] = None
        self._discovered_at: Optional[float] = None

    @property
    def ranking(self) -> Optional[TraderRanking]:
        """The most recent ranking, None before the first discovery."""
        return self._ranking

    def is_due(self) -> bool:
        """Whether the rediscovery interval has elapsed."""
        if self._discovered_at is None:
            return True
        return self.clock() - self._discovered_at >= self.params.rediscovery_interval_seconds

    def discover(self, now: Optional[datetime] = None, force: bool = False) -> TraderRanking:
        """
        Return the current ranking, recomputing it when the interval elapsed.

        An empty ranking means not enough participants met the minimum
        sample size yet; it is a valid result, not a failure.
        """
        if self._ranking is not None and not force and not self.is_due():
            return self._ranking

        now = now or utc_now()
        ranking = self._scan(now)

        self._ranking = ranking
        self._discovered_at = self.clock()

        self.logger.info(
            "Trader ranking refreshed",
            windows_scanned=ranking.windows_scanned,
            ranked_traders=len(ranking),
            top_trader=ranking.profiles[0].trader_id if ranking.profiles else None,
            top_win_rate=round(ranking.profiles[0].win_rate, 4) if ranking.profiles else None
        )
        return ranking

    def lookback_window_ids(self, now: datetime) -> list[str]:
        """Ids of the windows preceding ``now``'s window, newest first."""
        sp = self.scheduler_params
        return [
            window_id(start, sp.window_prefix)
            for start in previous_window_starts(now, sp.window_seconds, self.params.lookback_windows)
        ]

    def _scan(self, now: datetime) -> TraderRanking:
        tallies: dict[str, _Tally] = defaultdict(_Tally)
        scanned = 0

        lookback = self.lookback_window_ids(now)
        lookback_set = set(lookback)
        self.resolution_cache.prune(lambda key: key in lookback_set)

        for wid in lookback:
            resolution = self.resolution_cache.fetch(wid)
            if resolution is UNAVAILABLE:
                continue
            if not resolution.resolved:
                # Refetch next cycle instead of caching the pending state
                self.resolution_cache.invalidate(wid)
                continue

            winner = resolution.winner(self.params.win_threshold)
            if winner is None:
                self.logger.debug("Resolved window has no clear winner", window_id=wid)
                continue

            scanned += 1
            self._score_window(resolution, winner, tallies)

        profiles = [
            TraderProfile(
                trader_id=trader_id,
                display_name=tally.display_name,
                wins=tally.wins,
                losses=tally.losses,
                total_volume=tally.volume,
            )
            for trader_id, tally in tallies.items()
            if tally.wins + tally.losses >= self.params.min_windows
        ]
        profiles.sort(key=lambda p: (-p.win_rate, -p.total_volume, p.trader_id))

        if not profiles:
            self.logger.info(
                "No traders met the minimum sample size",
                windows_scanned=scanned,
                candidates=len(tallies),
                min_windows=self.params.min_windows
            )

        return TraderRanking(
            profiles=tuple(profiles[:self.params.top_n]),
            discovered_at=now,
            windows_scanned=scanned,
        )

    def _score_window(self, resolution: WindowResolution, winner: Side,
                      tallies: dict[str, _Tally]) -> None:
        """Count one win or loss per participant holding a qualifying position."""
        per_trader: dict[str, dict[Side, float]] = defaultdict(lambda: defaultdict(float))
        names: dict[str, Optional[str]] = {}

        for position in resolution.positions:
            per_trader[position.trader_id][position.side] += position.size
            if position.display_name:
                names[position.trader_id] = position.display_name

        for trader_id, sides in per_trader.items():
            yes_size = sides.get(Side.YES, 0.0)
            no_size = sides.get(Side.NO, 0.0)
            if yes_size == no_size:
                # Fully hedged, no directional call
                continue

            held = Side.YES if yes_size > no_size else Side.NO
            if max(yes_size, no_size) < self.params.min_position_size:
                continue

            tally = tallies[trader_id]
            if held == winner:
                tally.wins += 1
            else:
                tally.losses += 1
            tally.volume += yes_size + no_size
            if trader_id in names:
                tally.display_name = names[trader_id]
