"""
Consensus aggregator.

Turns the ranked traders' live records for the current window into a vote
weighted by win rate times position size. A trader is attributed from the
positions feed when it has records there, and from the activity feed only
otherwise, so nobody is counted twice for the same window.
"""

import time
from datetime import datetime
from typing import Callable, Optional

from ..config.defaults import CacheParams, ConsensusParams, SchedulerParams
from ..data.cache import UNAVAILABLE, MarketDataCache
from ..data.models import Side
from ..data.sources import LivePositionSource
from ..logging.config import get_ranking_logger
from ..utils.time import utc_now, window_id, window_start
from .discovery import TraderDiscoveryEngine
from .models import ConsensusVote, TraderContribution, TraderProfile

ranking_logger = get_ranking_logger(__name__)

POSITIONS = "positions"
ACTIVITY = "activity"


class ConsensusAggregator:
    """Weighted directional vote of ranked traders, cached briefly."""

    def __init__(
        self,
        discovery: TraderDiscoveryEngine,
        position_source: Optional[LivePositionSource] = None,
        params: Optional[ConsensusParams] = None,
        scheduler_params: Optional[SchedulerParams] = None,
        cache_params: Optional[CacheParams] = None,
        positions_cache: Optional[MarketDataCache] = None,
        activity_cache: Optional[MarketDataCache] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.discovery = discovery
        self.params = params or ConsensusParams()
        self.scheduler_params = scheduler_params or SchedulerParams()
        self.clock = clock
        self.logger = ranking_logger

        ttl = (cache_params or CacheParams()).position_ttl_seconds
        if positions_cache is None or activity_cache is None:
            if position_source is None:
                raise ValueError("Either position_source or both position caches are required")
        if positions_cache is None:
            positions_cache = MarketDataCache(
                POSITIONS, lambda key: position_source.fetch_positions(*key), ttl, clock=clock
            )
        if activity_cache is None:
            activity_cache = MarketDataCache(
                ACTIVITY, lambda key: position_source.fetch_activity(*key), ttl, clock=clock
            )
        self.positions_cache = positions_cache
        self.activity_cache = activity_cache

        self._vote: Optional[ConsensusVote] = None
        self._computed_at: Optional[float] = None

    @property
    def last_vote(self) -> Optional[ConsensusVote]:
        return self._vote

    def vote(self, now: Optional[datetime] = None) -> ConsensusVote:
        """Return the cached vote for the current window, recomputing when stale."""
        now = now or utc_now()
        active_id = self._window_id(now)

        if (self._vote is not None and self._vote.window_id == active_id
                and self.clock() - self._computed_at < self.params.vote_ttl_seconds):
            return self._vote

        if self._vote is None or self._vote.window_id != active_id:
            self._drop_other_windows(active_id)

        vote = self._compute(active_id, now)
        self._vote = vote
        self._computed_at = self.clock()
        return vote

    def _drop_other_windows(self, active_id: str) -> None:
        """Positions are only read for the active window; keys are (trader_id, window_id)."""
        self.positions_cache.prune(lambda key: key[1] == active_id)
        self.activity_cache.prune(lambda key: key[1] == active_id)

    def _window_id(self, now: datetime) -> str:
        sp = self.scheduler_params
        return window_id(window_start(now, sp.window_seconds), sp.window_prefix)

    def _compute(self, active_id: str, now: datetime) -> ConsensusVote:
        ranking = self.discovery.discover(now)

        attributed: set[str] = set()
        contributions: list[TraderContribution] = []
        yes_weight = 0.0
        no_weight = 0.0

        for profile in ranking.profiles:
            if profile.trader_id in attributed:
                continue

            records, source = self._records_for(profile, active_id)
            if not records:
                continue
            attributed.add(profile.trader_id)

            trader_yes = sum(r.size for r in records if r.side == Side.YES) * profile.win_rate
            trader_no = sum(r.size for r in records if r.side == Side.NO) * profile.win_rate
            yes_weight += trader_yes
            no_weight += trader_no

            if trader_yes != trader_no:
                contributions.append(TraderContribution(
                    trader_id=profile.trader_id,
                    display_name=profile.display_name,
                    side=Side.YES if trader_yes > trader_no else Side.NO,
                    weight=abs(trader_yes - trader_no),
                    win_rate=profile.win_rate,
                    source=source,
                ))

        if yes_weight > no_weight:
            direction = Side.YES
        elif no_weight > yes_weight:
            direction = Side.NO
        else:
            direction = None

        total = yes_weight + no_weight
        confidence = abs(yes_weight - no_weight) / total if total > 0 else 0.0

        vote = ConsensusVote(
            window_id=active_id,
            direction=direction,
            yes_weight=yes_weight,
            no_weight=no_weight,
            confidence=confidence,
            contributors=tuple(contributions),
            computed_at=now,
        )

        self.logger.info(
            "Consensus vote computed",
            window_id=active_id,
            direction=direction.value if direction else None,
            confidence=round(confidence, 4),
            ranked_traders=len(ranking),
            contributors=len(contributions)
        )
        return vote

    def _records_for(self, profile: TraderProfile, active_id: str) -> tuple[list, Optional[str]]:
        """Records from the positions feed, falling back to activity only if empty."""
        key = (profile.trader_id, active_id)

        records = self.positions_cache.fetch(key)
        if records is not UNAVAILABLE and records:
            return list(records), POSITIONS

        records = self.activity_cache.fetch(key)
        if records is not UNAVAILABLE and records:
            return list(records), ACTIVITY

        return [], None
