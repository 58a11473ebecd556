"""
Per-window lock scheduler.

Each tick decides not only what the window's prediction is but whether it is
time to commit it. The commit threshold adapts to how far price sits from
the reference price: a decisive gap commits early, an ambiguous one waits
for more data. A window commits at most once; rollover discards its lock.
"""

import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..config.defaults import CacheParams, SchedulerParams
from ..data.cache import UNAVAILABLE, MarketDataCache
from ..data.sources import PriceHistorySource
from ..errors import StateTransitionError
from ..logging.config import get_state_logger, log_commit_decision, log_state_transition
from ..scoring.scorer import PredictionResult, PredictionScorer
from ..utils.time import (
    time_elapsed_seconds,
    to_epoch_seconds,
    utc_now,
    window_epoch,
    window_id,
    window_start,
)
from .models import LockState, PredictionSnapshot, WindowLock

state_logger = get_state_logger(__name__)

RolloverCallback = Callable[[WindowLock], None]


class WindowLockScheduler:
    """Owns the one WindowLock of the active window."""

    def __init__(
        self,
        scorer: PredictionScorer,
        price_source: Optional[PriceHistorySource] = None,
        params: Optional[SchedulerParams] = None,
        cache_params: Optional[CacheParams] = None,
        price_cache: Optional[MarketDataCache] = None,
    ):
        self.scorer = scorer
        self.params = params or SchedulerParams()
        self.logger = state_logger

        if price_cache is None:
            if price_source is None:
                raise ValueError("Either price_source or price_cache is required")
            ttl = (cache_params or CacheParams()).price_ttl_seconds
            price_cache = MarketDataCache("prices", self._price_loader(price_source), ttl)
        self.price_cache = price_cache

        self.latest_preview: Optional[PredictionResult] = None
        self.rollover_callbacks: list[RolloverCallback] = []

        self._current: Optional[WindowLock] = None
        self._external_references: dict[str, float] = {}
        self._lock = threading.Lock()

    def _price_loader(self, source: PriceHistorySource):
        window_length = timedelta(seconds=self.params.window_seconds)

        def load(key):
            _window_id, start = key
            return source.fetch_closes(start, start + window_length)

        return load

    @property
    def current_lock(self) -> Optional[WindowLock]:
        return self._current

    def on_rollover(self, callback: RolloverCallback) -> None:
        """Register a callback receiving each discarded lock at rollover."""
        self.rollover_callbacks.append(callback)

    def tick(self, now: Optional[datetime] = None) -> WindowLock:
        """
        Run one scheduled evaluation of the active window.

        Returns the lock as it stands after the tick. Insufficient data and
        source outages end the tick early without raising.
        """
        now = now or utc_now()
        lock = self._ensure_window(now)

        if lock.committed:
            return lock

        prices = self.price_cache.fetch((lock.window_id, lock.window_start))
        if prices is UNAVAILABLE:
            self.logger.info("Price series unavailable, retrying next tick", window_id=lock.window_id)
            return lock

        if len(prices) < self.scorer.params.min_points:
            self.logger.debug(
                "Insufficient price history",
                window_id=lock.window_id,
                available_count=len(prices),
                required_count=self.scorer.params.min_points
            )
            return lock

        if lock.reference_price is None and not lock.reference_attempted:
            resolved = self._resolve_reference(lock, prices)
            if resolved is None:
                # Window rolled over or committed meanwhile
                return self._current
            lock = resolved

        prediction = self.scorer.score(prices, lock.reference_price)
        if prediction is None:
            return lock
        self.latest_preview = prediction

        elapsed = time_elapsed_seconds(lock.window_start, now)
        gap = abs(prices[-1] - lock.reference_price) if lock.reference_price is not None else None
        threshold = self.compute_commit_threshold(gap, prediction.margin)
        should_commit = elapsed >= threshold

        log_commit_decision(
            self.logger,
            window_id=lock.window_id,
            committed=should_commit,
            elapsed_seconds=elapsed,
            threshold_seconds=threshold,
            context={
                "gap": round(gap, 2) if gap is not None else None,
                "direction": prediction.direction.value,
                "confidence": prediction.confidence,
                "margin": round(prediction.margin, 4),
            }
        )

        if not should_commit:
            return lock

        return self.commit(lock.window_id, prediction, elapsed)

    def compute_commit_threshold(self, gap: Optional[float], margin: float) -> float:
        """
        Seconds into the window after which a prediction may be committed.

        Gap at or beyond ``clear_gap`` waits ``min_wait``; at or inside
        ``close_gap`` (or unknown) waits ``max_wait``; linear in between.
        A margin above ``margin_pull_threshold`` pulls the threshold earlier
        by ``margin * margin_pull_seconds``, never below ``min_wait``.
        """
        p = self.params

        if gap is None or gap <= p.close_gap:
            threshold = p.max_wait_seconds
        elif gap >= p.clear_gap:
            threshold = p.min_wait_seconds
        else:
            fraction = (gap - p.close_gap) / (p.clear_gap - p.close_gap)
            threshold = p.max_wait_seconds - fraction * (p.max_wait_seconds - p.min_wait_seconds)

        if margin > p.margin_pull_threshold:
            threshold = max(p.min_wait_seconds, threshold - margin * p.margin_pull_seconds)

        return threshold

    def commit(self, target_window_id: str, prediction: Optional[PredictionResult],
               offset: float) -> Optional[WindowLock]:
        """
        Compare-and-commit ``prediction`` for ``target_window_id``.

        The commit only applies if the held lock is still the OPEN lock of
        that window. Invariant violations are logged and the existing record
        is kept.
        """
        with self._lock:
            current = self._current
            if current is None or current.window_id != target_window_id:
                self.logger.warning(
                    "Window rolled over before commit, dropping prediction",
                    window_id=target_window_id,
                    current_window_id=current.window_id if current else None
                )
                return current

            try:
                committed = current.with_commit(prediction, offset)
            except StateTransitionError as e:
                self.logger.error(
                    "Rejected window commit",
                    window_id=target_window_id,
                    error=str(e),
                    current_state=e.current_state
                )
                return current

            self._current = committed

        log_state_transition(
            self.logger,
            window_id=target_window_id,
            from_state=LockState.OPEN.value,
            to_state=LockState.COMMITTED.value,
            trigger="commit_threshold",
            context={
                "direction": prediction.direction.value,
                "confidence": prediction.confidence,
                "offset_seconds": round(offset, 1),
                "reference_price": committed.reference_price,
            }
        )
        return committed

    def set_reference_price(self, target_window_id: str, price: float) -> None:
        """
        Supply the price-to-beat for a window from an external source.

        Ids that do not belong to this scheduler's market are ignored. Prices
        for windows that already ended are dropped at the next rollover.
        """
        if window_epoch(target_window_id, self.params.window_prefix) is None:
            self.logger.warning("Ignoring reference price for unknown window", window_id=target_window_id)
            return

        with self._lock:
            self._external_references[target_window_id] = price
            current = self._current
            if (current is not None and current.window_id == target_window_id
                    and not current.committed and current.reference_price is None):
                self._current = current.with_reference_price(price)

        self.logger.info("Reference price set", window_id=target_window_id, reference_price=price)

    def snapshot(self, now: Optional[datetime] = None) -> PredictionSnapshot:
        """Read-only view of the active window without advancing any state."""
        now = now or utc_now()
        active_id = window_id(window_start(now, self.params.window_seconds), self.params.window_prefix)
        current = self._current
        if current is None or current.window_id != active_id:
            return PredictionSnapshot(window_id=active_id, committed=False)
        return PredictionSnapshot.from_lock(current)

    def _resolve_reference(self, lock: WindowLock, prices: list[float]) -> Optional[WindowLock]:
        """
        One-shot reference lookup: external value first, else the opening price.

        Returns None when ``lock`` is no longer the held OPEN lock.
        """
        price = self._external_references.get(lock.window_id)
        origin = "external"
        if price is None and prices:
            price = prices[0]
            origin = "window_open"

        with self._lock:
            current = self._current
            if current is None or current.window_id != lock.window_id or current.committed:
                return None
            self._current = current.with_reference_price(price)
            updated = self._current

        self.logger.info(
            "Reference price established",
            window_id=lock.window_id,
            reference_price=price,
            origin=origin
        )
        return updated

    def _ensure_window(self, now: datetime) -> WindowLock:
        """Return the lock for ``now``'s window, rolling over if needed."""
        start = window_start(now, self.params.window_seconds)
        active_id = window_id(start, self.params.window_prefix)

        with self._lock:
            previous = self._current
            if previous is not None and previous.window_id == active_id:
                return previous

            fresh = WindowLock(window_id=active_id, window_start=start)
            reference = self._external_references.get(active_id)
            if reference is not None:
                fresh = fresh.with_reference_price(reference)
            self._current = fresh

            active_epoch = to_epoch_seconds(start)
            self._external_references = {
                wid: price for wid, price in self._external_references.items()
                if window_epoch(wid, self.params.window_prefix) >= active_epoch
            }

        # Price keys are (window_id, window_start); only the active window is read again
        self.price_cache.prune(lambda key: key[0] == active_id)

        log_state_transition(
            self.logger,
            window_id=active_id,
            from_state=previous.state.value if previous else "none",
            to_state=LockState.OPEN.value,
            trigger="window_rollover",
            context={"previous_window_id": previous.window_id if previous else None}
        )

        if previous is not None:
            for callback in self.rollover_callbacks:
                try:
                    callback(previous)
                except Exception as e:
                    self.logger.error(
                        "Rollover callback failed",
                        window_id=previous.window_id,
                        error=str(e),
                        error_type=type(e).__name__
                    )

        return fresh
