"""
Time-to-live cache in front of every external read.

The cache isolates the engine from source outages and rate limits: a fresh
entry is served without calling out, and a failed refresh falls back to the
last successful value even after it expired. Only when nothing has ever been
fetched for a key does the caller see ``UNAVAILABLE``.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Hashable, Optional, TypeVar, Union

import structlog

from .models import FetchResult

T = TypeVar("T")

logger = structlog.get_logger(__name__)


class _Unavailable:
    """Marker returned when no value has ever been fetched for a key."""

    _instance: Optional["_Unavailable"] = None

    def __new__(cls) -> "_Unavailable":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNAVAILABLE"


UNAVAILABLE = _Unavailable()


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """Last successful value for a key and when it was fetched."""
    value: T
    fetched_at: float

    def age(self, now: float) -> float:
        return now - self.fetched_at


@dataclass
class CacheStats:
    """Counters for cache behaviour."""
    hits: int = 0
    misses: int = 0
    failures: int = 0
    stale_served: int = 0
    unavailable: int = 0


class MarketDataCache(Generic[T]):
    """Generic TTL cache wrapping a loader that returns ``FetchResult``."""

    def __init__(
        self,
        name: str,
        loader: Callable[[Any], FetchResult[T]],
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic
    ):
        self.name = name
        self.loader = loader
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.logger = logger.bind(cache=name)
        self.stats = CacheStats()
        self._entries: dict[Hashable, CacheEntry[T]] = {}
        self._lock = threading.Lock()

    def fetch(self, key: Hashable) -> Union[T, _Unavailable]:
        """
        Return the value for ``key``, refreshing it if expired.

        Never raises for source failures: falls back to the last successful
        value or returns ``UNAVAILABLE``.
        """
        now = self.clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.age(now) < self.ttl_seconds:
                self.stats.hits += 1
                return entry.value
            self.stats.misses += 1

        # Loader runs unlocked so a slow source does not block other keys
        result = self._load(key)

        with self._lock:
            if result.ok:
                self._entries[key] = CacheEntry(value=result.value, fetched_at=self.clock())
                return result.value

            self.stats.failures += 1
            if entry is not None:
                self.stats.stale_served += 1
            else:
                self.stats.unavailable += 1

        if entry is not None:
            self.logger.warning(
                "Source failed, serving last known value",
                key=str(key),
                reason=result.reason,
                age_seconds=round(entry.age(now), 1)
            )
            return entry.value

        self.logger.warning(
            "Source failed with no cached value",
            key=str(key),
            reason=result.reason
        )
        return UNAVAILABLE

    def peek(self, key: Hashable) -> Optional[CacheEntry[T]]:
        """Return the stored entry for ``key`` without refreshing."""
        with self._lock:
            return self._entries.get(key)

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one key, or every key when ``key`` is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def prune(self, keep: Callable[[Hashable], bool]) -> int:
        """Drop every key for which ``keep`` is false. Returns the number dropped."""
        with self._lock:
            stale = [key for key in self._entries if not keep(key)]
            for key in stale:
                del self._entries[key]

        if stale:
            self.logger.debug("Pruned cache entries", dropped=len(stale), remaining=len(self._entries))
        return len(stale)

    def _load(self, key: Hashable) -> FetchResult[T]:
        try:
            result = self.loader(key)
        except Exception as e:
            return FetchResult.failure(f"{type(e).__name__}: {e}")

        if not isinstance(result, FetchResult):
            return FetchResult.failure(f"Loader returned {type(result).__name__}")
        return result

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
