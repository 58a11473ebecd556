"""
External data sources.

Every method returns a ``FetchResult``: network errors, timeouts, non-2xx
statuses and malformed payloads become failures with a reason instead of
exceptions, and the market data cache decides what to serve.
"""

import json
import socket
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode, urlparse
from urllib.request import Request, urlopen

import structlog

from ..config.defaults import SourceParams
from ..errors import ConfigurationError, DataQualityError
from ..utils.time import to_epoch_seconds
from .models import FetchResult, PositionRecord, WindowResolution
from .parsers import parse_closes, parse_position_records, parse_resolution

logger = structlog.get_logger(__name__)


class PriceHistorySource(ABC):
    """Closing prices for a time range."""

    @abstractmethod
    def fetch_closes(self, start: datetime, end: datetime) -> FetchResult[list[float]]:
        """Return closing prices between ``start`` and ``end``, oldest first."""


class WindowResolutionSource(ABC):
    """Resolution state and participant positions for a window."""

    @abstractmethod
    def fetch_resolution(self, window_id: str) -> FetchResult[WindowResolution]:
        """Return whether ``window_id`` resolved, its settlement and positions."""


class LivePositionSource(ABC):
    """A participant's records for the current window, from two feeds."""

    @abstractmethod
    def fetch_positions(self, trader_id: str, window_id: str) -> FetchResult[list[PositionRecord]]:
        """Return the participant's open positions in ``window_id``."""

    @abstractmethod
    def fetch_activity(self, trader_id: str, window_id: str) -> FetchResult[list[PositionRecord]]:
        """Return the participant's recent trades in ``window_id``."""


class HttpJsonClient:
    """Minimal JSON-over-HTTP GET client with a per-request timeout."""

    def __init__(self, timeout_seconds: float = 10.0, user_agent: str = "consensus-app/0.1",
                 headers: Optional[dict[str, str]] = None):
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self.headers = headers or {}

    def get_json(self, url: str, params: Optional[dict[str, Any]] = None) -> FetchResult[Any]:
        """GET ``url`` and decode the JSON body."""
        if params:
            url = f"{url}?{urlencode(params)}"

        headers = {
            'Accept': 'application/json',
            'User-Agent': self.user_agent,
        }
        headers.update(self.headers)

        req = Request(url, headers=headers, method="GET")

        try:
            with urlopen(req, timeout=self.timeout_seconds) as response:
                status = response.getcode()
                body = response.read().decode('utf-8')

        except HTTPError as e:
            logger.warning("HTTP error from source", url=url, status=e.code, reason=str(e.reason))
            return FetchResult.failure(f"HTTP {e.code}: {e.reason}")

        except URLError as e:
            logger.warning("Source unreachable", url=url, reason=str(e.reason))
            return FetchResult.failure(f"URL error: {e.reason}")

        except (socket.timeout, TimeoutError):
            logger.warning("Source timed out", url=url, timeout_seconds=self.timeout_seconds)
            return FetchResult.failure(f"Timeout after {self.timeout_seconds}s")

        except OSError as e:
            logger.warning("Connection error from source", url=url, error=str(e))
            return FetchResult.failure(f"Connection error: {e}")

        if not 200 <= status < 300:
            return FetchResult.failure(f"HTTP {status}: {body[:200]}")

        try:
            return FetchResult.success(json.loads(body))
        except json.JSONDecodeError as e:
            return FetchResult.failure(f"Invalid JSON: {e}")


def _validate_url(url: str) -> str:
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ConfigurationError(f"Invalid URL: {url}")
    return url


def _parsed(raw: FetchResult[Any], parser, *args) -> FetchResult[Any]:
    """Apply ``parser`` to a successful raw result, turning data errors into failures."""
    if not raw.ok:
        return raw
    try:
        return FetchResult.success(parser(*args, raw.value))
    except DataQualityError as e:
        logger.warning("Malformed source payload", error=str(e), error_type=type(e).__name__)
        return FetchResult.failure(f"Malformed payload: {e}")


class HttpPriceHistorySource(PriceHistorySource):
    """Kline endpoint (``symbol``/``interval``/``startTime``/``endTime`` in ms)."""

    def __init__(self, params: SourceParams, client: Optional[HttpJsonClient] = None):
        self.params = params
        self.url = _validate_url(params.price_url)
        self.client = client or HttpJsonClient(params.timeout_seconds, params.user_agent)

    def fetch_closes(self, start: datetime, end: datetime) -> FetchResult[list[float]]:
        raw = self.client.get_json(self.url, {
            "symbol": self.params.symbol,
            "interval": self.params.interval,
            "startTime": to_epoch_seconds(start) * 1000,
            "endTime": to_epoch_seconds(end) * 1000,
            "limit": 1000,
        })
        return _parsed(raw, parse_closes)


class HttpWindowResolutionSource(WindowResolutionSource):
    """Window lookup by slug; the window id doubles as the slug."""

    def __init__(self, params: SourceParams, client: Optional[HttpJsonClient] = None):
        self.url = _validate_url(params.resolution_url)
        self.client = client or HttpJsonClient(params.timeout_seconds, params.user_agent)

    def fetch_resolution(self, window_id: str) -> FetchResult[WindowResolution]:
        raw = self.client.get_json(self.url, {"slug": window_id})
        return _parsed(raw, parse_resolution, window_id)


class HttpLivePositionSource(LivePositionSource):
    """Positions and activity endpoints filtered by user and market."""

    def __init__(self, params: SourceParams, client: Optional[HttpJsonClient] = None):
        self.positions_url = _validate_url(params.positions_url)
        self.activity_url = _validate_url(params.activity_url)
        self.client = client or HttpJsonClient(params.timeout_seconds, params.user_agent)

    def fetch_positions(self, trader_id: str, window_id: str) -> FetchResult[list[PositionRecord]]:
        raw = self.client.get_json(self.positions_url, {"user": trader_id, "market": window_id})
        return _parsed(raw, parse_position_records, "positions")

    def fetch_activity(self, trader_id: str, window_id: str) -> FetchResult[list[PositionRecord]]:
        raw = self.client.get_json(self.activity_url, {"user": trader_id, "market": window_id})
        return _parsed(raw, parse_position_records, "activity")
