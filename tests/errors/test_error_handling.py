"""
Error handling tests for the consensus engine.

Covers the error classification and how malformed or missing data is
contained before it can reach a window lock.
"""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from consensus_app.data.cache import UNAVAILABLE, MarketDataCache
from consensus_app.data.models import FetchResult
from consensus_app.data.sources import HttpPriceHistorySource
from consensus_app.config.defaults import CacheParams, SourceParams
from consensus_app.errors import (
    ConfigurationError,
    DataQualityError,
    MalformedDataError,
    MissingDataError,
    PersistenceError,
    StateTransitionError,
    SystemFailureError,
)
from consensus_app.indicators import IndicatorCalculator
from consensus_app.scoring import PredictionScorer
from consensus_app.state.scheduler import WindowLockScheduler


class TestErrorClassification:
    """Test error classification system."""

    def test_data_quality_error_hierarchy(self):
        """Data quality errors are recoverable and carry context."""
        base_error = DataQualityError("base error")
        assert base_error.recoverable is True
        assert base_error.context == {}

        missing_error = MissingDataError("missing data", data_type="prices")
        assert isinstance(missing_error, DataQualityError)
        assert missing_error.data_type == "prices"

        malformed_error = MalformedDataError("bad row", raw_data="[1, 2]", expected_format="kline")
        assert malformed_error.raw_data == "[1, 2]"
        assert malformed_error.expected_format == "kline"

    def test_system_failure_error_hierarchy(self):
        """System failures are never recoverable."""
        state_error = StateTransitionError("recommit", window_id="w", current_state="committed",
                                           attempted_transition="committed")
        assert isinstance(state_error, SystemFailureError)
        assert state_error.recoverable is False
        assert state_error.current_state == "committed"
        assert state_error.window_id == "w"

        persistence_error = PersistenceError("disk full", operation="insert", target="db")
        assert persistence_error.operation == "insert"
        assert persistence_error.target == "db"

        config_error = ConfigurationError("invalid", errors=["a: bad"])
        assert config_error.errors == ["a: bad"]
        assert ConfigurationError("invalid").errors == []

    def test_context_is_preserved(self):
        """Context dictionaries pass through subclasses."""
        error = MissingDataError("missing", data_type="prices", context={"window_id": "w"})
        assert error.context == {"window_id": "w"}

    def test_raw_payload_excerpt_is_truncated(self):
        """Raw payloads are kept as short string excerpts."""
        error = MalformedDataError("bad payload", raw_data={"rows": list(range(500))})

        assert isinstance(error.raw_data, str)
        assert len(error.raw_data) == 100
        assert MalformedDataError("no payload").raw_data is None


class TestMissingData:
    """Test handling of missing and malformed market data."""

    def test_empty_series_raises_missing_data(self):
        """The calculator rejects an empty series."""
        with pytest.raises(MissingDataError):
            IndicatorCalculator().calculate([])

    def test_scorer_returns_none_instead_of_raising(self):
        """Short series are a None result, not an exception."""
        assert PredictionScorer().score([], None) is None

    def test_malformed_prices_never_reach_scheduler(self, window_open):
        """A malformed price payload leaves the window open and uncommitted."""
        client = Mock()
        client.get_json.return_value = FetchResult.success([["garbage"]])
        source = HttpPriceHistorySource(SourceParams(), client=client)
        scheduler = WindowLockScheduler(
            PredictionScorer(), price_source=source,
            cache_params=CacheParams(price_ttl_seconds=0),
        )

        lock = scheduler.tick(window_open.replace(minute=59))

        assert not lock.committed
        assert lock.reference_price is None

    def test_outage_after_success_keeps_last_series(self, clock):
        """An outage after a good fetch keeps serving the last series."""
        loader = Mock(side_effect=[
            FetchResult.success([1.0, 2.0]),
            FetchResult.failure("Timeout after 10s"),
            FetchResult.failure("Timeout after 10s"),
        ])
        cache = MarketDataCache("prices", loader, 30.0, clock=clock)

        cache.fetch("w")
        clock.advance(45)
        assert cache.fetch("w") == [1.0, 2.0]
        clock.advance(45)
        assert cache.fetch("w") == [1.0, 2.0]
        assert cache.fetch("other") is UNAVAILABLE
