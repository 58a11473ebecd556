"""Unit tests for the consensus engine coordinator."""

import threading
from datetime import timedelta
from unittest.mock import Mock, patch

import pytest

from consensus_app.data.models import FetchResult, PositionRecord, Side, WindowResolution
from consensus_app.engine import ConsensusEngine
from consensus_app.errors import ConfigurationError, MalformedDataError
from consensus_app.persistence.prediction_store import PredictionStore

WINDOW_ID = "btc-updown-1h-1700002800"
NEXT_WINDOW_ID = "btc-updown-1h-1700006400"


@pytest.fixture
def price_source(rising_prices):
    source = Mock()
    source.fetch_closes.return_value = FetchResult.success(rising_prices)
    return source


@pytest.fixture
def resolutions():
    return {}


@pytest.fixture
def resolution_source(resolutions):
    source = Mock()
    source.fetch_resolution.side_effect = lambda wid: FetchResult.success(
        resolutions.get(wid, WindowResolution(wid, resolved=False))
    )
    return source


@pytest.fixture
def position_source():
    source = Mock()
    source.fetch_positions.return_value = FetchResult.success([])
    source.fetch_activity.return_value = FetchResult.success([])
    return source


@pytest.fixture
def make_engine(tmp_path, price_source, resolution_source, position_source, clock):
    def build(store=None, overrides=None):
        merged = {"persistence": {"enabled": False}}
        merged.update(overrides or {})
        return ConsensusEngine(
            config_dir=str(tmp_path),
            overrides=merged,
            price_source=price_source,
            resolution_source=resolution_source,
            position_source=position_source,
            store=store,
            clock=clock,
        )
    return build


class TestConsensusEngineInit:
    """Test suite for engine construction."""

    def test_engine_initialization(self, make_engine) -> None:
        """Test that the engine wires its components."""
        engine = make_engine()

        assert engine.store is None
        assert engine.scheduler.current_lock is None
        assert engine.discovery.ranking is None
        assert engine.aggregator.last_vote is None

    def test_engine_initialization_with_config_dir(self) -> None:
        """Test engine initialization with custom config directory."""
        with patch('consensus_app.engine.ConfigLoader') as mock_config_loader:
            loader = mock_config_loader.create.return_value
            loader.merge_config.return_value = {}
            loader.build_config.side_effect = ConfigurationError("stop here")

            with pytest.raises(ConfigurationError):
                ConsensusEngine(config_dir="/custom/path")

            mock_config_loader.create.assert_called_once_with("/custom/path")

    def test_invalid_config_refuses_to_start(self, make_engine) -> None:
        """Validation errors raise ConfigurationError with the messages."""
        with pytest.raises(ConfigurationError) as exc_info:
            make_engine(overrides={"scheduler": {"min_wait_seconds": 3000}})

        assert any("min_wait_seconds" in msg for msg in exc_info.value.errors)

    def test_store_created_from_config(self, make_engine, tmp_path) -> None:
        """Enabled persistence opens the configured database."""
        db_path = tmp_path / "history.db"
        engine = make_engine(overrides={
            "persistence": {"enabled": True, "db_path": str(db_path)}
        })

        assert isinstance(engine.store, PredictionStore)
        assert db_path.exists()


class TestRunOnce:
    """Test single evaluation cycles."""

    def test_cycle_runs_every_step(self, make_engine, window_open, resolution_source) -> None:
        """A cycle ticks the window, discovers traders and votes."""
        engine = make_engine()

        result = engine.run_once(window_open + timedelta(minutes=5))

        assert result["prediction"]["windowId"] == WINDOW_ID
        assert not result["prediction"]["committed"]
        assert result["consensus"]["windowId"] == WINDOW_ID
        assert resolution_source.fetch_resolution.call_count == 24

    def test_cycle_commits_late_in_window(self, make_engine, window_open) -> None:
        """The committed prediction appears in the snapshot."""
        engine = make_engine()

        result = engine.run_once(window_open + timedelta(seconds=2400))

        assert result["prediction"]["committed"]
        assert result["prediction"]["direction"] == "UP"
        assert result["prediction"]["confidence"] == 57

    def test_failing_step_does_not_stop_cycle(self, make_engine, window_open) -> None:
        """An exception in one step is logged and the rest still run."""
        engine = make_engine()
        engine.scheduler.tick = Mock(side_effect=RuntimeError("boom"))

        result = engine.run_once(window_open + timedelta(minutes=5))

        assert result["consensus"]["windowId"] == WINDOW_ID

    def test_data_quality_error_is_absorbed(self, make_engine, window_open) -> None:
        """Data quality errors are warnings, not crashes."""
        engine = make_engine()
        engine.discovery.discover = Mock(side_effect=MalformedDataError("bad payload"))

        result = engine.run_once(window_open + timedelta(minutes=5))

        assert result["prediction"]["windowId"] == WINDOW_ID

    def test_consensus_reflects_ranked_traders(self, make_engine, window_open, resolutions,
                                               resolution_factory, position_source) -> None:
        """Ranked traders' live positions drive the vote."""
        for i in range(1, 6):
            wid = f"btc-updown-1h-{1700002800 - 3600 * i}"
            resolutions[wid] = resolution_factory(wid, Side.NO, [("whale", Side.NO, 100.0)])
        position_source.fetch_positions.return_value = FetchResult.success(
            [PositionRecord(side=Side.NO, size=40.0, source="positions")]
        )
        engine = make_engine()

        engine.run_once(window_open + timedelta(minutes=5))

        consensus = engine.consensus_snapshot()
        assert consensus["direction"] == "NO"
        assert consensus["confidence"] == 1.0
        assert engine.ranking_snapshot()[0]["id"] == "whale"


class TestRollover:
    """Test prediction history recording at window rollover."""

    def test_committed_window_recorded_with_outcome(self, make_engine, window_open, resolutions,
                                                    tmp_path) -> None:
        """The finished window is stored and its outcome settled once resolved."""
        store = PredictionStore(str(tmp_path / "history.db"))
        engine = make_engine(store=store)

        engine.run_once(window_open + timedelta(seconds=2400))
        resolutions[WINDOW_ID] = WindowResolution(
            WINDOW_ID, resolved=True, settlement=((Side.YES, 1.0), (Side.NO, 0.0))
        )
        engine.run_once(window_open + timedelta(seconds=3605))

        stored = store.get_prediction(WINDOW_ID)
        assert stored.direction == "UP"
        assert stored.outcome == "YES"
        assert stored.correct
        assert engine.prediction_snapshot(window_open + timedelta(seconds=3605))["windowId"] == NEXT_WINDOW_ID

    def test_long_run_keeps_caches_bounded(self, make_engine, window_open, resolution_source,
                                           resolution_factory, clock) -> None:
        """Hourly cycles over many windows leave every cache bounded."""
        resolution_source.fetch_resolution.side_effect = lambda wid: FetchResult.success(
            resolution_factory(wid, Side.YES, [("whale", Side.YES, 100.0)])
        )
        engine = make_engine()
        lookback = engine.config.discovery.lookback_windows

        for hour in range(100):
            engine.run_once(window_open + timedelta(hours=hour, minutes=5))
            clock.advance(3600)

        assert len(engine.scheduler.price_cache) <= 1
        assert len(engine.discovery.resolution_cache) <= lookback
        assert len(engine.aggregator.positions_cache) <= 1
        assert len(engine.aggregator.activity_cache) <= 1

    def test_uncommitted_window_not_recorded(self, make_engine, window_open, tmp_path) -> None:
        """A window that never committed leaves no history."""
        store = PredictionStore(str(tmp_path / "history.db"))
        engine = make_engine(store=store)

        engine.run_once(window_open + timedelta(minutes=5))
        engine.run_once(window_open + timedelta(seconds=3605))

        assert store.get_recent() == []


class TestSnapshots:
    """Test read-only accessors."""

    def test_empty_snapshots(self, make_engine) -> None:
        """Before any cycle the snapshots are empty."""
        engine = make_engine()

        assert engine.consensus_snapshot()["direction"] is None
        assert engine.ranking_snapshot() == []

    def test_set_reference_price_passthrough(self, make_engine, window_open) -> None:
        """External reference prices reach the scheduler."""
        engine = make_engine()
        engine.set_reference_price(WINDOW_ID, 99.0)

        engine.run_once(window_open + timedelta(minutes=5))

        assert engine.prediction_snapshot(window_open + timedelta(minutes=5))["referencePrice"] == 99.0

    def test_runtime_stats(self, make_engine, window_open) -> None:
        """Runtime stats summarize the current window and caches."""
        engine = make_engine()
        engine.run_once(window_open + timedelta(minutes=5))

        stats = engine.get_runtime_stats()

        assert stats["window_id"] == WINDOW_ID
        assert stats["latest_preview"]["direction"] == "UP"
        assert stats["price_cache"]["misses"] == 1
        assert stats["accuracy"] is None


class TestRunForever:
    """Test the polling loop."""

    def test_stops_when_event_set(self, make_engine) -> None:
        """The loop exits once the stop event is set."""
        engine = make_engine()
        stop_event = threading.Event()
        engine.run_once = Mock(side_effect=lambda: stop_event.set())

        engine.run_forever(stop_event)

        engine.run_once.assert_called_once_with()

    def test_preset_event_skips_loop(self, make_engine) -> None:
        """An already set event runs no cycles."""
        engine = make_engine()
        stop_event = threading.Event()
        stop_event.set()
        engine.run_once = Mock()

        engine.run_forever(stop_event)

        engine.run_once.assert_not_called()
