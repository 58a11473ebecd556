"""Tests for the consensus aggregator."""

from datetime import timedelta
from unittest.mock import Mock

import pytest

from consensus_app.data.models import FetchResult, PositionRecord, Side
from consensus_app.traders.consensus import ConsensusAggregator
from consensus_app.traders.models import TraderProfile, TraderRanking

WINDOW_ID = "btc-updown-1h-1700002800"


def _profile(trader_id, wins, losses, volume=100.0):
    return TraderProfile(trader_id=trader_id, display_name=trader_id.title(),
                         wins=wins, losses=losses, total_volume=volume)


def _records(source, *entries):
    return FetchResult.success([PositionRecord(side=s, size=size, source=source) for s, size in entries])


@pytest.fixture
def now(window_open):
    return window_open + timedelta(minutes=10)


@pytest.fixture
def discovery(now):
    engine = Mock()
    engine.discover.return_value = TraderRanking(
        profiles=(_profile("alice", 8, 2), _profile("bob", 6, 4)),
        discovered_at=now,
        windows_scanned=10,
    )
    return engine


def _positions_source(positions=None, activity=None):
    positions = positions or {}
    activity = activity or {}
    source = Mock()
    source.fetch_positions.side_effect = lambda trader, wid: positions.get(
        trader, FetchResult.success([]))
    source.fetch_activity.side_effect = lambda trader, wid: activity.get(
        trader, FetchResult.success([]))
    return source


def _aggregator(discovery, source, clock):
    return ConsensusAggregator(discovery, position_source=source, clock=clock)


class TestVoteWeights:
    """Test direction, weights and confidence."""

    def test_weighted_by_win_rate_and_size(self, discovery, clock, now):
        """Each record adds win_rate times size to its side."""
        source = _positions_source(positions={
            "alice": _records("positions", (Side.YES, 100.0)),
            "bob": _records("positions", (Side.NO, 50.0)),
        })

        vote = _aggregator(discovery, source, clock).vote(now)

        assert vote.window_id == WINDOW_ID
        assert vote.yes_weight == pytest.approx(80.0)
        assert vote.no_weight == pytest.approx(30.0)
        assert vote.direction == Side.YES
        assert vote.confidence == pytest.approx(50.0 / 110.0)

    def test_tie_has_no_direction(self, discovery, clock, now):
        """Equal weights give no direction and zero confidence."""
        discovery.discover.return_value = TraderRanking(
            profiles=(_profile("alice", 3, 1), _profile("bob", 1, 1)),
            discovered_at=now,
        )
        source = _positions_source(positions={
            "alice": _records("positions", (Side.YES, 40.0)),
            "bob": _records("positions", (Side.NO, 60.0)),
        })

        vote = _aggregator(discovery, source, clock).vote(now)

        assert vote.yes_weight == pytest.approx(vote.no_weight)
        assert vote.direction is None
        assert vote.confidence == pytest.approx(0.0)

    def test_no_records_is_empty_vote(self, discovery, clock, now):
        """Without any positions the vote is empty rather than failing."""
        vote = _aggregator(discovery, _positions_source(), clock).vote(now)

        assert vote.direction is None
        assert vote.confidence == 0.0
        assert vote.contributors == ()

    def test_empty_ranking(self, discovery, clock, now):
        """An empty ranking gives an empty vote."""
        discovery.discover.return_value = TraderRanking(profiles=(), discovered_at=now)

        vote = _aggregator(discovery, _positions_source(), clock).vote(now)

        assert vote.direction is None
        assert vote.yes_weight == 0.0

    def test_contributors_report_net_lean(self, discovery, clock, now):
        """Each contributing trader is listed with its net side and source."""
        source = _positions_source(positions={
            "alice": _records("positions", (Side.YES, 30.0), (Side.NO, 10.0)),
        })

        vote = _aggregator(discovery, source, clock).vote(now)

        contributor = vote.contributors[0]
        assert contributor.trader_id == "alice"
        assert contributor.side == Side.YES
        assert contributor.weight == pytest.approx(16.0)
        assert contributor.source == "positions"
        assert vote.to_dict()["contributors"][0]["id"] == "alice"


class TestAttribution:
    """Test positions/activity deduplication."""

    def test_positions_take_priority_over_activity(self, discovery, clock, now):
        """A trader with positions is not also counted from activity."""
        source = _positions_source(
            positions={"alice": _records("positions", (Side.YES, 100.0))},
            activity={"alice": _records("activity", (Side.YES, 100.0))},
        )

        vote = _aggregator(discovery, source, clock).vote(now)

        assert vote.yes_weight == pytest.approx(80.0)
        source.fetch_activity.assert_called_once_with("bob", WINDOW_ID)

    def test_activity_used_when_no_positions(self, discovery, clock, now):
        """Activity is the fallback for traders without open positions."""
        source = _positions_source(activity={"bob": _records("activity", (Side.NO, 10.0))})

        vote = _aggregator(discovery, source, clock).vote(now)

        assert vote.no_weight == pytest.approx(6.0)
        assert vote.contributors[0].source == "activity"

    def test_failed_positions_fall_back_to_activity(self, discovery, clock, now):
        """An unavailable positions feed does not hide activity."""
        source = _positions_source(
            positions={"alice": FetchResult.failure("HTTP 502")},
            activity={"alice": _records("activity", (Side.NO, 10.0))},
        )

        vote = _aggregator(discovery, source, clock).vote(now)

        assert vote.no_weight == pytest.approx(8.0)

    def test_trader_counted_once_per_window(self, discovery, clock, now):
        """A trader listed twice in the ranking still counts once."""
        discovery.discover.return_value = TraderRanking(
            profiles=(_profile("alice", 8, 2), _profile("alice", 8, 2)),
            discovered_at=now,
        )
        source = _positions_source(positions={"alice": _records("positions", (Side.YES, 10.0))})

        vote = _aggregator(discovery, source, clock).vote(now)

        assert vote.yes_weight == pytest.approx(8.0)
        assert len(vote.contributors) == 1


class TestVoteCaching:
    """Test vote time-to-live."""

    def test_vote_cached_within_ttl(self, discovery, clock, now):
        """Repeated votes inside the TTL reuse the computed vote."""
        aggregator = _aggregator(discovery, _positions_source(), clock)

        first = aggregator.vote(now)
        clock.advance(59)

        assert aggregator.vote(now) is first
        assert discovery.discover.call_count == 1
        assert aggregator.last_vote is first

    def test_vote_recomputed_after_ttl(self, discovery, clock, now):
        """Past the TTL the vote is recomputed."""
        aggregator = _aggregator(discovery, _positions_source(), clock)

        first = aggregator.vote(now)
        clock.advance(60)

        assert aggregator.vote(now) is not first

    def test_new_window_recomputes(self, discovery, clock, now):
        """A window change invalidates the cached vote immediately."""
        aggregator = _aggregator(discovery, _positions_source(), clock)

        aggregator.vote(now)
        vote = aggregator.vote(now + timedelta(hours=1))

        assert vote.window_id == "btc-updown-1h-1700006400"

    def test_requires_position_input(self, discovery):
        """Either a source or both caches are required."""
        with pytest.raises(ValueError):
            ConsensusAggregator(discovery)


class TestWindowHousekeeping:
    """Test that position caches only hold the active window."""

    def test_caches_bounded_across_windows(self, discovery, clock, now):
        """Keys of earlier windows are dropped when a new window is voted."""
        aggregator = _aggregator(discovery, _positions_source(), clock)

        for hour in range(30):
            aggregator.vote(now + timedelta(hours=hour))
            assert len(aggregator.positions_cache) <= 2
            assert len(aggregator.activity_cache) <= 2

        assert aggregator.positions_cache.peek(("alice", WINDOW_ID)) is None
