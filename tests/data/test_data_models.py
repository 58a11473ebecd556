"""Tests for canonical data models."""

import pytest

from consensus_app.data.models import FetchResult, ParticipantPosition, Side, WindowResolution


class TestSide:
    """Test outcome label mapping."""

    @pytest.mark.parametrize("label,expected", [
        ("Up", Side.YES),
        ("YES", Side.YES),
        (" down ", Side.NO),
        ("No", Side.NO),
        ("draw", None),
        ("", None),
    ])
    def test_from_label(self, label, expected):
        """Labels map case-insensitively."""
        assert Side.from_label(label) is expected


class TestFetchResult:
    """Test typed fetch results."""

    def test_success(self):
        result = FetchResult.success([1.0])
        assert result.ok
        assert result.value == [1.0]
        assert result.reason is None

    def test_failure(self):
        result = FetchResult.failure("HTTP 429")
        assert not result.ok
        assert result.value is None
        assert result.reason == "HTTP 429"


class TestWindowResolution:
    """Test winner selection."""

    def test_winner_above_threshold(self):
        """The side settling above the threshold wins."""
        resolution = WindowResolution("w", True, settlement=((Side.YES, 0.02), (Side.NO, 0.98)))
        assert resolution.winner(0.95) == Side.NO

    def test_threshold_is_exclusive(self):
        """A settlement exactly at the threshold does not win."""
        resolution = WindowResolution("w", True, settlement=((Side.YES, 0.95),))
        assert resolution.winner(0.95) is None

    def test_unresolved_has_no_winner(self):
        """Unresolved windows never report a winner."""
        resolution = WindowResolution("w", False, settlement=((Side.YES, 1.0),))
        assert resolution.winner(0.95) is None

    def test_positions_are_immutable(self):
        """Positions are frozen records."""
        position = ParticipantPosition("t1", Side.YES, 10.0)
        with pytest.raises(AttributeError):
            position.size = 20.0
