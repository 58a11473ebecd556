"""Tests for SMA, EMA, MACD and EMA crossover."""

import pytest

from consensus_app.indicators.moving_average import ema, ema_crossover, macd, sma


class TestSma:
    """Test simple moving average."""

    def test_mean_of_trailing_values(self):
        """SMA averages only the last ``period`` prices."""
        assert sma([1.0, 2.0, 3.0, 4.0, 5.0], 3) == pytest.approx(4.0)

    def test_insufficient_history(self):
        """SMA returns None when fewer prices than the period."""
        assert sma([1.0, 2.0], 3) is None

    def test_invalid_period(self):
        """Non-positive periods return None."""
        assert sma([1.0, 2.0, 3.0], 0) is None


class TestEma:
    """Test exponential moving average."""

    def test_seed_is_sma(self):
        """With exactly ``period`` prices the EMA equals the SMA seed."""
        assert ema([2.0, 4.0, 6.0], 3) == pytest.approx(4.0)

    def test_recurrence_after_seed(self):
        """Each later price moves the EMA by k = 2 / (period + 1)."""
        # seed 4.0, k = 0.5 -> 10 * 0.5 + 4 * 0.5 = 7
        assert ema([2.0, 4.0, 6.0, 10.0], 3) == pytest.approx(7.0)

    def test_constant_series(self):
        """A constant series has an EMA equal to the constant."""
        assert ema([50.0] * 40, 9) == pytest.approx(50.0)

    def test_insufficient_history(self):
        """EMA returns None below ``period`` prices."""
        assert ema([1.0] * 8, 9) is None


class TestMacd:
    """Test MACD line."""

    def test_rising_series_is_bullish(self, rising_prices):
        """Fast EMA above slow EMA on a rising series."""
        result = macd(rising_prices)
        assert result is not None
        assert result.value > 0
        assert result.bullish

    def test_falling_series_is_bearish(self, rising_prices):
        """Fast EMA below slow EMA on a falling series."""
        result = macd(list(reversed(rising_prices)))
        assert result.value < 0
        assert not result.bullish

    def test_needs_slow_period(self):
        """MACD needs 26 prices."""
        assert macd([100.0] * 25) is None


class TestEmaCrossover:
    """Test EMA 9/21 crossover detection."""

    def test_minimum_points(self):
        """Fewer than 25 prices yields None."""
        assert ema_crossover([100.0 + i for i in range(24)]) is None

    def test_steady_uptrend_has_no_fresh_cross(self, rising_prices):
        """A trend already in place is bullish state without a cross."""
        result = ema_crossover(rising_prices)
        assert result.bullish
        assert not result.cross_up
        assert not result.cross_down

    def test_cross_up_on_latest_point(self):
        """A sharp final jump after a decline crosses fast above slow."""
        prices = [130.0 - i for i in range(29)] + [200.0]
        result = ema_crossover(prices)
        assert result.cross_up
        assert result.bullish
        assert not result.cross_down

    def test_cross_down_on_latest_point(self):
        """A sharp final drop after a rally crosses fast below slow."""
        prices = [100.0 + i for i in range(29)] + [30.0]
        result = ema_crossover(prices)
        assert result.cross_down
        assert not result.bullish
