"""Tests for the EMA, RSI and MHI band indicators."""

import pytest

from conftest import samples_from
from tickbot.schemas.market import PriceSample
from tickbot.services.indicators.band_signal import band_signal
from tickbot.services.indicators.moving_average import ema
from tickbot.services.indicators.rsi import rsi


def _reference_ema(closes: list[float], period: int) -> float:
    k = 2 / (period + 1)
    value = sum(closes[:period]) / period
    for c in closes[period:]:
        value = c * k + value * (1 - k)
    return value


class TestEma:
    def test_fewer_samples_than_period_returns_zero(self):
        assert ema(samples_from([1.0, 2.0, 3.0]), 5) == 0.0

    def test_exactly_period_samples_is_simple_average(self):
        assert ema(samples_from([1.0, 2.0, 3.0, 4.0]), 4) == pytest.approx(2.5)

    def test_matches_reference_recurrence(self):
        closes = [100.0, 101.5, 99.8, 102.3, 103.1, 101.0, 104.2, 105.5, 103.9, 106.0, 107.2, 106.4]
        assert ema(samples_from(closes), 5) == pytest.approx(_reference_ema(closes, 5), rel=1e-12)

    def test_constant_series_equals_constant(self):
        assert ema(samples_from([7.25] * 30), 9) == pytest.approx(7.25)


class TestRsi:
    def test_not_enough_samples_returns_50(self):
        # period + 1 samples are needed for `period` deltas
        assert rsi(samples_from([1.0, 2.0, 3.0]), 3) == 50.0
        assert rsi(samples_from([]), 14) == 50.0

    def test_only_gains_returns_100(self):
        assert rsi(samples_from([1.0, 2.0, 2.0, 3.0, 4.0]), 4) == 100.0

    def test_flat_prices_return_100(self):
        assert rsi(samples_from([5.0] * 20), 14) == 100.0

    def test_only_losses_returns_0(self):
        assert rsi(samples_from([5.0, 4.0, 3.0, 2.0, 1.0]), 4) == pytest.approx(0.0)

    def test_uses_only_most_recent_deltas(self):
        # The big early drop falls outside the 2-delta window
        closes = [10.0, 1.0, 2.0, 1.5]
        # gains = 1.0, losses = 0.5 -> rs = 2 -> 66.66...
        assert rsi(samples_from(closes), 2) == pytest.approx(100 - 100 / 3)


class TestBandSignal:
    def test_flat_window_is_neutral(self):
        assert band_signal(samples_from([3.0] * 14), 14) == "NEUTRAL"

    def test_close_above_average_is_call(self):
        assert band_signal(samples_from([1.0, 1.0, 1.0, 2.0]), 4) == "CALL"

    def test_close_below_average_is_put(self):
        assert band_signal(samples_from([2.0, 2.0, 2.0, 1.0]), 4) == "PUT"

    def test_short_window_is_neutral(self):
        assert band_signal(samples_from([1.0, 5.0]), 4) == "NEUTRAL"

    def test_uses_high_and_low_separately(self):
        samples = [
            PriceSample(high=2.0, low=1.0, close=1.5, timestamp=1),
            PriceSample(high=2.0, low=1.0, close=1.5, timestamp=2),
        ]
        # avg high 2.0, avg low 1.0, close 1.5 sits inside the band
        assert band_signal(samples, 2) == "NEUTRAL"
