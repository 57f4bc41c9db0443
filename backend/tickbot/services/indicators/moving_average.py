"""Exponential moving average over sample closes."""

from collections.abc import Sequence

from tickbot.schemas.market import PriceSample


def ema(samples: Sequence[PriceSample], period: int) -> float:
    """
    EMA seeded with the simple average of the first `period` closes,
    then ema = (close - ema) * 2 / (period + 1) + ema for the rest.
    Returns 0.0 when there are fewer than `period` samples.
    """
    if period <= 0 or len(samples) < period:
        return 0.0

    multiplier = 2 / (period + 1)
    value = sum(s.close for s in samples[:period]) / period
    for s in samples[period:]:
        value = (s.close - value) * multiplier + value
    return value
