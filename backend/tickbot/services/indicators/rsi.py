"""Relative strength index from the most recent close-to-close deltas."""

from collections.abc import Sequence

from tickbot.schemas.market import PriceSample

NEUTRAL_RSI = 50.0


def rsi(samples: Sequence[PriceSample], period: int) -> float:
    """
    Plain averages of gains and losses over the last `period` deltas (no Wilder smoothing).
    50 with fewer than period + 1 samples, 100 when there were no losses.
    """
    if period <= 0 or len(samples) < period + 1:
        return NEUTRAL_RSI

    closes = [s.close for s in samples[-(period + 1):]]
    gains = 0.0
    losses = 0.0
    for prev, cur in zip(closes, closes[1:]):
        delta = cur - prev
        if delta > 0:
            gains += delta
        else:
            losses -= delta

    avg_gain = gains / period
    avg_loss = losses / period
    if avg_loss == 0:
        return 100.0
    return 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)
