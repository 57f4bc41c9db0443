"""MHI band cross: current close against the trailing average high/low."""

from collections.abc import Sequence

from tickbot.schemas.engine import Signal
from tickbot.schemas.market import PriceSample


def band_signal(samples: Sequence[PriceSample], period: int) -> Signal:
    if period <= 0 or len(samples) < period:
        return "NEUTRAL"

    recent = samples[-period:]
    avg_high = sum(s.high for s in recent) / period
    avg_low = sum(s.low for s in recent) / period
    current = recent[-1].close

    if current > avg_high:
        return "CALL"
    if current < avg_low:
        return "PUT"
    return "NEUTRAL"
