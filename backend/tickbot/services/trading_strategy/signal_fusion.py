"""Weighted vote of MHI band, EMA trend, EMA position and RSI into one CALL/PUT call."""

from collections.abc import Sequence

from tickbot.schemas.engine import EngineConfig, Signal
from tickbot.schemas.market import PriceSample
from tickbot.services.indicators.band_signal import band_signal
from tickbot.services.indicators.moving_average import ema
from tickbot.services.indicators.rsi import rsi
from tickbot.services.trading_strategy.types import ComponentVotes, FusedSignal

WEIGHTS: dict[str, float] = {
    "band": 0.3,
    "trend": 0.3,
    "ema_position": 0.2,
    "rsi": 0.2,
    "volume": 0.0,
}
# A side needs strictly more than this combined weight to win
MIN_SIDE_SCORE = 0.4

RSI_OVERSOLD = 30.0
RSI_OVERBOUGHT = 70.0
RSI_EXTREME_LOW = 20.0
RSI_EXTREME_HIGH = 80.0

POINTS_PER_VOTE = 20
EXTREME_RSI_BONUS = 10
STRONG_RSI_BONUS = 5
MAX_CONFIDENCE = 95


def _trend_vote(price: float, fast: float, slow: float) -> Signal:
    if fast > slow and price > fast:
        return "CALL"
    if fast < slow and price < fast:
        return "PUT"
    return "NEUTRAL"


def _rsi_vote(value: float) -> Signal:
    if value < RSI_OVERSOLD:
        return "CALL"
    if value > RSI_OVERBOUGHT:
        return "PUT"
    return "NEUTRAL"


def _confidence(votes: ComponentVotes, rsi_value: float) -> float:
    points = sum(POINTS_PER_VOTE for v in votes.as_dict().values() if v != "NEUTRAL")
    if rsi_value < RSI_EXTREME_LOW or rsi_value > RSI_EXTREME_HIGH:
        points += EXTREME_RSI_BONUS
    elif rsi_value < RSI_OVERSOLD or rsi_value > RSI_OVERBOUGHT:
        points += STRONG_RSI_BONUS
    return float(min(points, MAX_CONFIDENCE))


def fuse_signals(
    samples: Sequence[PriceSample],
    mhi_period: int,
    ema_fast_period: int,
    ema_slow_period: int,
    rsi_period: int,
) -> FusedSignal | None:
    """
    Combine the component votes into a final signal.

    Returns None while the window holds fewer than max(mhi, ema_slow, rsi) samples;
    a short window is "not yet", never a partial signal.
    """
    if not samples or len(samples) < max(mhi_period, ema_slow_period, rsi_period):
        return None

    price = samples[-1].close
    fast = ema(samples, ema_fast_period)
    slow = ema(samples, ema_slow_period)
    rsi_value = rsi(samples, rsi_period)

    votes = ComponentVotes(
        band=band_signal(samples, mhi_period),
        trend=_trend_vote(price, fast, slow),
        ema_position="CALL" if price > fast else "PUT",
        rsi=_rsi_vote(rsi_value),
    )

    call_score = 0.0
    put_score = 0.0
    for name, vote in votes.as_dict().items():
        if vote == "CALL":
            call_score += WEIGHTS[name]
        elif vote == "PUT":
            put_score += WEIGHTS[name]
    # Compare at 6 decimals: 0.2 + 0.2 must equal MIN_SIDE_SCORE, not exceed it.
    call_score = round(call_score, 6)
    put_score = round(put_score, 6)

    final: Signal = "NEUTRAL"
    if call_score > put_score and call_score > MIN_SIDE_SCORE:
        final = "CALL"
    elif put_score > call_score and put_score > MIN_SIDE_SCORE:
        final = "PUT"

    return FusedSignal(
        signal=final,
        confidence=_confidence(votes, rsi_value),
        call_score=call_score,
        put_score=put_score,
        votes=votes,
        price=price,
        ema_fast=fast,
        ema_slow=slow,
        rsi=rsi_value,
    )


def analyze(samples: Sequence[PriceSample], config: EngineConfig) -> FusedSignal | None:
    return fuse_signals(
        samples,
        mhi_period=config.mhi_period,
        ema_fast_period=config.ema_fast,
        ema_slow_period=config.ema_slow,
        rsi_period=config.rsi_period,
    )
