"""Trading strategy types."""

from dataclasses import dataclass

from tickbot.schemas.engine import Signal


@dataclass(frozen=True)
class ComponentVotes:
    """Per-indicator votes feeding the fused signal."""

    band: Signal  # MHI band cross
    trend: Signal  # EMA fast vs slow vs price
    ema_position: Signal  # price vs EMA fast, never NEUTRAL
    rsi: Signal  # oversold / overbought
    volume: Signal = "NEUTRAL"  # reserved, weight 0

    def as_dict(self) -> dict[str, Signal]:
        return {
            "band": self.band,
            "trend": self.trend,
            "ema_position": self.ema_position,
            "rsi": self.rsi,
            "volume": self.volume,
        }


@dataclass(frozen=True)
class FusedSignal:
    """Direction and confidence produced from one analysis of the window."""

    signal: Signal
    confidence: float  # 0..95
    call_score: float
    put_score: float
    votes: ComponentVotes
    price: float
    ema_fast: float
    ema_slow: float
    rsi: float

    @property
    def is_directional(self) -> bool:
        return self.signal != "NEUTRAL"
