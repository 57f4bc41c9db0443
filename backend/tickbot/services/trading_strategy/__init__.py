"""Trading strategy module: fuses indicator votes into a directional signal."""

from tickbot.services.trading_strategy.types import ComponentVotes, FusedSignal
from tickbot.services.trading_strategy.signal_fusion import (
    analyze,
    fuse_signals,
)

__all__ = [
    "ComponentVotes",
    "FusedSignal",
    "analyze",
    "fuse_signals",
]
