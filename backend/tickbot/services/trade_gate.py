"""Rate limiting for analyses and trades. Guards read the live EngineState at check time."""

import time
from collections.abc import Callable

from tickbot.services.state import EngineState


class TradeGate:
    def __init__(
        self,
        state: EngineState,
        trade_cooldown: float,
        analysis_cooldown: float,
        max_per_minute: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._state = state
        self._trade_cooldown = trade_cooldown
        self._analysis_cooldown = analysis_cooldown
        self._max_per_minute = max_per_minute
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def blocked_reason(self) -> str | None:
        """Return why analysis may not run right now, or None when every guard passes."""
        state = self._state
        now = self._clock()

        if state.is_trading:
            return "trade in flight"
        if state.last_trade_at is not None and now - state.last_trade_at < self._trade_cooldown:
            return "trade cooldown"
        if state.last_analysis_at is not None and now - state.last_analysis_at < self._analysis_cooldown:
            return "analysis cooldown"
        if state.analysis_count_this_minute >= self._max_per_minute:
            return "analysis rate limit"
        return None

    def try_acquire(self) -> bool:
        """Check all guards; on success record the analysis and return True."""
        if self.blocked_reason() is not None:
            return False
        self._state.last_analysis_at = self._clock()
        self._state.analysis_count_this_minute += 1
        return True

    def record_trade_completed(self) -> None:
        self._state.last_trade_at = self._clock()

    def reset_minute(self) -> None:
        """Called by the engine's fixed one-minute timer, regardless of trade activity."""
        self._state.analysis_count_this_minute = 0
