"""Stake sizing (bounded martingale ladder) and stop-win / stop-loss evaluation."""

import logging
import math
import time
from collections.abc import Callable

from tickbot.schemas.engine import EngineConfig, EngineStatus, TradeRecord
from tickbot.services.execution import Settlement
from tickbot.services.state import StakeState

logger = logging.getLogger(__name__)

# Ladder stake may never exceed this share of the balance
BALANCE_CAP_RATIO = 0.3
# A ladder stake above this share of the balance resets the ladder instead
BALANCE_RESET_RATIO = 0.5
MIN_STAKE_UNIT = 1


class RiskController:
    def __init__(
        self,
        config: EngineConfig,
        wall_clock: Callable[[], float] = time.time,
        on_record: Callable[[TradeRecord], None] | None = None,
    ) -> None:
        self._config = config
        self._initial_stake = config.stake
        self._wall_clock = wall_clock
        self._on_record = on_record
        self.stake = StakeState(current_stake=config.stake)
        self._history: list[TradeRecord] = []

    @property
    def history(self) -> list[TradeRecord]:
        return list(self._history)

    @property
    def ladder_cap(self) -> float:
        return self._initial_stake * self._config.martingale ** self._config.max_martingale_level

    def settle(self, settlement: Settlement, balance: float) -> EngineStatus | None:
        """
        Apply one settled contract: record it, move the stake ladder and check the global stops.

        Returns STOP_WIN / STOP_LOSS when the run must halt, otherwise None.
        """
        profit = settlement.profit
        won = profit >= 0
        record = TradeRecord(
            contract_id=settlement.contract_id,
            signal=settlement.signal,
            confidence=settlement.confidence,
            stake=settlement.stake,
            martingale_level=settlement.martingale_level,
            result="win" if won else "loss",
            profit=profit,
            timestamp=int(self._wall_clock()),
        )
        self._history.append(record)
        if self._on_record is not None:
            self._on_record(record)

        state = self.stake
        state.trade_count += 1
        state.cumulative_profit = round(state.cumulative_profit + profit, 2)
        if won:
            state.win_count += 1
            self._reset_ladder()
        else:
            state.loss_count += 1
            self._escalate(balance)

        return self.check_stops()

    def check_stops(self) -> EngineStatus | None:
        profit = self.stake.cumulative_profit
        if profit >= self._config.stop_win:
            logger.info("Stop win reached: profit=%.2f target=%.2f", profit, self._config.stop_win)
            return EngineStatus.STOP_WIN
        if profit <= self._config.stop_loss:
            logger.info("Stop loss reached: profit=%.2f limit=%.2f", profit, self._config.stop_loss)
            return EngineStatus.STOP_LOSS
        return None

    def next_loss_stake(self, balance: float) -> float:
        """
        Stake the ladder would use after one more loss, before ceiling/balance resets.

        Rounded down to a whole unit (3 x 1.5 gives 4, not 5), never below one unit.
        """
        state = self.stake
        raw = min(
            state.current_stake * self._config.martingale,
            self.ladder_cap,
            balance * BALANCE_CAP_RATIO,
        )
        return float(max(math.floor(raw), MIN_STAKE_UNIT))

    def _escalate(self, balance: float) -> None:
        state = self.stake
        level = state.martingale_level + 1
        stake = self.next_loss_stake(balance)
        if level >= self._config.max_martingale_level or stake > balance * BALANCE_RESET_RATIO:
            logger.info(
                "Martingale reset: level=%d stake=%.2f balance=%.2f", level, stake, balance
            )
            self._reset_ladder()
            return
        state.martingale_level = level
        state.current_stake = stake
        logger.info("Martingale level %d: next stake %.2f", level, stake)

    def _reset_ladder(self) -> None:
        self.stake.current_stake = self._initial_stake
        self.stake.martingale_level = 0
