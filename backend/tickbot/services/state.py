"""Mutable per-run state records. Each has one owner inside the engine; collaborators get snapshots."""

from dataclasses import dataclass

from tickbot.schemas.engine import ConnectionState


@dataclass
class EngineState:
    connection_state: ConnectionState = ConnectionState.DISCONNECTED
    is_analyzing: bool = False
    is_trading: bool = False
    last_trade_at: float | None = None  # clock() of the last settlement
    last_analysis_at: float | None = None
    analysis_count_this_minute: int = 0
    balance: float = 0.0
    # Set on the first balance message; ticks are only analysed after that
    running: bool = False


@dataclass
class StakeState:
    current_stake: float
    martingale_level: int = 0
    cumulative_profit: float = 0.0
    trade_count: int = 0
    win_count: int = 0
    loss_count: int = 0

    @property
    def win_rate(self) -> float:
        return self.win_count / self.trade_count * 100.0 if self.trade_count else 0.0
