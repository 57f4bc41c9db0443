from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Signal = Literal["CALL", "PUT", "NEUTRAL"]
TradeResult = Literal["win", "loss"]
# Symbols double as journal directory names
SYMBOL_PATTERN = r"^[A-Za-z0-9_]+$"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    SUBSCRIBED = "subscribed"


class EngineStatus(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    WAITING_BALANCE = "waiting_balance"
    ANALYZING = "analyzing"
    TRADING = "trading"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"
    # Terminal: the run ended on its own and needs a fresh start
    STOP_WIN = "stop_win"
    STOP_LOSS = "stop_loss"
    INVALID_TOKEN = "invalid_token"
    CONNECTION_FAILED = "connection_failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        EngineStatus.STOPPED,
        EngineStatus.STOP_WIN,
        EngineStatus.STOP_LOSS,
        EngineStatus.INVALID_TOKEN,
        EngineStatus.CONNECTION_FAILED,
    }
)


class EngineConfig(BaseModel):
    """Run configuration. Frozen: changing anything means stop and start again."""

    model_config = ConfigDict(frozen=True)

    token: str = Field(min_length=1)
    symbol: str = Field(default="R_10", pattern=SYMBOL_PATTERN)
    stake: float = Field(default=1.0, gt=0)
    martingale: float = Field(default=2.0, ge=1.0)
    max_martingale_level: int = Field(default=3, ge=1)
    duration: int = Field(default=2, ge=1)
    duration_unit: Literal["t", "s", "m", "h"] = "m"
    currency: str = "USD"
    stop_win: float = Field(default=3.0, gt=0)
    stop_loss: float = -5.0
    min_confidence: float = Field(default=20.0, ge=0, le=100)

    mhi_period: int = Field(default=14, ge=1)
    ema_fast: int = Field(default=9, ge=1)
    ema_slow: int = Field(default=21, ge=2)
    rsi_period: int = Field(default=14, ge=1)

    trade_cooldown_seconds: float = Field(default=30.0, ge=0)
    analysis_cooldown_seconds: float = Field(default=2.0, ge=0)
    max_analyses_per_minute: int = Field(default=20, ge=1)

    @field_validator("stop_loss")
    @classmethod
    def _stop_loss_is_a_loss(cls, value: float) -> float:
        # "5" and "-5" both mean halt at a cumulative loss of 5
        return -abs(value)

    @model_validator(mode="after")
    def _ema_order(self) -> "EngineConfig":
        if self.ema_fast >= self.ema_slow:
            raise ValueError("ema_fast must be shorter than ema_slow")
        return self

    @property
    def required_samples(self) -> int:
        return max(self.mhi_period, self.ema_slow, self.rsi_period)

    @property
    def window_capacity(self) -> int:
        return 2 * max(self.mhi_period, self.ema_fast, self.ema_slow, self.rsi_period)


class TradeRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    contract_id: int
    signal: Signal
    confidence: float
    stake: float
    martingale_level: int
    result: TradeResult
    profit: float
    timestamp: int


class EngineStats(BaseModel):
    status: EngineStatus
    symbol: str | None = None
    balance: float
    profit: float
    win_rate: float
    samples: int
    martingale_level: int
    current_stake: float
    total: int
    wins: int
    losses: int
    is_trading: bool
