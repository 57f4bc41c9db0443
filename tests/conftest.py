"""
Shared fixtures for the tickbot test suite.

Network access is replaced by FakeConnection, which records every outbound request and
hands out req_ids the same way DerivConnection does. Clocks are plain mutable callables
so cooldown tests never sleep.
"""

import asyncio

import pytest

from tickbot.exceptions import NotConnectedError
from tickbot.schemas.deriv import Envelope
from tickbot.schemas.engine import EngineConfig
from tickbot.schemas.market import PriceSample, sample_from_quote
from tickbot.services.deriv_client import ConnectionOutcome
from tickbot.services.engine import TradingEngine


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeConnection:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.connected = True
        self.closed = False
        self._req_id = 0
        self._stop: asyncio.Event | None = None

    async def send(self, payload: dict) -> int:
        if not self.connected:
            raise NotConnectedError("closed")
        self._req_id += 1
        self.sent.append({**payload, "req_id": self._req_id})
        return self._req_id

    async def close(self) -> None:
        self.closed = True
        self.connected = False
        if self._stop is not None:
            self._stop.set()

    async def run(self, handler) -> ConnectionOutcome:
        self._stop = asyncio.Event()
        if self.closed:
            return ConnectionOutcome.CLOSED
        await self._stop.wait()
        return ConnectionOutcome.CLOSED

    def sent_of(self, key: str) -> list[dict]:
        return [m for m in self.sent if key in m]


def envelope(msg_type: str, body=None, error: dict | None = None, req_id: int | None = None) -> Envelope:
    data: dict = {"msg_type": msg_type}
    if body is not None:
        data[msg_type] = body
    if error is not None:
        data["error"] = error
    if req_id is not None:
        data["req_id"] = req_id
    return Envelope.model_validate(data)


def tick(quote: float, epoch: int = 1_700_000_000) -> Envelope:
    return envelope("tick", {"symbol": "R_10", "quote": quote, "epoch": epoch})


def balance(amount: float) -> Envelope:
    return envelope("balance", {"balance": amount, "currency": "USD"})


def samples_from(closes: list[float]) -> list[PriceSample]:
    return [sample_from_quote(c, 1_700_000_000 + i) for i, c in enumerate(closes)]


def make_config(**overrides) -> EngineConfig:
    values = {
        "token": "test-token",
        "symbol": "R_10",
        "stake": 1.0,
        "martingale": 2.0,
        "duration": 2,
        "stop_win": 100.0,
        "stop_loss": -100.0,
        "min_confidence": 20.0,
        "trade_cooldown_seconds": 10.0,
        "analysis_cooldown_seconds": 0.0,
        "max_analyses_per_minute": 1_000,
    }
    values.update(overrides)
    return EngineConfig(**values)


@pytest.fixture()
def config() -> EngineConfig:
    return make_config()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture()
def engine_factory(connection, clock):
    def _make(config: EngineConfig | None = None) -> TradingEngine:
        return TradingEngine(
            config or make_config(),
            connection=connection,
            clock=clock,
            wall_clock=lambda: 1_700_000_000.0,
            persist_trades=False,
        )

    return _make
