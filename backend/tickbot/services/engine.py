"""
Trading engine: wires the Deriv connection, window, gate, fusion, execution and risk together.

Everything runs on one asyncio loop. Inbound messages are handled one at a time and each
handler runs to completion before the next message is read, so the state records need no
locking. Collaborators only see snapshots (stats(), logs(), trades()).
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import datetime

from pydantic import ValidationError

from tickbot.config import settings
from tickbot.schemas.deriv import BalancePayload, Envelope, TickPayload
from tickbot.schemas.engine import (
    ConnectionState,
    EngineConfig,
    EngineStats,
    EngineStatus,
    TradeRecord,
)
from tickbot.schemas.market import sample_from_quote
from tickbot.services import trade_log
from tickbot.services.deriv_client import ConnectionOutcome, DerivConnection
from tickbot.services.execution import ExecutionTracker, Settlement
from tickbot.services.risk import RiskController
from tickbot.services.state import EngineState
from tickbot.services.trade_gate import TradeGate
from tickbot.services.trading_strategy import analyze
from tickbot.services.window_store import WindowStore

logger = logging.getLogger(__name__)


class TradingEngine:
    def __init__(
        self,
        config: EngineConfig,
        connection: DerivConnection | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        persist_trades: bool = True,
        log_capacity: int | None = None,
        analysis_window: float | None = None,
    ) -> None:
        self.config = config
        self.state = EngineState()
        self.status = EngineStatus.IDLE
        self.window = WindowStore(config.window_capacity)
        self.connection = connection or DerivConnection(config.token, config.symbol)
        self.gate = TradeGate(
            self.state,
            trade_cooldown=config.trade_cooldown_seconds,
            analysis_cooldown=config.analysis_cooldown_seconds,
            max_per_minute=config.max_analyses_per_minute,
            clock=clock,
        )
        self.tracker = ExecutionTracker(self.state, config, self.connection)
        self.risk = RiskController(
            config,
            wall_clock=wall_clock,
            on_record=self._journal if persist_trades else None,
        )
        self._wall_clock = wall_clock
        self._logs: deque[str] = deque(maxlen=log_capacity or settings.log_capacity)
        self._analysis_window = analysis_window or settings.analysis_window_seconds
        self._stopped = False

    # --- lifecycle -------------------------------------------------------

    @property
    def stopped(self) -> bool:
        return self._stopped

    async def run(self) -> EngineStatus:
        """Run until stopped, halted by a stop threshold, or a terminal connection failure."""
        if self._stopped:
            return self.status
        cfg = self.config
        self.status = EngineStatus.CONNECTING
        self.log(f"Starting engine: symbol={cfg.symbol} stake={cfg.stake:.2f} duration={cfg.duration}{cfg.duration_unit}")
        reset_task = asyncio.create_task(self._minute_reset_loop())
        try:
            outcome = await self.connection.run(self)
        finally:
            reset_task.cancel()

        if outcome == ConnectionOutcome.INVALID_TOKEN:
            self._terminate(EngineStatus.INVALID_TOKEN, "Invalid token: authorization rejected")
        elif outcome == ConnectionOutcome.EXHAUSTED:
            self._terminate(EngineStatus.CONNECTION_FAILED, "Connection failed: all endpoints exhausted")
        elif not self._stopped:
            self._terminate(EngineStatus.STOPPED, "Engine stopped")
        return self.status

    async def stop(self, status: EngineStatus = EngineStatus.STOPPED) -> None:
        """Cooperative stop. A contract still open broker-side settles, but is ignored here."""
        if self._stopped:
            return
        if self.state.is_trading:
            self.log("Stopping with a trade in flight; its settlement will not be recorded", logging.WARNING)
        message = "Engine stopped" if status == EngineStatus.STOPPED else f"Engine halted: {status.value}"
        self._terminate(status, message)
        await self.connection.close()

    def _terminate(self, status: EngineStatus, message: str) -> None:
        self._stopped = True
        self.state.running = False
        self.status = status
        level = logging.INFO if status in (EngineStatus.STOPPED, EngineStatus.STOP_WIN) else logging.WARNING
        self.log(message, level)

    async def _minute_reset_loop(self) -> None:
        while True:
            await asyncio.sleep(self._analysis_window)
            self.gate.reset_minute()

    # --- connection callbacks ---------------------------------------------

    def on_connection_state(self, state: ConnectionState) -> None:
        self.state.connection_state = state
        if self._stopped or self.state.running:
            return
        if state == ConnectionState.CONNECTING:
            self.status = EngineStatus.CONNECTING
        elif state == ConnectionState.AUTHENTICATING:
            self.status = EngineStatus.AUTHENTICATING

    async def on_authorized(self, envelope: Envelope) -> None:
        if self._stopped:
            return
        self.log(f"Authenticated; monitoring {self.config.symbol}")
        if self.state.running:
            await self.tracker.resubscribe_after_reconnect()
            self.status = EngineStatus.TRADING if self.state.is_trading else EngineStatus.ANALYZING
        else:
            self.status = EngineStatus.WAITING_BALANCE

    def on_reconnecting(self, url: str, attempt: int) -> None:
        if self._stopped:
            return
        self.status = EngineStatus.RECONNECTING
        self.log(f"Connection lost; reconnecting to {url} (attempt {attempt})", logging.WARNING)

    def on_malformed(self, reason: str) -> None:
        self.log(f"Dropped malformed message: {reason}", logging.WARNING)

    async def on_message(self, envelope: Envelope) -> None:
        if self._stopped:
            return

        if envelope.error is not None and envelope.msg_type not in ("proposal", "buy"):
            self.log(f"ERROR: {envelope.error.message}", logging.WARNING)
            return

        msg_type = envelope.msg_type
        if msg_type == "balance":
            self._on_balance(envelope)
        elif msg_type == "tick":
            await self._on_tick(envelope)
        elif msg_type == "proposal":
            await self._track(self.tracker.on_proposal(envelope))
        elif msg_type == "buy":
            await self._track(self.tracker.on_buy(envelope))
            pending = self.tracker.pending
            if pending is not None and pending.contract_id is not None:
                self.log(f"Contract id: {pending.contract_id}")
        elif msg_type == "proposal_open_contract":
            settlement = self.tracker.on_open_contract(envelope)
            if settlement is not None:
                await self._on_settlement(settlement)

    async def _track(self, step: Awaitable[None]) -> None:
        was_trading = self.state.is_trading
        await step
        if was_trading and not self.state.is_trading:
            self.log(f"Trade failed: {self.tracker.last_error}", logging.WARNING)
            self.status = EngineStatus.ANALYZING

    # --- message handlers -----------------------------------------------

    def _on_balance(self, envelope: Envelope) -> None:
        try:
            payload = BalancePayload.model_validate(envelope.body())
        except ValidationError:
            self.log("Malformed balance update dropped", logging.WARNING)
            return
        self.state.balance = payload.balance
        if not self.state.running:
            self.state.running = True
            self.status = EngineStatus.ANALYZING
            self.log(f"Balance: {payload.balance:.2f} {payload.currency}; engine active and analyzing")

    async def _on_tick(self, envelope: Envelope) -> None:
        try:
            tick = TickPayload.model_validate(envelope.body())
        except ValidationError:
            self.log("Invalid tick ignored", logging.WARNING)
            return

        self.window.append(sample_from_quote(tick.quote, tick.epoch))
        if not self.state.running or not self.gate.try_acquire():
            return

        self.state.is_analyzing = True
        try:
            fused = analyze(self.window.samples, self.config)
        finally:
            self.state.is_analyzing = False
        if fused is None:
            logger.debug("Collecting data: %d/%d samples", self.window.size(), self.config.required_samples)
            return
        if not fused.is_directional or fused.confidence < self.config.min_confidence:
            return

        stake = self.risk.stake
        self.log(f"SIGNAL: {fused.signal} ({fused.confidence:.0f}%) rsi={fused.rsi:.1f}")
        started = await self.tracker.execute(
            fused.signal, fused.confidence, stake.current_stake, stake.martingale_level
        )
        if started:
            self.status = EngineStatus.TRADING
            self.log(f"EXECUTING: {fused.signal} stake={stake.current_stake:.2f} level={stake.martingale_level}")
        else:
            self.log(f"Trade not started: {self.tracker.last_error}", logging.WARNING)

    async def _on_settlement(self, settlement: Settlement) -> None:
        halt = self.risk.settle(settlement, self.state.balance)
        self.gate.record_trade_completed()
        result = "WIN" if settlement.profit >= 0 else "LOSS"
        stake = self.risk.stake
        self.log(
            f"Result: {result} | profit {settlement.profit:+.2f} | total {stake.cumulative_profit:+.2f}"
            f" | next stake {stake.current_stake:.2f} (level {stake.martingale_level})"
        )
        if halt is not None:
            await self.stop(halt)
            return
        self.status = EngineStatus.ANALYZING

    def _journal(self, record: TradeRecord) -> None:
        trade_log.append_trade(self.config.symbol, record)

    # --- read-only projections --------------------------------------------

    def log(self, message: str, level: int = logging.INFO) -> None:
        stamp = datetime.fromtimestamp(self._wall_clock()).strftime("%H:%M:%S")
        self._logs.append(f"[{stamp}] {message}")
        logger.log(level, message)

    def logs(self) -> list[str]:
        return list(self._logs)

    def trades(self) -> list[TradeRecord]:
        return self.risk.history

    def stats(self) -> EngineStats:
        stake = self.risk.stake
        return EngineStats(
            status=self.status,
            symbol=self.config.symbol,
            balance=self.state.balance,
            profit=stake.cumulative_profit,
            win_rate=round(stake.win_rate, 2),
            samples=self.window.size(),
            martingale_level=stake.martingale_level,
            current_stake=stake.current_stake,
            total=stake.trade_count,
            wins=stake.win_count,
            losses=stake.loss_count,
            is_trading=self.state.is_trading,
        )
