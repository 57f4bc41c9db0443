import asyncio
import logging
from collections.abc import Callable

from tickbot.exceptions import EngineAlreadyRunning
from tickbot.schemas.engine import EngineConfig, EngineStats, EngineStatus, TradeRecord
from tickbot.services.engine import TradingEngine

logger = logging.getLogger(__name__)


class EngineHub:
    """Holds the single engine of this process and the task running it."""

    def __init__(self, engine_factory: Callable[[EngineConfig], TradingEngine] = TradingEngine) -> None:
        self._engine_factory = engine_factory
        self._engine: TradingEngine | None = None
        self._task: asyncio.Task[EngineStatus] | None = None
        self._lock = asyncio.Lock()

    @property
    def engine(self) -> TradingEngine | None:
        return self._engine

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, config: EngineConfig) -> TradingEngine:
        async with self._lock:
            if self.is_running:
                raise EngineAlreadyRunning("engine is already running; stop it first")
            engine = self._engine_factory(config)
            self._engine = engine
            self._task = asyncio.create_task(engine.run())
            self._task.add_done_callback(self._on_done)
        return engine

    async def stop(self) -> TradingEngine | None:
        async with self._lock:
            engine = self._engine
            task = self._task
            if engine is None or task is None or task.done():
                return engine
            await engine.stop()
        # Crashes are already logged by _on_done
        await asyncio.gather(task, return_exceptions=True)
        return engine

    def status(self) -> EngineStatus:
        return self._engine.status if self._engine else EngineStatus.IDLE

    def stats(self) -> EngineStats | None:
        return self._engine.stats() if self._engine else None

    def logs(self) -> list[str]:
        return self._engine.logs() if self._engine else []

    def trades(self) -> list[TradeRecord]:
        return self._engine.trades() if self._engine else []

    def _on_done(self, task: asyncio.Task[EngineStatus]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Engine task crashed: %s", exc, exc_info=exc)
