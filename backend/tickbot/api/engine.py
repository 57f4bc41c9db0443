"""Engine API: start/stop commands and read-only projections for the dashboard."""
import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Path, Query, WebSocket, WebSocketDisconnect

from tickbot.exceptions import EngineAlreadyRunning
from tickbot.schemas.engine import SYMBOL_PATTERN, EngineConfig, EngineStats, TradeRecord
from tickbot.services import trade_log
from tickbot.services.engine_hub import EngineHub

logger = logging.getLogger(__name__)

STATS_PUSH_INTERVAL = 1.0
HEARTBEAT_SECONDS = 30

router = APIRouter(prefix="/api/v1", tags=["engine"])


def get_engine_hub() -> EngineHub:
    # Dependency override in main.py will supply singleton.
    raise RuntimeError("engine hub dependency is not configured")


@router.post("/engine/start", response_model=EngineStats, status_code=202)
async def start_engine(config: EngineConfig, hub: EngineHub = Depends(get_engine_hub)) -> EngineStats:
    """Start a run with a fresh configuration. 409 while a run is active."""
    try:
        engine = await hub.start(config)
    except EngineAlreadyRunning as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    logger.info("Engine started for %s", config.symbol)
    return engine.stats()


@router.post("/engine/stop")
async def stop_engine(hub: EngineHub = Depends(get_engine_hub)) -> dict[str, str]:
    """Stop the active run (no-op when idle)."""
    await hub.stop()
    return {"status": hub.status().value}


@router.get("/engine/status")
async def engine_status(hub: EngineHub = Depends(get_engine_hub)) -> dict[str, str | bool]:
    status = hub.status()
    return {"status": status.value, "running": hub.is_running, "terminal": status.is_terminal}


@router.get("/engine/stats", response_model=EngineStats)
async def engine_stats(hub: EngineHub = Depends(get_engine_hub)) -> EngineStats:
    stats = hub.stats()
    if stats is None:
        raise HTTPException(status_code=404, detail="Engine has not been started")
    return stats


@router.get("/engine/logs")
async def engine_logs(hub: EngineHub = Depends(get_engine_hub)) -> dict[str, list[str]]:
    return {"logs": hub.logs()}


@router.get("/engine/trades", response_model=list[TradeRecord])
async def engine_trades(hub: EngineHub = Depends(get_engine_hub)) -> list[TradeRecord]:
    """Trade history of the current (or last) run."""
    return hub.trades()


@router.get("/journal/{symbol}", response_model=list[TradeRecord])
async def journal(
    symbol: str = Path(pattern=SYMBOL_PATTERN),
    since: int | None = Query(default=None, description="Unix seconds; older trades are skipped"),
) -> list[TradeRecord]:
    """Persisted trades across runs for a symbol."""
    return trade_log.load_trades(symbol, since=since)


@router.websocket("/stream/engine")
async def stream_engine(websocket: WebSocket, hub: EngineHub = Depends(get_engine_hub)) -> None:
    """Push stats snapshots whenever they change; heartbeat when idle."""
    await websocket.accept()
    last_sent: dict | None = None
    idle = 0.0
    try:
        while True:
            stats = hub.stats()
            payload = {"event": "stats", "stats": stats.model_dump(mode="json")} if stats else None
            if payload is not None and payload != last_sent:
                await websocket.send_json(payload)
                last_sent = payload
                idle = 0.0
            elif idle >= HEARTBEAT_SECONDS:
                await websocket.send_json({"event": "heartbeat"})
                idle = 0.0
            await asyncio.sleep(STATS_PUSH_INTERVAL)
            idle += STATS_PUSH_INTERVAL
    except WebSocketDisconnect:
        pass
