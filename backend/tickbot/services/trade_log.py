"""Trade journal: append settled trades as JSON lines and read them back for the API."""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from tickbot.config import settings
from tickbot.schemas.engine import TradeRecord

logger = logging.getLogger(__name__)


def _log_dir(symbol: str) -> Path:
    """Base dir for a symbol: logs/trades/R_10"""
    return Path(settings.trade_log_dir) / symbol


def _index_path(symbol: str) -> Path:
    """JSONL index: logs/trades/R_10/index.jsonl"""
    return _log_dir(symbol) / "index.jsonl"


def append_trade(symbol: str, record: TradeRecord) -> None:
    """Append one settled trade. I/O failures are logged; the engine keeps trading."""
    try:
        log_dir = _log_dir(symbol)
        log_dir.mkdir(parents=True, exist_ok=True)
        with _index_path(symbol).open("a", encoding="utf-8") as f:
            f.write(record.model_dump_json() + "\n")
    except OSError as e:
        logger.warning("Trade log: failed to append contract_id=%s: %s", record.contract_id, e)
        return
    logger.debug("Trade log: appended contract_id=%s symbol=%s", record.contract_id, symbol)


def load_trades(symbol: str, since: int | None = None) -> list[TradeRecord]:
    """Read the journal for a symbol, oldest first. Malformed lines are skipped."""
    index_path = _index_path(symbol)
    if not index_path.exists():
        return []

    trades: list[TradeRecord] = []
    try:
        with index_path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    record = TradeRecord.model_validate(json.loads(line))
                except (json.JSONDecodeError, ValidationError):
                    continue
                if since is not None and record.timestamp < since:
                    continue
                trades.append(record)
    except OSError as e:
        logger.warning("Trade log: failed to read %s: %s", index_path, e)
        return []
    return trades
