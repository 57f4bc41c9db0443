import pytest
from fastapi.testclient import TestClient

from conftest import FakeConnection
from tickbot.api.engine import get_engine_hub
from tickbot.config import settings
from tickbot.main import app
from tickbot.schemas.engine import TradeRecord
from tickbot.services import trade_log
from tickbot.services.engine import TradingEngine
from tickbot.services.engine_hub import EngineHub

START_BODY = {"token": "test-token", "symbol": "R_25", "stake": 2, "stop_win": 5, "stop_loss": -5}


@pytest.fixture()
def connections() -> list[FakeConnection]:
    return []


@pytest.fixture()
def client(connections):
    def factory(config):
        connection = FakeConnection()
        connections.append(connection)
        return TradingEngine(config, connection=connection, persist_trades=False)

    hub = EngineHub(engine_factory=factory)
    app.dependency_overrides[get_engine_hub] = lambda: hub
    # The context manager keeps one event loop alive so the engine task survives between requests
    with TestClient(app) as test_client:
        yield test_client
        test_client.post("/api/v1/engine/stop")
    app.dependency_overrides.pop(get_engine_hub)


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_idle_hub(client):
    assert client.get("/api/v1/engine/status").json() == {"status": "idle", "running": False, "terminal": False}
    assert client.get("/api/v1/engine/stats").status_code == 404
    assert client.get("/api/v1/engine/logs").json() == {"logs": []}
    assert client.get("/api/v1/engine/trades").json() == []
    assert client.post("/api/v1/engine/stop").json() == {"status": "idle"}


def test_start_then_stop(client, connections):
    response = client.post("/api/v1/engine/start", json=START_BODY)
    assert response.status_code == 202
    body = response.json()
    assert body["symbol"] == "R_25"
    assert body["current_stake"] == 2.0
    assert body["total"] == 0

    status = client.get("/api/v1/engine/status").json()
    assert status["running"] is True
    assert status["terminal"] is False

    response = client.post("/api/v1/engine/stop")
    assert response.json() == {"status": "stopped"}
    assert connections[0].closed is True

    status = client.get("/api/v1/engine/status").json()
    assert status == {"status": "stopped", "running": False, "terminal": True}
    logs = client.get("/api/v1/engine/logs").json()["logs"]
    assert any("Starting engine" in line for line in logs)
    assert logs[-1].endswith("Engine stopped")


def test_second_start_conflicts(client, connections):
    assert client.post("/api/v1/engine/start", json=START_BODY).status_code == 202
    response = client.post("/api/v1/engine/start", json=START_BODY)
    assert response.status_code == 409
    assert len(connections) == 1


def test_restart_after_stop(client, connections):
    client.post("/api/v1/engine/start", json=START_BODY)
    client.post("/api/v1/engine/stop")

    response = client.post("/api/v1/engine/start", json={**START_BODY, "symbol": "R_100"})

    assert response.status_code == 202
    assert len(connections) == 2
    assert client.get("/api/v1/engine/stats").json()["symbol"] == "R_100"


@pytest.mark.parametrize(
    "overrides",
    [
        {"token": ""},
        {"ema_fast": 30, "ema_slow": 10},
        {"stake": 0},
        {"duration_unit": "d"},
        {"symbol": "../R_10"},
    ],
)
def test_invalid_config_is_rejected(client, connections, overrides):
    response = client.post("/api/v1/engine/start", json={**START_BODY, **overrides})
    assert response.status_code == 422
    assert connections == []


def test_journal_endpoint(client, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "trade_log_dir", str(tmp_path))
    for contract_id, timestamp in ((1, 100), (2, 300)):
        trade_log.append_trade(
            "R_10",
            TradeRecord(
                contract_id=contract_id,
                signal="PUT",
                confidence=55.0,
                stake=1.0,
                martingale_level=0,
                result="win",
                profit=0.95,
                timestamp=timestamp,
            ),
        )

    all_trades = client.get("/api/v1/journal/R_10").json()
    recent = client.get("/api/v1/journal/R_10", params={"since": 200}).json()

    assert [t["contract_id"] for t in all_trades] == [1, 2]
    assert [t["contract_id"] for t in recent] == [2]
    assert client.get("/api/v1/journal/R_75").json() == []


@pytest.mark.parametrize("symbol", ["R.10", "bad-symbol", "R_10.bak"])
def test_journal_rejects_non_symbol_paths(client, tmp_path, monkeypatch, symbol):
    monkeypatch.setattr(settings, "trade_log_dir", str(tmp_path / "trades"))
    (tmp_path / "index.jsonl").write_text("{}\n", encoding="utf-8")

    response = client.get(f"/api/v1/journal/{symbol}")

    assert response.status_code == 422
