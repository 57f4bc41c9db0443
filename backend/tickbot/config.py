from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Tickbot Trading Engine"
    deriv_ws_endpoints: list[str] = [
        "wss://ws.binaryws.com/websockets/v3",
        "wss://ws.derivws.com/websockets/v3",
    ]
    deriv_app_id: int = 1089
    cors_origins: list[str] = ["http://localhost:4000", "http://localhost:5173"]

    # Fixed delay between reconnect attempts (no backoff)
    reconnect_delay_seconds: float = 2.0
    # Period of the analyses-per-minute counter reset
    analysis_window_seconds: float = 60.0
    # Rolling log shown to the UI
    log_capacity: int = 50
    trade_log_dir: str = "logs/trades"

    model_config = SettingsConfigDict(env_prefix="TICKBOT_", env_file=".env", env_file_encoding="utf-8")


settings = Settings()
