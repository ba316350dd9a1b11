from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── SRS media server ─────────────────────────────────────
    SRS_API_URL: str = "http://srs:1985/api/v1/streams/"
    SRS_TIMEOUT_SEC: float = 5.0

    # ── SRS callbacks ────────────────────────────────────────
    # on_play / on_stop only log unless this is set; when set they trigger
    # a poll of the stream so viewer counts follow callbacks.
    CALLBACK_VIEWER_REFRESH: bool = False

    # ── Status socket ────────────────────────────────────────
    WS_HOST: str = "0.0.0.0"
    WS_PORT: int = 3002
    WS_PATH: str = "/ws"
    WS_PING_INTERVAL_SEC: float = 30.0
    WS_SEND_QUEUE_SIZE: int = 100

    # ── Stream monitor ───────────────────────────────────────
    MONITOR_ENABLED: bool = False
    MONITOR_ACTIVE_INTERVAL_SEC: float = 1.0
    MONITOR_IDLE_INTERVAL_SEC: float = 30.0

    # ── Redis status mirror (disabled when empty) ────────────
    REDIS_URL: str = ""
    REDIS_STATUS_KEY: str = "restream:stream_status"

    # ── API ──────────────────────────────────────────────────
    API_PREFIX: str = "/api"
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    CORS_ORIGINS: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"

    # ── Watcher (status socket client) ───────────────────────
    WATCH_URL: str = "ws://localhost:3002/ws"
    WATCH_STREAM_KEY: str = ""
    WATCH_RECONNECT_DELAY_SEC: float = 3.0
    WATCH_MAX_RECONNECT_ATTEMPTS: int = 5

    def cors_origins(self) -> list[str]:
        """Comma-separated CORS_ORIGINS as a list, blanks dropped."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
