from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from models.server import PurgeConfig

class Settings(BaseSettings):
    # Discord
    DISCORD_TOKEN: str
    DISCORD_CHANNEL_NAME: str = "satisfactory"

    # Satisfactory server (Lightweight Query API)
    SERVER_IP: str = "127.0.0.1"
    SERVER_PORT: int = 7777
    SERVER_QUERY_TIMEOUT_MS: int = 5000
    SERVER_MAX_PLAYERS: int = 4
    POLL_INTERVAL_MINUTES: float = 1.0

    # Server log
    LOG_LOCATION: str = "/config/gamefiles/FactoryGame/Saved/Logs/FactoryGame.log"
    LOG_USE_POLLING: bool = False
    LOG_POLL_INTERVAL_SECONDS: float = 1.0
    LOG_OPEN_MAX_ATTEMPTS: int = 0  # 0 = retry forever

    # Messaging
    IGNORE_POLL_STATE_WHEN_MESSAGING: bool = False
    DISABLE_UNREACHABLE_FOUND_MESSAGES: bool = False
    DISPLAY_TIMEZONE: str = "UTC"

    # Purge
    PURGE_CHANNEL_NAME: str = ""
    PURGE_AFTER_DAYS: int = -1
    PURGE_AFTER_LINES: int = -1
    PURGE_HOUR: int = Field(default=2, ge=0, le=23)
    PURGE_ON_STARTUP: bool = False

    # App
    DB_PATH: str = "./db.json"
    LOG_LEVEL: str = "INFO"
    HTTP_HOST: str = "0.0.0.0"
    HTTP_PORT: int = 0  # 0 = status API disabled

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def poll_interval_seconds(self) -> float:
        return self.POLL_INTERVAL_MINUTES * 60

    def purge_config(self) -> PurgeConfig:
        return PurgeConfig(
            channel_name=self.PURGE_CHANNEL_NAME or self.DISCORD_CHANNEL_NAME,
            after_days=self.PURGE_AFTER_DAYS,
            after_lines=self.PURGE_AFTER_LINES,
            hour=self.PURGE_HOUR,
            on_startup=self.PURGE_ON_STARTUP,
        )

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
