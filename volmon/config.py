from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MonitorConfig(BaseModel):
    """Per-cycle monitoring parameters handed to ``fetch_and_detect``."""

    threshold: int = Field(default=10, ge=1, le=100)  # percent
    symbols: List[str] = Field(default_factory=lambda: ["AAPL", "TSLA", "NVDA"])
    max_days_to_expiry: int = Field(default=7, ge=0)

    @field_validator("symbols")
    @classmethod
    def _normalize_symbols(cls, value: List[str]) -> List[str]:
        symbols: List[str] = []
        for raw in value:
            symbol = raw.strip().upper()
            if symbol and symbol not in symbols:
                symbols.append(symbol)
        return symbols


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="", case_sensitive=False)

    DATABASE_URL: str
    YAHOO_BASE_URL: str = "https://query1.finance.yahoo.com"
    TELEGRAM_ENABLED: bool = Field(default=False)
    TELEGRAM_BOT_TOKEN: str | None = None
    TELEGRAM_CHAT_ID: str | None = None
    SCAN_INTERVAL_SECONDS: int = 300
    UNIVERSE: str = "AAPL,TSLA,NVDA"
    TIMEZONE: str = "America/New_York"
    STORE_NAMESPACE: str = "default"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    VOL_ALERT_THRESHOLD: int = 10  # Percent change vs previous generation, 1-100.
    MAX_DAYS_TO_EXPIRY: int = 7
    MAX_EXPIRATIONS_PER_SYMBOL: int = 5
    PROVIDER_TIMEOUT_SECONDS: float = 10.0
    PROVIDER_CALL_DELAY_SECONDS: float = 0.5

    def universe_list(self) -> List[str]:
        return [s.strip().upper() for s in self.UNIVERSE.split(',') if s.strip()]

    def monitor_config(self) -> MonitorConfig:
        return MonitorConfig(
            threshold=self.VOL_ALERT_THRESHOLD,
            symbols=self.universe_list(),
            max_days_to_expiry=self.MAX_DAYS_TO_EXPIRY,
        )

    def non_secret_dict(self) -> dict:
        data = self.model_dump()
        data.pop('TELEGRAM_BOT_TOKEN', None)
        data.pop('DATABASE_URL', None)
        return data

    @field_validator("VOL_ALERT_THRESHOLD")
    @classmethod
    def _validate_threshold(cls, value: int) -> int:
        if value < 1 or value > 100:
            raise ValueError("VOL_ALERT_THRESHOLD must be a percent between 1 and 100.")
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
