"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StreamSettings(BaseSettings):
    """Market data stream settings (Binance USD-M futures via ccxt.pro)."""

    model_config = SettingsConfigDict(env_prefix="STREAM_")

    symbol: str = "BTC/USDT:USDT"
    interval: str = "1m"  # "<n>m" or "<n>h"; other units fall back to 1m
    reconnect_delay: float = 5.0  # seconds, fixed backoff

    @field_validator("interval")
    @classmethod
    def interval_count_positive(cls, value: str) -> str:
        try:
            count = int(value[:-1])
        except ValueError:
            return value
        if count < 1:
            raise ValueError(f"Interval count must be at least 1, got {value!r}")
        return value


class StrategySettings(BaseSettings):
    """Delta sync strategy parameters.

    All thresholds are static for the lifetime of the process.
    """

    model_config = SettingsConfigDict(env_prefix="STRATEGY_")

    stop_loss_buffer: Decimal = Decimal("30")  # price units beyond VAL/VAH
    price_levels: int = 100  # histogram levels per bar
    value_area_pct: Decimal = Decimal("0.70")
    history_capacity: int = 100  # bars kept in memory
    max_pending_intervals: int = 10  # trade buckets awaiting a bar close


class LedgerSettings(BaseSettings):
    """Trade log persistence configuration."""

    model_config = SettingsConfigDict(env_prefix="LEDGER_")

    backend: Literal["csv", "sqlite"] = "csv"
    csv_path: str = "trading_log.csv"
    db_path: str = "data/trades.db"
    timezone: str = "Asia/Kolkata"  # zone used to format entry/exit times
    max_retries: int = 3
    retry_base_delay: float = 0.5
    recent_records: int = 500  # closed trades kept in memory for the API


class DashboardSettings(BaseSettings):
    """Status API server configuration."""

    model_config = SettingsConfigDict(env_prefix="DASHBOARD_")

    host: str = "0.0.0.0"
    port: int = 8080
    enabled: bool = True


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: str = "console"  # "console" or "json"
    status_interval: int = 300  # seconds between status reports
    stream: StreamSettings = StreamSettings()
    strategy: StrategySettings = StrategySettings()
    ledger: LedgerSettings = LedgerSettings()
    dashboard: DashboardSettings = DashboardSettings()
