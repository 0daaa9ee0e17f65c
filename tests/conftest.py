"""Shared test fixtures for the delta sync trader."""

from decimal import Decimal

import pytest

from deltasync.config import (
    AppSettings,
    DashboardSettings,
    LedgerSettings,
    StrategySettings,
    StreamSettings,
)


@pytest.fixture
def settings() -> AppSettings:
    """AppSettings with test defaults (1m bars, 10 price levels, API off)."""
    return AppSettings(
        log_level="DEBUG",
        stream=StreamSettings(symbol="BTC/USDT:USDT", interval="1m", reconnect_delay=0.0),
        strategy=StrategySettings(
            stop_loss_buffer=Decimal("30"),
            price_levels=10,
            history_capacity=100,
        ),
        ledger=LedgerSettings(backend="csv", max_retries=1, retry_base_delay=0.0),
        dashboard=DashboardSettings(enabled=False),
    )
