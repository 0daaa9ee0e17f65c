"""Tests for environment-driven settings."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from deltasync.config import LedgerSettings, StrategySettings, StreamSettings


class TestSettings:
    def test_defaults(self) -> None:
        strategy = StrategySettings()
        assert strategy.stop_loss_buffer == Decimal("30")
        assert strategy.price_levels == 100
        assert strategy.value_area_pct == Decimal("0.70")
        assert strategy.history_capacity == 100
        assert StreamSettings().symbol == "BTC/USDT:USDT"
        assert LedgerSettings().timezone == "Asia/Kolkata"

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STRATEGY_STOP_LOSS_BUFFER", "12.5")
        monkeypatch.setenv("STREAM_INTERVAL", "15m")
        monkeypatch.setenv("LEDGER_BACKEND", "sqlite")
        assert StrategySettings().stop_loss_buffer == Decimal("12.5")
        assert StreamSettings().interval == "15m"
        assert LedgerSettings().backend == "sqlite"

    def test_unknown_backend_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LEDGER_BACKEND", "postgres")
        with pytest.raises(ValidationError):
            LedgerSettings()

    @pytest.mark.parametrize("interval", ["0m", "-1m", "0h"])
    def test_non_positive_interval_rejected(
        self, monkeypatch: pytest.MonkeyPatch, interval: str
    ) -> None:
        monkeypatch.setenv("STREAM_INTERVAL", interval)
        with pytest.raises(ValidationError):
            StreamSettings()

    def test_unknown_unit_accepted(self) -> None:
        assert StreamSettings(interval="1d").interval == "1d"
