"""Tests for component wiring in main."""

from pathlib import Path

from deltasync.config import AppSettings, LedgerSettings
from deltasync.main import _build_components
from deltasync.persistence.trade_log import CsvTradeLog, SqliteTradeLog


class TestBuildComponents:
    def test_csv_backend_wiring(self, settings: AppSettings, tmp_path: Path) -> None:
        settings.ledger = LedgerSettings(backend="csv", csv_path=str(tmp_path / "log.csv"))
        components = _build_components(settings)

        assert isinstance(components["trade_log"], CsvTradeLog)
        orchestrator = components["orchestrator"]
        assert orchestrator.context.ledger is components["ledger"]
        assert orchestrator.context.history.capacity == 100
        assert orchestrator.context.trade_buffer.interval_ms == 60_000

    def test_recent_records_bound_is_wired(self, settings: AppSettings, tmp_path: Path) -> None:
        settings.ledger = LedgerSettings(csv_path=str(tmp_path / "log.csv"), recent_records=7)
        ledger = _build_components(settings)["ledger"]
        assert ledger._records.maxlen == 7

    def test_sqlite_backend_wiring(self, settings: AppSettings, tmp_path: Path) -> None:
        settings.ledger = LedgerSettings(backend="sqlite", db_path=str(tmp_path / "t.db"))
        components = _build_components(settings)
        assert isinstance(components["trade_log"], SqliteTradeLog)
