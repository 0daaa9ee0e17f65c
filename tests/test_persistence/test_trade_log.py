"""Tests for the CSV and SQLite trade logs.

Uses pytest's tmp_path for isolated files; no shared state between tests.
"""

import csv
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from deltasync.exceptions import TradeLogError
from deltasync.models import PositionSide, TradeOutcome, TradeRecord
from deltasync.persistence.trade_log import (
    CSV_HEADER,
    CsvTradeLog,
    SqliteTradeLog,
    format_amount,
    format_local_time,
    record_to_row,
)

KOLKATA = ZoneInfo("Asia/Kolkata")


def _record(sequence: int = 1, points: str = "11.755", cumulative: str = "11.755") -> TradeRecord:
    return TradeRecord(
        sequence_number=sequence,
        side=PositionSide.LONG,
        entry_price=Decimal("100.5"),
        exit_price=Decimal("112.255"),
        entry_time=datetime(2024, 1, 1, 0, 1, 59, tzinfo=timezone.utc),
        exit_time=datetime(2024, 1, 1, 20, 5, 59, tzinfo=timezone.utc),
        outcome=TradeOutcome.PROFIT,
        points=Decimal(points),
        cumulative_profit=Decimal(cumulative),
        reason="price closed below previous VAL",
    )


def _read_rows(path: Path) -> list[list[str]]:
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


class TestFormatting:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("11.755", "11.76"),
            ("2.345", "2.35"),
            ("-3", "-3.00"),
            ("42000.1", "42000.10"),
            ("0", "0.00"),
        ],
    )
    def test_format_amount_half_up(self, value: str, expected: str) -> None:
        assert format_amount(Decimal(value)) == expected

    def test_local_time_is_kolkata(self) -> None:
        instant = datetime(2024, 1, 1, 0, 1, 59, tzinfo=timezone.utc)
        assert format_local_time(instant, KOLKATA) == "01/01/2024, 05:31:59"

    def test_local_time_crosses_midnight(self) -> None:
        instant = datetime(2024, 1, 1, 20, 5, 59, tzinfo=timezone.utc)
        assert format_local_time(instant, KOLKATA) == "02/01/2024, 01:35:59"

    def test_record_to_row_order(self) -> None:
        row = record_to_row(_record(), KOLKATA)
        assert row == [
            "1",
            "Buy",
            "100.50",
            "112.26",
            "01/01/2024, 05:31:59",
            "02/01/2024, 01:35:59",
            "Profit",
            "11.76",
            "11.76",
        ]

    def test_short_label(self) -> None:
        record = _record()
        record.side = PositionSide.SHORT
        assert record_to_row(record, KOLKATA)[1] == "Sell"


class TestCsvTradeLog:
    def test_header_columns_match_existing_logs(self) -> None:
        assert ",".join(CSV_HEADER) == (
            "S.No,Position (Buy or Sell),Entry Price,Exit Price,"
            "Position Entry Time (IST),Position Exit Time (IST),"
            "Outcome: Profit or Loss or Breakeven,No of Points Captured or Lost,"
            "Cumulative Result Net Profit or Loss"
        )

    @pytest.mark.asyncio
    async def test_header_written_once(self, tmp_path: Path) -> None:
        path = tmp_path / "logs" / "trading_log.csv"
        log = CsvTradeLog(str(path))
        await log.open()
        await log.append(_record(1))
        await log.close()

        reopened = CsvTradeLog(str(path))
        await reopened.open()
        await reopened.append(_record(2))

        rows = _read_rows(path)
        assert rows[0] == CSV_HEADER
        assert [row[0] for row in rows[1:]] == ["1", "2"]
        assert rows.count(CSV_HEADER) == 1

    @pytest.mark.asyncio
    async def test_append_without_open_writes_header(self, tmp_path: Path) -> None:
        path = tmp_path / "trading_log.csv"
        await CsvTradeLog(str(path)).append(_record())
        rows = _read_rows(path)
        assert rows[0] == CSV_HEADER
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_unwritable_path_raises_trade_log_error(self, tmp_path: Path) -> None:
        log = CsvTradeLog(str(tmp_path))
        with pytest.raises(TradeLogError):
            await log.append(_record())


class TestSqliteTradeLog:
    @pytest.mark.asyncio
    async def test_round_trip_preserves_decimals(self, tmp_path: Path) -> None:
        log = SqliteTradeLog(str(tmp_path / "data" / "trades.db"))
        await log.open()
        try:
            await log.append(_record(1))
            await log.append(_record(2, points="-3", cumulative="8.755"))
            records = await log.fetch_all()
        finally:
            await log.close()

        assert [r.sequence_number for r in records] == [1, 2]
        assert records[0] == _record(1)
        assert records[1].points == Decimal("-3")
        assert records[1].cumulative_profit == Decimal("8.755")

    @pytest.mark.asyncio
    async def test_duplicate_sequence_raises_trade_log_error(self, tmp_path: Path) -> None:
        log = SqliteTradeLog(str(tmp_path / "trades.db"))
        await log.open()
        try:
            await log.append(_record(1))
            with pytest.raises(TradeLogError):
                await log.append(_record(1))
        finally:
            await log.close()

    def test_db_before_open_raises(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError):
            SqliteTradeLog(str(tmp_path / "trades.db")).db
