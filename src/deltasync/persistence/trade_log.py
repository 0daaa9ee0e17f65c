"""Append-only trade logs for closed positions.

Two backends share the TradeLog interface:

- CsvTradeLog: one CSV line per closed position, header written only when
  the file is created. Entry/exit times are rendered in a configured local
  zone; prices and points with two decimals.
- SqliteTradeLog: aiosqlite table with Decimal values stored as TEXT.

Both raise TradeLogError on write failure; retrying is the LedgerWriter's job.
"""

import asyncio
import csv
import os
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from zoneinfo import ZoneInfo

import aiosqlite

from deltasync.exceptions import TradeLogError
from deltasync.logging import get_logger
from deltasync.models import PositionSide, TradeOutcome, TradeRecord

logger = get_logger(__name__)

CSV_HEADER = [
    "S.No",
    "Position (Buy or Sell)",
    "Entry Price",
    "Exit Price",
    "Position Entry Time (IST)",
    "Position Exit Time (IST)",
    "Outcome: Profit or Loss or Breakeven",
    "No of Points Captured or Lost",
    "Cumulative Result Net Profit or Loss",
]

_TWO_PLACES = Decimal("0.01")


def format_amount(value: Decimal) -> str:
    """Render a price or point value with exactly two decimals."""
    return str(value.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def format_local_time(instant: datetime, tz: ZoneInfo) -> str:
    """Render an instant as DD/MM/YYYY, HH:MM:SS in the given zone."""
    return instant.astimezone(tz).strftime("%d/%m/%Y, %H:%M:%S")


def record_to_row(record: TradeRecord, tz: ZoneInfo) -> list[str]:
    """Convert a TradeRecord into CSV fields, in header order."""
    return [
        str(record.sequence_number),
        record.side.label,
        format_amount(record.entry_price),
        format_amount(record.exit_price),
        format_local_time(record.entry_time, tz),
        format_local_time(record.exit_time, tz),
        record.outcome.value,
        format_amount(record.points),
        format_amount(record.cumulative_profit),
    ]


class TradeLog(ABC):
    """Abstract append-only destination for trade records."""

    @abstractmethod
    async def open(self) -> None:
        """Prepare the destination (create file/table if missing)."""
        ...

    @abstractmethod
    async def append(self, record: TradeRecord) -> None:
        """Persist one record. Raises TradeLogError on failure."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release resources."""
        ...


class CsvTradeLog(TradeLog):
    """CSV trade log. File I/O runs in a worker thread."""

    def __init__(self, path: str = "trading_log.csv", timezone: str = "Asia/Kolkata") -> None:
        self._path = path
        self._tz = ZoneInfo(timezone)

    @property
    def path(self) -> str:
        return self._path

    async def open(self) -> None:
        try:
            created = await asyncio.to_thread(self._ensure_header)
        except OSError as e:
            raise TradeLogError(f"Cannot create trade log {self._path}: {e}") from e
        logger.info("csv_trade_log_opened", path=self._path, created=created)

    async def append(self, record: TradeRecord) -> None:
        row = record_to_row(record, self._tz)
        try:
            await asyncio.to_thread(self._write_row, row)
        except OSError as e:
            raise TradeLogError(
                f"Cannot append trade #{record.sequence_number} to {self._path}: {e}"
            ) from e

    async def close(self) -> None:
        return None

    def _ensure_header(self) -> bool:
        if os.path.exists(self._path):
            return False
        directory = os.path.dirname(self._path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self._path, "w", newline="", encoding="utf-8") as f:
            csv.writer(f).writerow(CSV_HEADER)
        return True

    def _write_row(self, row: list[str]) -> None:
        # The header is written on first append too, if open() was skipped
        self._ensure_header()
        with open(self._path, "a", newline="", encoding="utf-8") as f:
            csv.writer(f).writerow(row)


_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS trade_records (
    sequence_number INTEGER PRIMARY KEY,
    side TEXT NOT NULL,
    entry_price TEXT NOT NULL,
    exit_price TEXT NOT NULL,
    entry_time TEXT NOT NULL,
    exit_time TEXT NOT NULL,
    outcome TEXT NOT NULL,
    points TEXT NOT NULL,
    cumulative_profit TEXT NOT NULL,
    reason TEXT NOT NULL DEFAULT ''
);
"""


class SqliteTradeLog(TradeLog):
    """SQLite trade log using aiosqlite in WAL mode.

    Usage:
        log = SqliteTradeLog("data/trades.db")
        await log.open()
        try:
            await log.append(record)
        finally:
            await log.close()
    """

    def __init__(self, db_path: str = "data/trades.db") -> None:
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    @property
    def db(self) -> aiosqlite.Connection:
        """Access the raw aiosqlite connection.

        Raises RuntimeError if not connected.
        """
        if self._connection is None:
            raise RuntimeError("Trade log not open. Call open() first.")
        return self._connection

    async def open(self) -> None:
        db_dir = os.path.dirname(self._db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)
        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")
        await self._connection.executescript(_CREATE_TABLE_SQL)
        await self._connection.commit()
        logger.info("sqlite_trade_log_opened", db_path=self._db_path)

    async def append(self, record: TradeRecord) -> None:
        try:
            await self.db.execute(
                "INSERT INTO trade_records "
                "(sequence_number, side, entry_price, exit_price, entry_time, "
                "exit_time, outcome, points, cumulative_profit, reason) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.sequence_number,
                    record.side.value,
                    str(record.entry_price),
                    str(record.exit_price),
                    record.entry_time.isoformat(),
                    record.exit_time.isoformat(),
                    record.outcome.value,
                    str(record.points),
                    str(record.cumulative_profit),
                    record.reason,
                ),
            )
            await self.db.commit()
        except aiosqlite.Error as e:
            raise TradeLogError(
                f"Cannot insert trade #{record.sequence_number}: {e}"
            ) from e

    async def fetch_all(self) -> list[TradeRecord]:
        """Return every stored record ordered by sequence number."""
        cursor = await self.db.execute(
            "SELECT sequence_number, side, entry_price, exit_price, entry_time, "
            "exit_time, outcome, points, cumulative_profit, reason "
            "FROM trade_records ORDER BY sequence_number"
        )
        rows = await cursor.fetchall()
        return [
            TradeRecord(
                sequence_number=row[0],
                side=PositionSide(row[1]),
                entry_price=Decimal(row[2]),
                exit_price=Decimal(row[3]),
                entry_time=datetime.fromisoformat(row[4]),
                exit_time=datetime.fromisoformat(row[5]),
                outcome=TradeOutcome(row[6]),
                points=Decimal(row[7]),
                cumulative_profit=Decimal(row[8]),
                reason=row[9],
            )
            for row in rows
        ]

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("sqlite_trade_log_closed", db_path=self._db_path)
