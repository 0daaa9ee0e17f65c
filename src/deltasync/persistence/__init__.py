"""Trade record persistence -- CSV/SQLite trade logs and the async writer."""

from deltasync.persistence.trade_log import CsvTradeLog, SqliteTradeLog, TradeLog
from deltasync.persistence.writer import LedgerWriter

__all__ = ["CsvTradeLog", "LedgerWriter", "SqliteTradeLog", "TradeLog"]
