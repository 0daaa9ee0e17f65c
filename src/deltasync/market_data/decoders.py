"""Decoders from venue/ccxt payloads into domain Trades and Bars.

CRITICAL: numeric fields go through Decimal(str(x)) -- ccxt hands out floats
and the raw venue payloads decimal strings; both must end up exact.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from deltasync.exceptions import MalformedEventError
from deltasync.models import Bar, Trade


def _decimal(value: Any, field_name: str) -> Decimal:
    if value is None:
        raise MalformedEventError(f"Missing {field_name}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise MalformedEventError(f"Invalid {field_name}: {value!r}") from e


def _instant(epoch_ms: Any, field_name: str) -> datetime:
    if epoch_ms is None:
        raise MalformedEventError(f"Missing {field_name}")
    try:
        return datetime.fromtimestamp(int(epoch_ms) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError) as e:
        raise MalformedEventError(f"Invalid {field_name}: {epoch_ms!r}") from e


def decode_trade(raw: dict) -> Trade:
    """Decode a ccxt unified trade.

    The aggressor side comes from the raw Binance field ``m`` (buyer is
    maker, i.e. the taker sold) when present, else from ccxt's ``side``.

    Raises:
        MalformedEventError: If a required field is missing or invalid.
    """
    info = raw.get("info") or {}
    if "m" in info:
        is_buy = not bool(info["m"])
    elif raw.get("side") in ("buy", "sell"):
        is_buy = raw["side"] == "buy"
    else:
        raise MalformedEventError(f"Cannot determine trade side: {raw!r}")

    return Trade(
        price=_decimal(raw.get("price"), "price"),
        quantity=_decimal(raw.get("amount"), "amount"),
        is_buy=is_buy,
        timestamp=_instant(raw.get("timestamp"), "timestamp"),
    )


def decode_ohlcv_row(row: list, interval_ms: int) -> Bar:
    """Decode a ccxt OHLCV row ``[timestamp_ms, open, high, low, close, volume]``.

    The close time follows the venue convention: the last millisecond of
    the interval.
    """
    if len(row) < 6:
        raise MalformedEventError(f"Short OHLCV row: {row!r}")
    open_ms = row[0]
    if not isinstance(open_ms, int):
        raise MalformedEventError(f"Invalid OHLCV timestamp: {open_ms!r}")
    return Bar(
        open_time=_instant(open_ms, "timestamp"),
        close_time=_instant(open_ms + interval_ms - 1, "close_time"),
        open=_decimal(row[1], "open"),
        high=_decimal(row[2], "high"),
        low=_decimal(row[3], "low"),
        close=_decimal(row[4], "close"),
        volume=_decimal(row[5], "volume"),
    )
