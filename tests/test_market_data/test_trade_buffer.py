"""Tests for interval parsing and the interval-keyed trade buffer."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from deltasync.market_data.trade_buffer import TradeBuffer, interval_to_ms, to_epoch_ms
from deltasync.models import Trade

MINUTE_MS = 60_000


def _trade(ts: datetime, price: str = "100", is_buy: bool = True) -> Trade:
    return Trade(price=Decimal(price), quantity=Decimal("1"), is_buy=is_buy, timestamp=ts)


class TestIntervalToMs:
    @pytest.mark.parametrize(
        ("interval", "expected"),
        [
            ("1m", MINUTE_MS),
            ("15m", 15 * MINUTE_MS),
            ("1h", 60 * MINUTE_MS),
            ("4h", 240 * MINUTE_MS),
        ],
    )
    def test_supported_units(self, interval: str, expected: int) -> None:
        assert interval_to_ms(interval) == expected

    @pytest.mark.parametrize("interval", ["1d", "1w", "abc", "m", "", "0m", "-5m", "0h"])
    def test_unknown_falls_back_to_one_minute(self, interval: str) -> None:
        assert interval_to_ms(interval) == MINUTE_MS


class TestTradeBuffer:
    """record/drain/prune semantics."""

    def test_interval_start_floors_to_bar_boundary(self) -> None:
        buffer = TradeBuffer(MINUTE_MS)
        ts = datetime(2024, 1, 1, 0, 0, 59, 999000, tzinfo=timezone.utc)
        boundary = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert buffer.interval_start_for(ts) == to_epoch_ms(boundary)
        assert buffer.interval_start_for(boundary) == to_epoch_ms(boundary)

    def test_hourly_interval_start(self) -> None:
        buffer = TradeBuffer(60 * MINUTE_MS)
        ts = datetime(2024, 1, 1, 5, 42, 10, tzinfo=timezone.utc)
        assert buffer.interval_start_for(ts) == to_epoch_ms(
            datetime(2024, 1, 1, 5, tzinfo=timezone.utc)
        )

    def test_drain_returns_trades_in_arrival_order_once(self) -> None:
        buffer = TradeBuffer(MINUTE_MS)
        start = to_epoch_ms(datetime(2024, 1, 1, tzinfo=timezone.utc))
        first = _trade(datetime(2024, 1, 1, 0, 0, 30, tzinfo=timezone.utc), "101")
        second = _trade(datetime(2024, 1, 1, 0, 0, 10, tzinfo=timezone.utc), "99")
        buffer.record(first, start)
        buffer.record(second, start)

        assert buffer.drain(start) == [first, second]
        assert buffer.drain(start) == []
        assert len(buffer) == 0

    def test_drain_unknown_interval_is_empty(self) -> None:
        assert TradeBuffer(MINUTE_MS).drain(123) == []

    def test_record_trade_uses_trade_timestamp(self) -> None:
        buffer = TradeBuffer(MINUTE_MS)
        trade = _trade(datetime(2024, 1, 1, 0, 3, 5, tzinfo=timezone.utc))
        start = buffer.record_trade(trade)
        assert start == to_epoch_ms(datetime(2024, 1, 1, 0, 3, tzinfo=timezone.utc))
        assert buffer.pending_intervals() == [start]

    def test_prune_before_drops_only_older_buckets(self) -> None:
        buffer = TradeBuffer(MINUTE_MS)
        for minute in range(4):
            buffer.record_trade(_trade(datetime(2024, 1, 1, 0, minute, 1, tzinfo=timezone.utc)))
        cutoff = to_epoch_ms(datetime(2024, 1, 1, 0, 2, tzinfo=timezone.utc))

        dropped = buffer.prune_before(cutoff)

        assert dropped == 2
        assert buffer.pending_intervals() == [cutoff, cutoff + MINUTE_MS]

    def test_bucket_count_is_bounded(self) -> None:
        buffer = TradeBuffer(MINUTE_MS, max_pending_intervals=2)
        for minute in range(3):
            buffer.record_trade(_trade(datetime(2024, 1, 1, 0, minute, 1, tzinfo=timezone.utc)))

        base = to_epoch_ms(datetime(2024, 1, 1, tzinfo=timezone.utc))
        assert buffer.pending_intervals() == [base + MINUTE_MS, base + 2 * MINUTE_MS]
        assert buffer.pending_trade_count() == 2

    def test_zero_count_interval_still_buckets(self) -> None:
        buffer = TradeBuffer(interval_to_ms("0m"))
        start = buffer.record_trade(_trade(datetime(2024, 1, 1, 0, 0, 30, tzinfo=timezone.utc)))
        assert start == to_epoch_ms(datetime(2024, 1, 1, tzinfo=timezone.utc))

    def test_clear(self) -> None:
        buffer = TradeBuffer(MINUTE_MS)
        buffer.record_trade(_trade(datetime(2024, 1, 1, tzinfo=timezone.utc)))
        buffer.clear()
        assert buffer.pending_trade_count() == 0
