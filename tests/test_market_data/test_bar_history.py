"""Tests for the bounded bar history with absolute sequence numbers."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from deltasync.market_data.bar_history import BarHistory
from deltasync.models import Bar

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _bar(index: int) -> Bar:
    price = Decimal(100 + index)
    return Bar(
        open_time=T0 + timedelta(minutes=index),
        close_time=T0 + timedelta(minutes=index, seconds=59),
        open=price,
        high=price,
        low=price,
        close=price,
        volume=Decimal("1"),
    )


class TestBarHistory:
    def test_append_assigns_increasing_sequences(self) -> None:
        history = BarHistory(capacity=5)
        assert history.append(_bar(0)) == 0
        assert history.append(_bar(1)) == 1
        assert history.latest.sequence == 1
        assert history.previous.sequence == 0

    def test_eviction_after_capacity_plus_one(self) -> None:
        history = BarHistory(capacity=3)
        bars = [_bar(i) for i in range(4)]
        for bar in bars:
            history.append(bar)

        assert len(history) == 3
        assert history.get(0) is None
        assert bars[0] not in history.last_n(10)
        assert len(history.last_n(10)) == 3
        assert history.total_appended == 4

    def test_last_n_oldest_first(self) -> None:
        history = BarHistory(capacity=10)
        for i in range(5):
            history.append(_bar(i))
        assert [b.close for b in history.last_n(2)] == [Decimal("103"), Decimal("104")]
        assert len(history.last_n(50)) == 5
        assert history.last_n(0) == []

    def test_get_by_sequence_survives_eviction(self) -> None:
        history = BarHistory(capacity=3)
        for i in range(7):
            history.append(_bar(i))
        assert history.get(5).close == Decimal("105")
        assert history.get(3) is None
        assert history.get(7) is None

    def test_empty_history(self) -> None:
        history = BarHistory()
        assert history.capacity == 100
        assert history.latest is None
        assert history.previous is None
        assert history.get(0) is None

    def test_rejects_non_positive_capacity(self) -> None:
        with pytest.raises(ValueError):
            BarHistory(capacity=0)
