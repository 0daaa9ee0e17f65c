"""Staging buffer for trade ticks, bucketed by the bar interval they belong to.

Trades arrive continuously; the bar they belong to only closes later. Each
trade is filed under the start of its interval (epoch milliseconds) and the
whole bucket is drained when the matching bar-close event arrives.

Buckets that never see a bar close (for example after a gap in the kline
stream) are pruned so the buffer cannot grow without bound.
"""

from datetime import datetime

from deltasync.logging import get_logger
from deltasync.models import Trade

logger = get_logger(__name__)

_MINUTE_MS = 60 * 1000
_HOUR_MS = 60 * _MINUTE_MS


def interval_to_ms(interval: str) -> int:
    """Convert a bar interval string ("1m", "15m", "1h") to milliseconds.

    Only minute and hour units are supported. Anything else, including a
    malformed or non-positive count, falls back to one minute.
    """
    unit = interval[-1:]
    try:
        count = int(interval[:-1])
    except ValueError:
        return _MINUTE_MS
    if count < 1:
        return _MINUTE_MS

    if unit == "m":
        return count * _MINUTE_MS
    if unit == "h":
        return count * _HOUR_MS
    return _MINUTE_MS


def to_epoch_ms(instant: datetime) -> int:
    """Return epoch milliseconds for a timezone-aware datetime."""
    return round(instant.timestamp() * 1000)


class TradeBuffer:
    """Interval-keyed trade buckets with bounded retention.

    Args:
        interval_ms: Bar duration in milliseconds.
        max_pending_intervals: Upper bound on buckets kept at once; the
            oldest buckets are dropped first when exceeded.
    """

    def __init__(self, interval_ms: int, max_pending_intervals: int = 10) -> None:
        self._interval_ms = interval_ms
        self._max_pending = max_pending_intervals
        self._buckets: dict[int, list[Trade]] = {}

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    def interval_start_for(self, timestamp: datetime) -> int:
        """Return the start (epoch ms) of the interval containing ``timestamp``."""
        epoch_ms = to_epoch_ms(timestamp)
        return (epoch_ms // self._interval_ms) * self._interval_ms

    def record(self, trade: Trade, interval_start: int) -> None:
        """Append a trade to the bucket for ``interval_start``."""
        bucket = self._buckets.get(interval_start)
        if bucket is None:
            bucket = []
            self._buckets[interval_start] = bucket
            self._enforce_bound()
        bucket.append(trade)

    def record_trade(self, trade: Trade) -> int:
        """File a trade under the interval of its own timestamp.

        Returns:
            The interval start the trade was filed under.
        """
        interval_start = self.interval_start_for(trade.timestamp)
        self.record(trade, interval_start)
        return interval_start

    def drain(self, interval_start: int) -> list[Trade]:
        """Remove and return all trades for an interval (empty if none)."""
        return self._buckets.pop(interval_start, [])

    def prune_before(self, interval_start: int) -> int:
        """Drop every bucket older than ``interval_start``.

        Bar closes arrive in order, so a bucket older than the bar just
        closed can never be claimed.

        Returns:
            Number of trades discarded.
        """
        stale = [start for start in self._buckets if start < interval_start]
        dropped = 0
        for start in stale:
            dropped += len(self._buckets.pop(start))
        if stale:
            logger.debug(
                "stale_trade_buckets_pruned",
                buckets=len(stale),
                trades=dropped,
            )
        return dropped

    def pending_intervals(self) -> list[int]:
        """Interval starts currently holding trades, ascending."""
        return sorted(self._buckets)

    def pending_trade_count(self) -> int:
        return sum(len(bucket) for bucket in self._buckets.values())

    def clear(self) -> None:
        """Discard every buffered trade (used on shutdown)."""
        self._buckets.clear()

    def _enforce_bound(self) -> None:
        while len(self._buckets) > self._max_pending:
            oldest = min(self._buckets)
            dropped = self._buckets.pop(oldest)
            logger.debug(
                "trade_bucket_evicted",
                interval_start=oldest,
                trades=len(dropped),
            )

    def __len__(self) -> int:
        return len(self._buckets)
