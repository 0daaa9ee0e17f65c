"""Bounded in-memory history of enriched bars.

Every appended bar gets an absolute, monotonically increasing sequence
number. Positions remember the sequence of their entry bar rather than a
list index, so references stay correct after the oldest bars are evicted.
"""

from collections import deque

from deltasync.models import Bar


class BarHistory:
    """FIFO bar store with a fixed capacity.

    Args:
        capacity: Maximum number of bars retained. Appending beyond it
            evicts the oldest bar.
    """

    def __init__(self, capacity: int = 100) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._bars: deque[Bar] = deque(maxlen=capacity)
        self._next_sequence = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def next_sequence(self) -> int:
        """Sequence number the next appended bar will receive."""
        return self._next_sequence

    @property
    def total_appended(self) -> int:
        """Bars appended over the lifetime of the history, evicted ones included."""
        return self._next_sequence

    def append(self, bar: Bar) -> int:
        """Append a bar, assigning and returning its sequence number."""
        bar.sequence = self._next_sequence
        self._next_sequence += 1
        self._bars.append(bar)
        return bar.sequence

    def last_n(self, n: int) -> list[Bar]:
        """Return up to ``n`` most recent bars, oldest first."""
        if n <= 0:
            return []
        return list(self._bars)[-n:]

    def get(self, sequence: int) -> Bar | None:
        """Return the bar with the given sequence, or None if evicted or unseen."""
        if not self._bars:
            return None
        first = self._bars[0].sequence
        assert first is not None
        offset = sequence - first
        if offset < 0 or offset >= len(self._bars):
            return None
        return self._bars[offset]

    @property
    def latest(self) -> Bar | None:
        return self._bars[-1] if self._bars else None

    @property
    def previous(self) -> Bar | None:
        return self._bars[-2] if len(self._bars) >= 2 else None

    def __len__(self) -> int:
        return len(self._bars)
