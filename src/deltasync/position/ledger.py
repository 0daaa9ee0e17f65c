"""Single-position ledger: open position, trade counter and cumulative profit.

At most one position exists at a time. Opening a second one is a
programming error and raises; closing while flat is a no-op.

Closed trades are turned into TradeRecords and handed to ``on_close``
(normally LedgerWriter.submit), which must not block.
"""

from collections import deque
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal

from deltasync.exceptions import PositionAlreadyOpenError
from deltasync.logging import get_logger
from deltasync.models import Position, PositionSide, TradeOutcome, TradeRecord

logger = get_logger(__name__)


class PositionLedger:
    """Tracks the open position and the realized results of closed ones.

    Args:
        on_close: Callback receiving each finalized TradeRecord.
        max_records: How many recent records to keep in memory. Older
            ones live only in the trade log.
    """

    def __init__(
        self,
        on_close: Callable[[TradeRecord], None] | None = None,
        max_records: int = 500,
    ) -> None:
        self._on_close = on_close
        self._position: Position | None = None
        self._trade_count = 0
        self._cumulative_profit = Decimal("0")
        self._records: deque[TradeRecord] = deque(maxlen=max_records)

    @property
    def position(self) -> Position | None:
        return self._position

    @property
    def is_flat(self) -> bool:
        return self._position is None

    @property
    def trade_count(self) -> int:
        return self._trade_count

    @property
    def cumulative_profit(self) -> Decimal:
        return self._cumulative_profit

    @property
    def records(self) -> list[TradeRecord]:
        """Most recent trade records closed by this process, oldest first."""
        return list(self._records)

    def open(
        self,
        side: PositionSide,
        entry_price: Decimal,
        stop_loss: Decimal,
        entry_bar_sequence: int,
        entry_time: datetime,
    ) -> Position:
        """Open a new position.

        Raises:
            PositionAlreadyOpenError: If a position is already open.
        """
        if self._position is not None:
            raise PositionAlreadyOpenError(
                f"Cannot open {side.value} position: "
                f"{self._position.side.value} position already open "
                f"at {self._position.entry_price}"
            )

        self._position = Position(
            side=side,
            entry_price=entry_price,
            stop_loss=stop_loss,
            entry_bar_sequence=entry_bar_sequence,
            entry_time=entry_time,
        )
        risk = (
            entry_price - stop_loss
            if side is PositionSide.LONG
            else stop_loss - entry_price
        )
        logger.info(
            "position_opened",
            side=side.value,
            entry_price=str(entry_price),
            stop_loss=str(stop_loss),
            risk_points=str(risk),
            entry_bar=entry_bar_sequence,
            entry_time=entry_time.isoformat(),
        )
        return self._position

    def move_stop(self, stop_loss: Decimal) -> None:
        """Replace the stop loss of the open position."""
        if self._position is None:
            raise RuntimeError("No open position to move the stop loss on")
        self._position.stop_loss = stop_loss

    def close(
        self, exit_price: Decimal, exit_time: datetime, reason: str
    ) -> TradeRecord | None:
        """Close the open position at ``exit_price``.

        Returns:
            The finalized TradeRecord, or None if no position was open.
        """
        position = self._position
        if position is None:
            return None

        if position.side is PositionSide.LONG:
            points = exit_price - position.entry_price
        else:
            points = position.entry_price - exit_price

        self._trade_count += 1
        self._cumulative_profit += points

        record = TradeRecord(
            sequence_number=self._trade_count,
            side=position.side,
            entry_price=position.entry_price,
            exit_price=exit_price,
            entry_time=position.entry_time,
            exit_time=exit_time,
            outcome=TradeOutcome.from_points(points),
            points=points,
            cumulative_profit=self._cumulative_profit,
            reason=reason,
        )
        self._records.append(record)
        self._position = None

        logger.info(
            "position_closed",
            sequence=record.sequence_number,
            side=record.side.value,
            reason=reason,
            entry_price=str(record.entry_price),
            exit_price=str(exit_price),
            points=str(points),
            outcome=record.outcome.value,
            cumulative_profit=str(self._cumulative_profit),
        )

        if self._on_close is not None:
            self._on_close(record)
        return record
