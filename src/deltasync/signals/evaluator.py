"""Delta sync signal evaluator -- the position state machine.

Runs once per closed bar, in a fixed order:

1. EXIT: close a long when price closes below the previous bar's VAL, or a
   short when it closes above the previous bar's VAH.
2. ENTRY (flat only): a bar with positive delta that closes green enters
   long at the previous bar's VPOC; negative delta and red enters short.
   The stop sits ``stop_loss_buffer`` beyond the previous VAL/VAH.
3. MANAGEMENT (in a position only): once the bar after the entry bar has
   closed beyond the reference bar's high (long) or low (short), the stop
   moves to break even; then the stop loss is checked against the close.

The "in sync" continuation check is advisory and only logged.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from deltasync.logging import get_logger
from deltasync.market_data.bar_history import BarHistory
from deltasync.models import Bar, Position, PositionSide
from deltasync.position.ledger import PositionLedger

logger = get_logger(__name__)

REASON_BELOW_PREVIOUS_VAL = "price closed below previous VAL"
REASON_ABOVE_PREVIOUS_VAH = "price closed above previous VAH"
REASON_STOP_LOSS = "stop loss hit"


class DecisionKind(str, Enum):
    """What the evaluator did on a bar."""

    ENTER = "enter"
    EXIT = "exit"
    BREAKEVEN = "breakeven"
    IN_SYNC = "in_sync"


@dataclass
class SignalDecision:
    """One action or observation produced while evaluating a bar."""

    kind: DecisionKind
    side: PositionSide
    price: Decimal
    reason: str = ""


def is_buy_signal(current: Bar) -> bool:
    """Positive delta and a green bar."""
    return current.delta is not None and current.delta > 0 and current.close > current.open


def is_sell_signal(current: Bar) -> bool:
    """Negative delta and a red bar."""
    return current.delta is not None and current.delta < 0 and current.close < current.open


def is_long_in_sync(current: Bar, previous: Bar) -> bool:
    return current.close > previous.high and current.delta is not None and current.delta > 0


def is_short_in_sync(current: Bar, previous: Bar) -> bool:
    return current.close < previous.low and current.delta is not None and current.delta < 0


class SignalEvaluator:
    """Entry, exit and position management rules over the bar history.

    Args:
        stop_loss_buffer: Price units placed beyond the previous bar's
            VAL (long) or VAH (short) for the initial stop.
    """

    def __init__(self, stop_loss_buffer: Decimal) -> None:
        self._stop_loss_buffer = stop_loss_buffer

    def evaluate(self, history: BarHistory, ledger: PositionLedger) -> list[SignalDecision]:
        """Run exit, entry and management checks for the latest bar."""
        decisions: list[SignalDecision] = []

        exit_decision = self.check_exit(history, ledger)
        if exit_decision is not None:
            decisions.append(exit_decision)

        if ledger.is_flat:
            entry_decision = self.check_entry(history, ledger)
            if entry_decision is not None:
                decisions.append(entry_decision)

        if not ledger.is_flat:
            decisions.extend(self.manage_position(history, ledger))

        return decisions

    def check_exit(
        self, history: BarHistory, ledger: PositionLedger
    ) -> SignalDecision | None:
        """Close the position when price closes through the previous value area."""
        position = ledger.position
        if position is None or len(history) < 2:
            return None

        current, previous = history.latest, history.previous
        assert current is not None and previous is not None
        if previous.profile is None:
            return None

        if position.side is PositionSide.LONG and current.close < previous.val:
            reason = REASON_BELOW_PREVIOUS_VAL
        elif position.side is PositionSide.SHORT and current.close > previous.vah:
            reason = REASON_ABOVE_PREVIOUS_VAH
        else:
            return None

        ledger.close(current.close, current.close_time, reason)
        return SignalDecision(DecisionKind.EXIT, position.side, current.close, reason)

    def check_entry(
        self, history: BarHistory, ledger: PositionLedger
    ) -> SignalDecision | None:
        """Open a position on a delta/price agreement in the latest bar."""
        if not ledger.is_flat or len(history) < 2:
            return None

        current, previous = history.latest, history.previous
        assert current is not None and previous is not None
        if current.profile is None or previous.profile is None:
            return None
        assert current.sequence is not None

        if is_buy_signal(current):
            side = PositionSide.LONG
            stop_loss = previous.profile.val - self._stop_loss_buffer
        elif is_sell_signal(current):
            side = PositionSide.SHORT
            stop_loss = previous.profile.vah + self._stop_loss_buffer
        else:
            return None

        entry_price = previous.profile.vpoc
        ledger.open(
            side=side,
            entry_price=entry_price,
            stop_loss=stop_loss,
            entry_bar_sequence=current.sequence,
            entry_time=current.close_time,
        )
        return SignalDecision(
            DecisionKind.ENTER,
            side,
            entry_price,
            f"delta {current.profile.delta} in sync with bar direction",
        )

    def manage_position(
        self, history: BarHistory, ledger: PositionLedger
    ) -> list[SignalDecision]:
        """Break-even promotion and stop-loss exit for the open position."""
        position = ledger.position
        if position is None or len(history) < 3:
            return []

        second = history.get(position.entry_bar_sequence + 1)
        if second is None:
            # Either the bar after entry has not closed yet or it was evicted.
            return []

        current, previous = history.latest, history.previous
        assert current is not None and previous is not None

        if position.side is PositionSide.LONG:
            return self._manage_long(position, ledger, current, previous, second)
        return self._manage_short(position, ledger, current, previous, second)

    def _manage_long(
        self,
        position: Position,
        ledger: PositionLedger,
        current: Bar,
        previous: Bar,
        second: Bar,
    ) -> list[SignalDecision]:
        decisions: list[SignalDecision] = []

        if is_long_in_sync(current, previous):
            logger.info("long_position_in_sync", close=str(current.close))
            decisions.append(
                SignalDecision(DecisionKind.IN_SYNC, position.side, current.close)
            )

        if second.close > previous.high and position.stop_loss < position.entry_price:
            ledger.move_stop(position.entry_price)
            logger.info("stop_moved_to_breakeven", side="long", stop_loss=str(position.entry_price))
            decisions.append(
                SignalDecision(DecisionKind.BREAKEVEN, position.side, position.entry_price)
            )

        if current.close <= position.stop_loss:
            ledger.close(current.close, current.close_time, REASON_STOP_LOSS)
            decisions.append(
                SignalDecision(DecisionKind.EXIT, position.side, current.close, REASON_STOP_LOSS)
            )
        return decisions

    def _manage_short(
        self,
        position: Position,
        ledger: PositionLedger,
        current: Bar,
        previous: Bar,
        second: Bar,
    ) -> list[SignalDecision]:
        decisions: list[SignalDecision] = []

        if is_short_in_sync(current, previous):
            logger.info("short_position_in_sync", close=str(current.close))
            decisions.append(
                SignalDecision(DecisionKind.IN_SYNC, position.side, current.close)
            )

        if second.close < previous.low and position.stop_loss > position.entry_price:
            ledger.move_stop(position.entry_price)
            logger.info("stop_moved_to_breakeven", side="short", stop_loss=str(position.entry_price))
            decisions.append(
                SignalDecision(DecisionKind.BREAKEVEN, position.side, position.entry_price)
            )

        if current.close >= position.stop_loss:
            ledger.close(current.close, current.close_time, REASON_STOP_LOSS)
            decisions.append(
                SignalDecision(DecisionKind.EXIT, position.side, current.close, REASON_STOP_LOSS)
            )
        return decisions
