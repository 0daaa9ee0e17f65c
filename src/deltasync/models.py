"""Shared data models for the delta sync trader.

CRITICAL: All prices, quantities and profits use Decimal. Never use float.
Instants are timezone-aware UTC datetimes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum


class PositionSide(str, Enum):
    """Position direction."""

    LONG = "long"
    SHORT = "short"

    @property
    def label(self) -> str:
        """Trade log label: Buy for long, Sell for short."""
        return "Buy" if self is PositionSide.LONG else "Sell"


class TradeOutcome(str, Enum):
    """Result classification of a closed position."""

    PROFIT = "Profit"
    LOSS = "Loss"
    BREAKEVEN = "Breakeven"

    @classmethod
    def from_points(cls, points: Decimal) -> TradeOutcome:
        if points > 0:
            return cls.PROFIT
        if points < 0:
            return cls.LOSS
        return cls.BREAKEVEN


@dataclass
class Trade:
    """A single aggressor-side trade execution."""

    price: Decimal
    quantity: Decimal
    is_buy: bool
    timestamp: datetime


@dataclass
class VolumeProfile:
    """Volume profile metrics for one closed bar."""

    delta: Decimal  # buy volume - sell volume
    vpoc: Decimal  # price level with the most traded volume
    vah: Decimal  # value area high
    val: Decimal  # value area low


@dataclass
class Bar:
    """A closed OHLCV bar, enriched with its volume profile.

    ``trades`` holds the executions observed inside [open_time, close_time).
    ``sequence`` is assigned by BarHistory on append and never reused.
    """

    open_time: datetime
    close_time: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    trades: list[Trade] = field(default_factory=list)
    profile: VolumeProfile | None = None
    sequence: int | None = None

    @property
    def delta(self) -> Decimal | None:
        return self.profile.delta if self.profile is not None else None

    @property
    def vpoc(self) -> Decimal | None:
        return self.profile.vpoc if self.profile is not None else None

    @property
    def vah(self) -> Decimal | None:
        return self.profile.vah if self.profile is not None else None

    @property
    def val(self) -> Decimal | None:
        return self.profile.val if self.profile is not None else None


@dataclass
class Position:
    """The single open position. Only ``stop_loss`` changes after entry."""

    side: PositionSide
    entry_price: Decimal
    stop_loss: Decimal
    entry_bar_sequence: int
    entry_time: datetime


@dataclass
class TradeRecord:
    """Finalized outcome of a closed position, appended to the trade log."""

    sequence_number: int
    side: PositionSide
    entry_price: Decimal
    exit_price: Decimal
    entry_time: datetime
    exit_time: datetime
    outcome: TradeOutcome
    points: Decimal
    cumulative_profit: Decimal
    reason: str = ""


@dataclass
class StatusSnapshot:
    """Read-only view of the trader state for status reports and the API."""

    symbol: str
    interval: str
    stop_loss_buffer: Decimal
    position: PositionSide | None
    entry_price: Decimal | None
    stop_loss: Decimal | None
    current_price: Decimal | None
    unrealized_points: Decimal | None
    bars_processed: int
    trades_closed: int
    cumulative_profit: Decimal


@dataclass
class TradeEvent:
    """Inbound trade tick, queued for the event consumer."""

    trade: Trade


@dataclass
class BarCloseEvent:
    """Inbound final bar, queued for the event consumer."""

    bar: Bar


MarketEvent = TradeEvent | BarCloseEvent
