"""Main trader orchestrator -- owns the bot state and the event loop.

Trade ticks and bar closes arrive from independent stream loops but are
applied strictly in queue order by a single consumer, because bar-close
processing reads the trade buckets that trade events write.

Per bar close:
  1. DRAIN: take the buffered trades for the bar's interval
  2. PROFILE: compute delta, VPOC, VAH and VAL
  3. APPEND: push the enriched bar into the bounded history
  4. EVALUATE: exit check, entry check, position management
  5. PERSIST: closed trades go to the LedgerWriter (non-blocking)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import Decimal

from deltasync.config import AppSettings
from deltasync.exceptions import PositionAlreadyOpenError
from deltasync.logging import get_logger
from deltasync.market_data.bar_history import BarHistory
from deltasync.market_data.pump import StreamPump
from deltasync.market_data.trade_buffer import TradeBuffer, interval_to_ms, to_epoch_ms
from deltasync.models import (
    Bar,
    BarCloseEvent,
    MarketEvent,
    PositionSide,
    StatusSnapshot,
    Trade,
    TradeEvent,
)
from deltasync.persistence.writer import LedgerWriter
from deltasync.position.ledger import PositionLedger
from deltasync.profile.volume_profile import enrich_bar
from deltasync.signals.evaluator import SignalDecision, SignalEvaluator

logger = get_logger(__name__)


@dataclass
class BotContext:
    """All mutable trader state, owned by the orchestrator."""

    trade_buffer: TradeBuffer
    history: BarHistory
    ledger: PositionLedger

    @classmethod
    def from_settings(
        cls, settings: AppSettings, ledger: PositionLedger
    ) -> BotContext:
        return cls(
            trade_buffer=TradeBuffer(
                interval_to_ms(settings.stream.interval),
                settings.strategy.max_pending_intervals,
            ),
            history=BarHistory(settings.strategy.history_capacity),
            ledger=ledger,
        )


class Orchestrator:
    """Single-consumer event loop driving the delta sync strategy.

    Args:
        settings: Application-wide settings.
        context: Trader state (buffer, history, ledger).
        evaluator: Signal rules.
        ledger_writer: Background trade-log writer.
        pump: Stream pump feeding the queue. None when events are
            pushed by the caller (tests, replays).
        queue: Event queue shared with the pump.
    """

    def __init__(
        self,
        settings: AppSettings,
        context: BotContext,
        evaluator: SignalEvaluator,
        ledger_writer: LedgerWriter | None = None,
        pump: StreamPump | None = None,
        queue: asyncio.Queue[MarketEvent] | None = None,
    ) -> None:
        self._settings = settings
        self._context = context
        self._evaluator = evaluator
        self._ledger_writer = ledger_writer
        self._pump = pump
        self._queue: asyncio.Queue[MarketEvent] = queue or asyncio.Queue()
        self._running = False
        self._consumer_task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._status_task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._stopped = asyncio.Event()
        self._fault: BaseException | None = None

    @property
    def context(self) -> BotContext:
        return self._context

    @property
    def queue(self) -> asyncio.Queue[MarketEvent]:
        return self._queue

    async def start(self) -> None:
        """Start the writer, pump and status reporter, then consume events until stop()."""
        logger.info(
            "orchestrator_starting",
            stop_loss_buffer=str(self._settings.strategy.stop_loss_buffer),
            price_levels=self._settings.strategy.price_levels,
            history_capacity=self._settings.strategy.history_capacity,
        )
        self._stopped.clear()
        try:
            if self._ledger_writer is not None:
                await self._ledger_writer.start()
            if self._pump is not None:
                await self._pump.start()

            self._running = True
            self._status_task = asyncio.create_task(self._status_loop())
            self._consumer_task = asyncio.create_task(self._consume_loop())
            await self._stopped.wait()
        finally:
            await self._shutdown()
            logger.info("orchestrator_stopped")
        if self._fault is not None:
            raise self._fault

    async def stop(self) -> None:
        """Signal the orchestrator to stop gracefully."""
        logger.info("orchestrator_stopping_gracefully")
        self._running = False
        self._stopped.set()

    async def _shutdown(self) -> None:
        self._running = False
        if self._pump is not None:
            try:
                await self._pump.stop()
            except Exception as e:
                logger.warning("stream_pump_stop_failed", error=str(e))
        for task in (self._consumer_task, self._status_task):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._consumer_task = None
        self._status_task = None

        # Trades of an unclosed interval are never profiled
        discarded = self._context.trade_buffer.pending_trade_count()
        self._context.trade_buffer.clear()
        if discarded:
            logger.info("buffered_trades_discarded", trades=discarded)

        if self._ledger_writer is not None:
            await self._ledger_writer.stop()

    async def _consume_loop(self) -> None:
        while self._running:
            event = await self._queue.get()
            try:
                self.process_event(event)
            except PositionAlreadyOpenError as e:
                logger.critical("position_invariant_violated", exc_info=True)
                self._fault = e
                self._running = False
                self._stopped.set()
                return
            except Exception as e:
                logger.error("event_processing_error", error=str(e), exc_info=True)
            finally:
                self._queue.task_done()

    async def _status_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._settings.status_interval)
            self.log_status()

    def process_event(self, event: MarketEvent) -> list[SignalDecision]:
        """Apply one inbound event to the trader state."""
        if isinstance(event, TradeEvent):
            self.handle_trade(event.trade)
            return []
        if isinstance(event, BarCloseEvent):
            return self.handle_bar_close(event.bar)
        raise TypeError(f"Unknown market event: {event!r}")

    def handle_trade(self, trade: Trade) -> None:
        """Stage a trade under the interval of its timestamp."""
        self._context.trade_buffer.record_trade(trade)

    def handle_bar_close(self, bar: Bar) -> list[SignalDecision]:
        """Profile a final bar, append it to history and run the signal rules."""
        buffer = self._context.trade_buffer
        interval_start = to_epoch_ms(bar.open_time)
        bar.trades = buffer.drain(interval_start)
        buffer.prune_before(interval_start)

        enrich_bar(
            bar,
            self._settings.strategy.price_levels,
            self._settings.strategy.value_area_pct,
        )
        self._context.history.append(bar)

        assert bar.profile is not None
        logger.info(
            "bar_closed",
            sequence=bar.sequence,
            open_time=bar.open_time.isoformat(),
            open=str(bar.open),
            high=str(bar.high),
            low=str(bar.low),
            close=str(bar.close),
            volume=str(bar.volume),
            trades=len(bar.trades),
            vpoc=str(bar.profile.vpoc),
            vah=str(bar.profile.vah),
            val=str(bar.profile.val),
            delta=str(bar.profile.delta),
        )

        decisions = self._evaluator.evaluate(self._context.history, self._context.ledger)
        # Trades are only needed for profiling
        bar.trades = []
        return decisions

    def get_status(self) -> StatusSnapshot:
        """Return a read-only snapshot of the trader state."""
        ledger = self._context.ledger
        position = ledger.position
        latest = self._context.history.latest
        current_price = latest.close if latest is not None else None

        unrealized: Decimal | None = None
        if position is not None and current_price is not None:
            if position.side is PositionSide.LONG:
                unrealized = current_price - position.entry_price
            else:
                unrealized = position.entry_price - current_price

        return StatusSnapshot(
            symbol=self._settings.stream.symbol,
            interval=self._settings.stream.interval,
            stop_loss_buffer=self._settings.strategy.stop_loss_buffer,
            position=position.side if position is not None else None,
            entry_price=position.entry_price if position is not None else None,
            stop_loss=position.stop_loss if position is not None else None,
            current_price=current_price,
            unrealized_points=unrealized,
            bars_processed=self._context.history.total_appended,
            trades_closed=ledger.trade_count,
            cumulative_profit=ledger.cumulative_profit,
        )

    def log_status(self) -> None:
        status = self.get_status()
        logger.info(
            "status_report",
            position=status.position.value if status.position else None,
            entry_price=str(status.entry_price) if status.entry_price is not None else None,
            stop_loss=str(status.stop_loss) if status.stop_loss is not None else None,
            current_price=str(status.current_price) if status.current_price is not None else None,
            unrealized_points=(
                str(status.unrealized_points) if status.unrealized_points is not None else None
            ),
            bars_processed=status.bars_processed,
            trades_closed=status.trades_closed,
            cumulative_profit=str(status.cumulative_profit),
        )
