"""Forwards stream output onto the single event queue, reconnecting on faults.

One watch loop per stream (trades, klines). The loops only enqueue; all
state changes happen in the orchestrator's consumer. Any transport fault is
logged and followed by a fixed reconnect delay -- ccxt.pro re-establishes
the websocket on the next watch call.
"""

import asyncio
from collections.abc import Awaitable, Callable

from deltasync.exceptions import MalformedEventError
from deltasync.logging import get_logger
from deltasync.market_data.stream import MarketStream
from deltasync.models import BarCloseEvent, MarketEvent, TradeEvent

logger = get_logger(__name__)


class StreamPump:
    """Runs the trade and kline watch loops for a MarketStream.

    Args:
        stream: The market data source.
        queue: Event queue consumed by the orchestrator.
        reconnect_delay: Seconds to wait after a transport fault.
    """

    def __init__(
        self,
        stream: MarketStream,
        queue: asyncio.Queue[MarketEvent],
        reconnect_delay: float = 5.0,
    ) -> None:
        self._stream = stream
        self._queue = queue
        self._reconnect_delay = reconnect_delay
        self._running = False
        self._tasks: list[asyncio.Task] = []  # type: ignore[type-arg]
        self._reconnects = 0

    @property
    def reconnects(self) -> int:
        return self._reconnects

    async def start(self) -> None:
        """Connect the stream and launch both watch loops."""
        if self._running:
            logger.warning("stream_pump_already_running")
            return
        await self._stream.connect()
        self._running = True
        self._tasks = [
            asyncio.create_task(self._watch_loop("trades", self._pump_trades)),
            asyncio.create_task(self._watch_loop("klines", self._pump_bars)),
        ]
        logger.info("stream_pump_started", reconnect_delay=self._reconnect_delay)

    async def stop(self) -> None:
        """Cancel the watch loops and close the stream."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        await self._stream.close()
        logger.info("stream_pump_stopped", reconnects=self._reconnects)

    async def _pump_trades(self) -> None:
        for trade in await self._stream.watch_trades():
            self._queue.put_nowait(TradeEvent(trade))

    async def _pump_bars(self) -> None:
        for bar in await self._stream.watch_bars():
            self._queue.put_nowait(BarCloseEvent(bar))

    async def _watch_loop(self, name: str, pump_once: Callable[[], Awaitable[None]]) -> None:
        while self._running:
            try:
                await pump_once()
            except asyncio.CancelledError:
                raise
            except MalformedEventError as e:
                logger.warning("malformed_message_skipped", stream=name, error=str(e))
            except Exception as e:
                self._reconnects += 1
                logger.warning(
                    "stream_disconnected",
                    stream=name,
                    error=str(e),
                    retry_in=self._reconnect_delay,
                )
                await asyncio.sleep(self._reconnect_delay)
