"""Market data stream interface and the Binance USD-M futures implementation.

The trader depends only on MarketStream; venue details stay in
BinanceFuturesStream, which wraps ccxt.pro websocket watchers.

ccxt OHLCV streams carry no "bar is final" flag, so BarCloseDetector
treats a bar as closed once a row with a later open time arrives.
"""

from abc import ABC, abstractmethod

import ccxt.pro as ccxt_pro

from deltasync.config import StreamSettings
from deltasync.exceptions import MalformedEventError
from deltasync.logging import get_logger
from deltasync.market_data.decoders import decode_ohlcv_row, decode_trade
from deltasync.market_data.trade_buffer import interval_to_ms
from deltasync.models import Bar, Trade

logger = get_logger(__name__)


class MarketStream(ABC):
    """Abstract source of trade ticks and final bars for one instrument."""

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the connection (load markets)."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release websocket resources."""
        ...

    @abstractmethod
    async def watch_trades(self) -> list[Trade]:
        """Wait for and return the next batch of trades."""
        ...

    @abstractmethod
    async def watch_bars(self) -> list[Bar]:
        """Wait for the next kline update and return bars that became final."""
        ...


class BarCloseDetector:
    """Turns a stream of in-progress OHLCV rows into final bars.

    Each bar is emitted exactly once, when the first row with a later open
    time is seen. Rows older than the bar in progress are ignored.
    """

    def __init__(self, interval_ms: int) -> None:
        self._interval_ms = interval_ms
        self._current: list | None = None

    def update(self, rows: list[list]) -> list[Bar]:
        """Feed OHLCV rows; return bars that are now final, oldest first."""
        closed: list[Bar] = []
        for row in sorted(rows, key=lambda r: r[0]):
            if self._current is None or row[0] == self._current[0]:
                self._current = row
            elif row[0] > self._current[0]:
                closed.append(decode_ohlcv_row(self._current, self._interval_ms))
                self._current = row
        return closed


class BinanceFuturesStream(MarketStream):
    """Binance USD-M futures trades and klines via ccxt.pro."""

    def __init__(self, settings: StreamSettings) -> None:
        self._settings = settings
        self._exchange = ccxt_pro.binanceusdm(
            {
                "enableRateLimit": True,
                "newUpdates": True,
            }
        )
        self._detector = BarCloseDetector(interval_to_ms(settings.interval))

    @property
    def exchange(self) -> ccxt_pro.binanceusdm:
        """Access the underlying ccxt exchange instance."""
        return self._exchange

    async def connect(self) -> None:
        logger.info("connecting_to_binance_futures")
        markets = await self._exchange.load_markets()
        if self._settings.symbol not in markets:
            raise ValueError(f"Symbol {self._settings.symbol} not found in loaded markets")
        logger.info("binance_futures_connected", market_count=len(markets))

    async def close(self) -> None:
        """Clean up ccxt resources. CRITICAL: must be called to avoid leaking sockets."""
        logger.info("closing_binance_futures_connection")
        await self._exchange.close()

    async def watch_trades(self) -> list[Trade]:
        raw_trades = await self._exchange.watch_trades(self._settings.symbol)
        trades: list[Trade] = []
        for raw in raw_trades:
            try:
                trades.append(decode_trade(raw))
            except MalformedEventError as e:
                logger.warning("malformed_trade_skipped", error=str(e))
        return trades

    async def watch_bars(self) -> list[Bar]:
        rows = await self._exchange.watch_ohlcv(
            self._settings.symbol, self._settings.interval
        )
        return self._detector.update(rows)
