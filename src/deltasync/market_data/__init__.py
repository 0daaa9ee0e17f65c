"""Market data layer -- trade staging, bar history and the futures stream."""

from deltasync.market_data.bar_history import BarHistory
from deltasync.market_data.pump import StreamPump
from deltasync.market_data.stream import BarCloseDetector, BinanceFuturesStream, MarketStream
from deltasync.market_data.trade_buffer import TradeBuffer, interval_to_ms

__all__ = [
    "BarCloseDetector",
    "BarHistory",
    "BinanceFuturesStream",
    "MarketStream",
    "StreamPump",
    "TradeBuffer",
    "interval_to_ms",
]
