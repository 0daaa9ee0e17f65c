"""Entry point for the delta sync trader.

Wires all components together, optionally embeds the FastAPI status API,
and starts the orchestrator. When the API is enabled (default), the trader
and the API share a single asyncio event loop via uvicorn's programmatic
API and FastAPI's lifespan context manager.

Handles SIGINT/SIGTERM for graceful shutdown.

Component wiring order (in _build_components):
1. AppSettings (configuration)
2. Logging setup
3. TradeLog (CSV or SQLite) and LedgerWriter
4. PositionLedger (emits closed trades to the writer)
5. BotContext (trade buffer, bar history, ledger)
6. SignalEvaluator
7. MarketStream and StreamPump
8. Orchestrator
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from deltasync.config import AppSettings, LedgerSettings
from deltasync.logging import bind_stream_context, get_logger, setup_logging
from deltasync.market_data.pump import StreamPump
from deltasync.market_data.stream import BinanceFuturesStream
from deltasync.models import MarketEvent
from deltasync.orchestrator import BotContext, Orchestrator
from deltasync.persistence.trade_log import CsvTradeLog, SqliteTradeLog, TradeLog
from deltasync.persistence.writer import LedgerWriter
from deltasync.position.ledger import PositionLedger
from deltasync.signals.evaluator import SignalEvaluator


def _build_trade_log(settings: LedgerSettings) -> TradeLog:
    if settings.backend == "sqlite":
        return SqliteTradeLog(settings.db_path)
    return CsvTradeLog(settings.csv_path, settings.timezone)


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all trader components from settings.

    Note: Does NOT connect the stream -- the pump connects when the
    orchestrator starts.

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    trade_log = _build_trade_log(settings.ledger)
    ledger_writer = LedgerWriter(
        trade_log,
        max_retries=settings.ledger.max_retries,
        retry_base_delay=settings.ledger.retry_base_delay,
    )
    ledger = PositionLedger(
        on_close=ledger_writer.submit,
        max_records=settings.ledger.recent_records,
    )
    context = BotContext.from_settings(settings, ledger)
    evaluator = SignalEvaluator(settings.strategy.stop_loss_buffer)

    queue: asyncio.Queue[MarketEvent] = asyncio.Queue()
    stream = BinanceFuturesStream(settings.stream)
    pump = StreamPump(stream, queue, reconnect_delay=settings.stream.reconnect_delay)

    orchestrator = Orchestrator(
        settings=settings,
        context=context,
        evaluator=evaluator,
        ledger_writer=ledger_writer,
        pump=pump,
        queue=queue,
    )

    return {
        "trade_log": trade_log,
        "ledger_writer": ledger_writer,
        "ledger": ledger,
        "context": context,
        "evaluator": evaluator,
        "stream": stream,
        "pump": pump,
        "orchestrator": orchestrator,
    }


def _setup_signal_handlers(orchestrator: Orchestrator) -> None:
    """Register SIGINT/SIGTERM to stop the orchestrator gracefully.

    Must be called after the asyncio event loop is running.
    """
    logger = get_logger("deltasync.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        asyncio.create_task(orchestrator.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the orchestrator as a background task for the app's lifetime."""
    logger = get_logger("deltasync.main")
    components = app.state.components
    orchestrator: Orchestrator = components["orchestrator"]
    app.state.orchestrator = orchestrator

    bot_task = asyncio.create_task(orchestrator.start())
    logger.info("lifespan_started")

    yield

    await orchestrator.stop()
    try:
        await bot_task
    except asyncio.CancelledError:
        pass
    logger.info("delta_sync_trader_stopped")


async def run() -> None:
    """Run the delta sync trader.

    When the status API is enabled (DASHBOARD_ENABLED=true, the default),
    uvicorn serves it and the lifespan runs the orchestrator. Otherwise the
    orchestrator runs directly with its own signal handlers.
    """
    settings = AppSettings()

    setup_logging(settings.log_level, settings.log_format)
    bind_stream_context(settings.stream.symbol, settings.stream.interval)
    logger = get_logger("deltasync.main")

    components = _build_components(settings)

    if settings.dashboard.enabled:
        from deltasync.dashboard.app import create_status_app

        app = create_status_app(lifespan=lifespan)
        app.state.components = components

        logger.info(
            "starting_with_status_api",
            host=settings.dashboard.host,
            port=settings.dashboard.port,
        )

        config = uvicorn.Config(
            app,
            host=settings.dashboard.host,
            port=settings.dashboard.port,
            log_level="warning",  # Suppress uvicorn access logs
        )
        server = uvicorn.Server(config)
        await server.serve()
    else:
        _setup_signal_handlers(components["orchestrator"])
        logger.info(
            "starting_without_status_api",
            ledger_backend=settings.ledger.backend,
            stop_loss_buffer=str(settings.strategy.stop_loss_buffer),
        )
        await components["orchestrator"].start()
        logger.info("delta_sync_trader_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
