"""Non-blocking writer that moves trade records into the trade log.

The event consumer must never wait on persistence. ``submit`` only enqueues;
a background task appends records one at a time, retrying failed writes
with exponential backoff. A record that still fails after the last retry is
logged and dropped -- the in-memory ledger stays authoritative.
"""

import asyncio

from deltasync.exceptions import TradeLogError
from deltasync.logging import get_logger
from deltasync.models import TradeRecord
from deltasync.persistence.trade_log import TradeLog

logger = get_logger(__name__)


class LedgerWriter:
    """Background buffer-and-retry writer for a TradeLog.

    Args:
        trade_log: Destination for records.
        max_retries: Retries after the first failed attempt.
        retry_base_delay: Delay before the first retry, doubled each time.
    """

    def __init__(
        self,
        trade_log: TradeLog,
        max_retries: int = 3,
        retry_base_delay: float = 0.5,
    ) -> None:
        self._trade_log = trade_log
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._queue: asyncio.Queue[TradeRecord] = asyncio.Queue()
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._written = 0
        self._failed = 0

    @property
    def written(self) -> int:
        return self._written

    @property
    def failed(self) -> int:
        return self._failed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        """Open the trade log and start the background drain task."""
        if self._task is not None:
            logger.warning("ledger_writer_already_running")
            return
        await self._trade_log.open()
        self._task = asyncio.create_task(self._drain_loop())
        logger.info("ledger_writer_started")

    async def stop(self) -> None:
        """Flush pending records, stop the drain task and close the log."""
        if self._task is not None:
            await self._queue.join()
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self._trade_log.close()
        logger.info("ledger_writer_stopped", written=self._written, failed=self._failed)

    def submit(self, record: TradeRecord) -> None:
        """Queue a record for persistence. Never blocks."""
        self._queue.put_nowait(record)

    async def _drain_loop(self) -> None:
        while True:
            record = await self._queue.get()
            try:
                await self.write(record)
            except Exception:
                self._failed += 1
                logger.error(
                    "trade_log_unexpected_error",
                    sequence=record.sequence_number,
                    exc_info=True,
                )
            finally:
                self._queue.task_done()

    async def write(self, record: TradeRecord) -> bool:
        """Append one record, retrying on TradeLogError.

        Returns:
            True if the record was persisted, False if it was dropped.
        """
        attempts = self._max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                await self._trade_log.append(record)
            except TradeLogError as e:
                if attempt == attempts:
                    self._failed += 1
                    logger.warning(
                        "trade_log_write_failed",
                        sequence=record.sequence_number,
                        attempts=attempt,
                        error=str(e),
                    )
                    return False
                delay = self._retry_base_delay * (2 ** (attempt - 1))
                logger.warning(
                    "trade_log_write_retry",
                    sequence=record.sequence_number,
                    attempt=attempt,
                    delay=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)
            else:
                self._written += 1
                logger.info(
                    "trade_logged",
                    sequence=record.sequence_number,
                    side=record.side.label,
                    outcome=record.outcome.value,
                    points=str(record.points),
                    cumulative_profit=str(record.cumulative_profit),
                )
                return True
        return False
