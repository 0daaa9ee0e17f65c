"""Structured logging for the trader: structlog rendered through stdlib logging.

Every event carries the traded symbol and interval once bind_stream_context()
has run, because the processors merge structlog.contextvars first.
"""

import logging

import structlog

# Third-party loggers that are far too chatty below WARNING
_QUIET_LOGGERS = ("ccxt", "aiosqlite", "asyncio")


def _build_renderer(log_format: str) -> structlog.types.Processor:
    if log_format.lower() == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def setup_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Configure structlog and the root stdlib logger.

    Args:
        log_level: Root level name ("DEBUG", "INFO", ...). Unknown names
            fall back to INFO.
        log_format: "json" for machine-readable lines, anything else for
            the human-readable console renderer.
    """
    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            timestamper,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _build_renderer(log_format),
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_stream_context(symbol: str, interval: str) -> None:
    """Attach the traded instrument to every subsequent log event."""
    structlog.contextvars.bind_contextvars(symbol=symbol, interval=interval)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)
