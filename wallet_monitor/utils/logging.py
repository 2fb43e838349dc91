"""Structured logging setup for the monitor process."""

import sys
import logging
import logging.handlers
from pathlib import Path
from typing import Optional
import structlog
from structlog.stdlib import LoggerFactory

from wallet_monitor.models.config import MonitorConfig

SERVICE_NAME = "wallet-monitor"

# Third-party loggers that flood INFO/DEBUG on every poll
NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio")


def _add_service(logger, method_name, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _file_handler(config: MonitorConfig, level: int) -> Optional[logging.Handler]:
    """Size-rotated file handler, or None when no log file is configured."""
    if not config.log_file:
        return None

    log_path = Path(config.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=config.log_max_size_mb * 1024 * 1024,
        backupCount=config.log_backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def setup_logging(config: MonitorConfig) -> None:
    """
    Route structlog through stdlib logging.

    Console output is human readable unless ``log_format`` is "json"; the
    optional log file always receives the same rendered lines. Values bound
    with ``bind_tick`` are merged into every event logged during that tick.
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.basicConfig(level=level, format="%(message)s", stream=sys.stdout)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    handler = _file_handler(config, level)
    if handler is not None:
        logging.getLogger().addHandler(handler)

    if config.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty() and handler is None)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            _add_service,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_tick(tick: int) -> None:
    """Tag subsequent log events in this context with the poll tick number."""
    structlog.contextvars.bind_contextvars(tick=tick)
