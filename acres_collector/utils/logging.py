"""
Structured logging setup.

All modules log through structlog key-value events:

    logger = get_logger(__name__)
    logger.info("Stored crop profile", acres=40.1, crops=3)
"""
import logging
import sys
from typing import Optional

import structlog

_configured = False


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """
    Configure structlog and route stdlib logging through the same handler.

    Args:
        level: Minimum log level name (DEBUG, INFO, ...)
        json_logs: Render JSON lines instead of the console renderer
    """
    global _configured

    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    # aiohttp access logs are noisy at INFO
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(max(log_level, logging.WARNING))

    _configured = True


def get_logger(name: Optional[str] = None):
    """Get a structlog logger bound to a module name."""
    return structlog.get_logger(name)


def is_configured() -> bool:
    return _configured
