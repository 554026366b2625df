"""Structured logging for the market monitor, built on structlog.

Every record passes through the stdlib root logger so that ccxt, uvicorn
and the monitor share one handler and one renderer.
"""

import logging
import os
from decimal import Decimal
from typing import Any

import structlog

# third-party loggers that are chatty below WARNING (ccxt logs every ws frame)
_NOISY_LOGGERS = ("ccxt", "websockets", "uvicorn.access")


def _stringify_decimals(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Render Decimal values as plain strings so prices keep their exact digits."""
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = format(value, "f")
    return event_dict


def setup_logging(log_level: str = "INFO", log_format: str | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Root level name (DEBUG, INFO, ...).
        log_format: "json" or "console". Defaults to the LOG_FORMAT
            environment variable, then "console".
    """
    log_format = (log_format or os.environ.get("LOG_FORMAT", "console")).lower()

    shared_processors: list[structlog.types.Processor] = [
        # symbol and event_name bound by the orchestrator dispatcher
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _stringify_decimals,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer: structlog.types.Processor
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)
