"""Logging configuration for the orchestration engine.

stdlib logging owns the sinks: stdout, a rotating ``vendorflow.log`` and a
rotating ``vendorflow_error.log`` under ``LOG_DIR``. structlog renders each
event with its key/value context: JSON in production and staging, a colored
console renderer everywhere else.

Per-run context such as ``order_id`` is bound with ``structlog.contextvars``
and follows the asyncio task that bound it, so concurrent orchestration runs
never leak context into each other's lines.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path

import structlog

LOG_FILE = "vendorflow.log"
ERROR_LOG_FILE = "vendorflow_error.log"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

LEVELS_BY_ENVIRONMENT = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

# Vendor calls are already logged by the resilience layer
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "uvicorn.access")


def _environment(environment: str | None = None) -> str:
    return (environment or os.getenv("ENV") or os.getenv("ENVIRONMENT") or "development").lower()


def get_log_level(environment: str | None = None) -> str:
    """Log level for an environment; ``LOG_LEVEL`` always wins."""
    return os.getenv("LOG_LEVEL", LEVELS_BY_ENVIRONMENT.get(_environment(environment), "INFO")).upper()


def _rotating_handler(path: Path, level: str | int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def setup_stdlib_logging(level: str, log_dir: Path | None = None) -> None:
    log_dir = log_dir or Path(os.getenv("LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [
        console_handler,
        _rotating_handler(log_dir / LOG_FILE, level),
        _rotating_handler(log_dir / ERROR_LOG_FILE, logging.ERROR),
    ]

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_structlog(environment: str) -> None:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.LINENO,
                structlog.processors.CallsiteParameter.FUNC_NAME,
            ]
        ),
    ]

    if environment in ("production", "staging"):
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=True, max_frames=2),
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(environment: str | None = None, log_dir: Path | None = None) -> str:
    """Configure stdlib sinks and structlog rendering. Returns the level in effect."""
    environment = _environment(environment)
    level = get_log_level(environment)
    setup_stdlib_logging(level, log_dir)
    setup_structlog(environment)
    return level
