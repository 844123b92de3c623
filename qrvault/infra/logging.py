"""Structured logging configuration using structlog.

Every event carries the service name and environment. Events a printed
card depends on (rejected serials, unlabelled renders, storage fallbacks,
orphaned artifacts) go through the audit logger so they can be filtered
on `audit=true`.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from qrvault import __version__
from qrvault.config import settings

SERVICE_NAME = "qrvault"

# Third-party loggers kept at WARNING
QUIET_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "botocore",
    "boto3",
    "s3transfer",
    "urllib3",
    "PIL",
    "sqlalchemy.engine",
)


def add_service_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", __version__)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def build_processors(json_output: bool) -> list[Processor]:
    """Processor chain for console (dev) or JSON output."""
    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_service_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_output:
        return [*shared, structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [*shared, structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Log level name, defaults to LOG_LEVEL
        json_output: Force JSON on or off; by default JSON is used outside dev
    """
    level_name = (level or settings.log_level).upper()
    if json_output is None:
        json_output = settings.log_json and settings.environment != "dev"
    numeric_level = logging.getLevelName(level_name)

    structlog.configure(
        processors=build_processors(json_output),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """Get a logger, optionally bound to initial context.

    The context is applied lazily so module-level loggers pick up the
    configuration made later by setup_logging().
    """
    return structlog.get_logger(name, **initial_context)


def get_audit_logger(name: str | None = None) -> structlog.BoundLogger:
    """Logger for label and storage decisions that affect printed cards."""
    return get_logger(name, audit=True)
