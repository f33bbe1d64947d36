"""structlog setup shared by the API and the FIT import script."""

import logging
import sys
from typing import Any

import structlog

# Standard library loggers that are too chatty below WARNING.
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "multipart")


def resolve_level(debug: bool, level: str) -> int:
    if debug:
        return logging.DEBUG
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(debug: bool = False, level: str = "INFO") -> None:
    """Console output in debug, one JSON object per line otherwise.

    Context bound with ``structlog.contextvars`` (the import script binds the
    profile id) is merged into every event.
    """
    log_level = resolve_level(debug, level)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if debug:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(levelname)s %(name)s %(message)s", stream=sys.stdout, level=log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)
