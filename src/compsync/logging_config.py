"""
Logging setup shared by the sync scripts.

Library modules only call ``logging.getLogger(__name__)``; handlers and
formatting are configured once by the entry point from settings. The
"json" format renders those stdlib records through structlog.
"""

import logging

import structlog

from compsync.config import settings

CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def build_json_formatter() -> structlog.stdlib.ProcessorFormatter:
    """Formatter that renders each stdlib record as one JSON object."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
    )


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure the root logger from settings (or explicit overrides)."""
    level = (level or settings.log_level).upper()
    log_format = (log_format or settings.log_format).lower()

    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(build_json_formatter())
    else:
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))

    logging.basicConfig(level=level, handlers=[handler], force=True)
