"""
Structured logging setup for the mapping pipeline
"""
import logging
from typing import Optional

import structlog

from packages.common.config import Settings, get_settings


def configure_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure structlog processors and level filtering.

    Call once at process start (scripts, workers). Library code only calls
    structlog.get_logger() and never configures logging itself.

    Args:
        settings: Settings to read log_level/log_json from (defaults to get_settings())
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level, logging.INFO)

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
