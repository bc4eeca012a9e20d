"""
Logging configuration using structlog for structured, JSON-based logging.

Every module logs through a module-level ``structlog.get_logger(__name__)``
handle; this module sets up the shared processor chain once at startup.
"""

from typing import Any

import structlog


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structured logging with JSON output.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level.upper()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None, **context: Any) -> Any:
    """Get a logger, optionally bound to campaign context.

    Example:
        >>> log = get_logger(__name__, campaign_id="camp-1")
        >>> log.info("issue_started", issue_id="acme/api#42")
    """
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger
