"""
O8 Logging Setup

structlog on top of the standard library logger factory. Modules obtain
their logger with ``structlog.get_logger(__name__)``; the application entry
point calls ``configure_logging`` once.

Output goes to stderr so that command output on stdout stays parseable.
"""

import logging
import sys

import structlog


def configure_logging(level: str = "WARNING", json: bool = False) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Minimum level name, e.g. "INFO" or "DEBUG"
        json: Render events as JSON lines instead of console text
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
        force=True,
    )

    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
