"""
Structured logging setup using structlog.

The package itself only ever calls ``structlog.get_logger(__name__)`` and logs
keyword events. Host applications that already configure structlog need not
call anything here; standalone users can call :func:`configure_logging` once
at startup to get either JSON or console output at the configured level.
"""

import logging
import sys
import threading
from typing import Optional

import structlog

from input_filter.config.settings import FilterSettings, get_settings

_configured = False
_configure_lock = threading.Lock()


def configure_logging(
    settings: Optional[FilterSettings] = None,
    force: bool = False
) -> None:
    """
    Configure stdlib logging and the structlog processor chain.

    Args:
        settings: Settings supplying LOG_LEVEL and LOG_FORMAT, defaults to
            the process-wide settings
        force: Reconfigure even when logging was configured before
    """
    global _configured

    with _configure_lock:
        if _configured and not force:
            return

        settings = settings or get_settings()
        level = getattr(logging, settings.LOG_LEVEL)

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter('%(message)s'))
        package_logger = logging.getLogger('input_filter')
        package_logger.handlers = [handler]
        package_logger.setLevel(level)
        package_logger.propagate = False

        processors = [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
        ]

        if settings.LOG_FORMAT == 'json':
            processors.append(structlog.processors.JSONRenderer())
        else:
            processors.append(structlog.dev.ConsoleRenderer(colors=False))

        structlog.configure(
            processors=processors,
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        _configured = True


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, defaulting to the package logger."""
    return structlog.get_logger(name or 'input_filter')


__all__ = ['configure_logging', 'get_logger']
