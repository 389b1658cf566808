"""
Structured logging configuration for the MTProto Proxy Manager.
Provides consistent logging across all components.
"""

import logging
import sys
from typing import Optional
import structlog

def setup_structured_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Setup structured logging configuration."""
    if log_level is None or log_format is None:
        from config.app_config import get_config
        config = get_config()
        log_level = log_level or config.logging.log_level
        log_format = log_format or config.logging.log_format

    # Configure standard logging; stderr keeps operator output on stdout clean
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
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

def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)

class LoggerMixin:
    """Mixin to add logging capabilities to classes."""

    @property
    def logger(self) -> structlog.BoundLogger:
        """Get logger for this class."""
        return get_logger(self.__class__.__name__)

def log_step(func):
    """Decorator to log the start, end and failure of a provisioning step."""
    import functools
    import time

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = get_logger(func.__module__)
        start_time = time.time()
        logger.debug("Step started", step=func.__name__)
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.error(
                "Step failed",
                step=func.__name__,
                error=str(e),
                error_type=type(e).__name__,
                execution_time_ms=(time.time() - start_time) * 1000,
            )
            raise
        logger.debug(
            "Step completed",
            step=func.__name__,
            execution_time_ms=(time.time() - start_time) * 1000,
        )
        return result
    return wrapper
