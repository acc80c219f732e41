"""
Structured logging configuration using structlog.

Provides consistent JSON logging for production and pretty console output for development.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from certstore.core.config import Settings, get_settings


def configure_logging(settings: Settings | None = None) -> None:
    """
    Configure structured logging for the application.

    Args:
        settings: Application settings. If None, uses default settings.
    """
    if settings is None:
        settings = get_settings()

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    # Set levels for noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name. If None, uses the caller's module name.

    Returns:
        A bound structlog logger.
    """
    return structlog.get_logger(name)


class CleanupLogger:
    """Logger for lifecycle cleanup runs."""

    def __init__(self, provider: str) -> None:
        self.logger = get_logger("cleanup").bind(provider=provider)

    def log_started(self, dry_run: bool, deadline: float | None) -> None:
        """Log cleanup start."""
        self.logger.info("cleanup_started", dry_run=dry_run, deadline=deadline)

    def log_object_deleted(self, key: str, retention: str) -> None:
        """Log a deleted object."""
        self.logger.info("cleanup_object_deleted", key=key, retention=retention)

    def log_object_failed(self, key: str, error: str) -> None:
        """Log an object that landed in the error bucket."""
        self.logger.warning("cleanup_object_failed", key=key, error=error)

    def log_completed(
        self,
        examined: int,
        deleted: int,
        kept: int,
        errors: int,
        incomplete: bool,
        duration_seconds: float,
    ) -> None:
        """Log cleanup completion."""
        log_method = self.logger.info if not incomplete else self.logger.warning
        log_method(
            "cleanup_completed",
            examined=examined,
            deleted=deleted,
            kept=kept,
            errors=errors,
            incomplete=incomplete,
            duration_seconds=round(duration_seconds, 2),
        )
