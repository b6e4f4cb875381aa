"""Structured logging configuration for the CMS core.

This module configures structlog for consistent, machine-readable logging
across registries, stores and the CLI, with context binding for tracing a
single logical operation.
"""

import logging
import sys
import time
from typing import Any

import structlog
from structlog.typing import EventDict


def add_app_context(
    _logger: Any, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Add application-specific context to log events."""
    event_dict["service"] = "cms-core"
    event_dict["component"] = event_dict.get("logger", "unknown")
    return event_dict


def add_operation_id(
    _logger: Any, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Add the bound operation ID, if any, for tracing."""
    operation_id = structlog.contextvars.get_contextvars().get("operation_id")
    if operation_id:
        event_dict["operation_id"] = operation_id
    return event_dict


def configure_logging(
    environment: str = "development", log_level: str = "INFO", json_logs: bool = False
) -> None:
    """Configure structured logging for the application.

    Args:
        environment: Application environment (development/production)
        log_level: Logging level (DEBUG/INFO/WARNING/ERROR)
        json_logs: Whether to output JSON format logs
    """
    # Configure stdlib logging to work with structlog
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
    )

    if json_logs or environment == "production":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        add_app_context,
        add_operation_id,
        structlog.processors.format_exc_info,
        renderer,
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a configured structured logger.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables for operation tracing.

    Args:
        **kwargs: Context variables to bind (e.g., operation_id, owner_id)
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


class OperationLogger:
    """Helper for logging persistence operation timing and context."""

    def __init__(self, logger: structlog.stdlib.BoundLogger, operation: str):
        self.logger = logger
        self.operation = operation
        self.start_time: float | None = None

    def __enter__(self) -> "OperationLogger":
        self.start_time = time.perf_counter()
        self.logger.debug("Operation started", operation=self.operation)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self.start_time is None:
            return

        duration_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
        if exc_type is None:
            self.logger.debug(
                "Operation completed",
                operation=self.operation,
                duration_ms=duration_ms,
            )
        else:
            self.logger.error(
                "Operation failed",
                operation=self.operation,
                duration_ms=duration_ms,
                error=str(exc_val),
                error_type=exc_type.__name__,
            )

    def log_progress(self, message: str, **kwargs: Any) -> None:
        """Log operation progress with context."""
        self.logger.debug(message, operation=self.operation, **kwargs)
