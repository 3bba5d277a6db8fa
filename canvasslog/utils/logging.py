"""
Logging configuration for canvasslog.

Structured logging with correlation IDs, per-operation context and timing,
rendered through Rich on the console or as JSON lines.
"""

import asyncio
import contextvars
import logging
import logging.handlers
import time
import traceback
import uuid
from typing import Any

import structlog
from rich.logging import RichHandler

# Context variables for correlation and operation tracking
correlation_id: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)
operation_context: contextvars.ContextVar[dict[str, Any] | None] = (
    contextvars.ContextVar("operation_context", default=None)
)
operation_start_time: contextvars.ContextVar[float] = contextvars.ContextVar(
    "operation_start_time", default=0.0
)


class CorrelationIDProcessor:
    """Processor to add correlation ID to log records."""

    def __call__(
        self, logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        value = correlation_id.get("")
        if value:
            event_dict["correlation_id"] = value
        return event_dict


class OperationContextProcessor:
    """Processor to add the active operation context to log records."""

    def __call__(
        self, logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        context = operation_context.get() or {}
        for key, value in context.items():
            event_dict.setdefault(key, value)
        return event_dict


class ElapsedTimeProcessor:
    """Processor to add elapsed time since the operation started."""

    def __call__(
        self, logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        start_time = operation_start_time.get(0.0)
        if start_time > 0 and "duration_ms" not in event_dict:
            event_dict["elapsed_ms"] = round((time.time() - start_time) * 1000, 2)
        return event_dict


class AsyncTaskProcessor:
    """Processor to add the current asyncio task name to log records."""

    def __call__(
        self, logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        try:
            task = asyncio.current_task()
        except RuntimeError:
            # No event loop running
            return event_dict
        if task:
            event_dict["task_name"] = task.get_name()
        return event_dict


class EnhancedStructuredLogger:
    """Wrapper around a structlog logger with error and audit helpers."""

    def __init__(self, logger_name: str):
        self.logger = structlog.get_logger(logger_name)
        self._logger_name = logger_name

    def with_correlation_id(
        self, correlation_id_value: str | None = None
    ) -> "EnhancedStructuredLogger":
        """Bind a correlation ID to the current context."""
        correlation_id.set(correlation_id_value or generate_correlation_id())
        return self

    def with_canvasser(
        self, canvasser_id: str | None, **context: Any
    ) -> "EnhancedStructuredLogger":
        """Add the acting canvasser to the current operation context."""
        ctx = dict(operation_context.get() or {})
        ctx.update({"canvasser_id": canvasser_id, **context})
        operation_context.set(ctx)
        return self

    def info(self, message: str, **kwargs: Any) -> None:
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.logger.warning(message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        self.logger.debug(message, **kwargs)

    def error(
        self, message: str, error: Exception | None = None, **kwargs: Any
    ) -> None:
        """Log an error message, expanding exception details when given."""
        if error is not None:
            kwargs.update(
                {
                    "error": str(error),
                    "error_type": type(error).__name__,
                }
            )
            if error.__traceback__ is not None:
                kwargs["traceback"] = traceback.format_exception(
                    type(error), error, error.__traceback__
                )
        self.logger.error(message, **kwargs)

    def performance(self, message: str, duration_ms: float, **kwargs: Any) -> None:
        """Log a timing measurement."""
        kwargs["duration_ms"] = round(duration_ms, 2)
        kwargs["performance_metric"] = True
        self.logger.info(message, **kwargs)

    def audit(self, action: str, **kwargs: Any) -> None:
        """Log a data-changing action."""
        kwargs.update({"audit": True, "action": action, "timestamp": time.time()})
        self.logger.info(f"AUDIT: {action}", **kwargs)


def resolve_log_level(verbose: bool = False, quiet: bool = False, default: str = "INFO") -> int:
    """Flags win over the configured level; unknown level names fall back to INFO."""
    if quiet:
        return logging.WARNING
    if verbose:
        return logging.DEBUG
    level = logging.getLevelName(default.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_enhanced_logging(
    verbose: bool = False,
    quiet: bool = False,
    log_level: str = "INFO",
    json_logs: bool = False,
    log_file: str | None = None,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 3,
) -> None:
    """Configure structured logging for the application."""
    level = resolve_log_level(verbose, quiet, log_level)

    base_processors = [
        CorrelationIDProcessor(),
        OperationContextProcessor(),
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        ElapsedTimeProcessor(),
        AsyncTaskProcessor(),
    ]

    handlers: list[logging.Handler] = []
    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        handlers.append(file_handler)

    if json_logs:
        processors = [
            *base_processors,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ]
        if not log_file:
            handlers.append(logging.StreamHandler())
    else:
        processors = [
            *base_processors,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=False),
        ]
        handlers.append(
            RichHandler(
                show_time=False,
                show_path=False,
                markup=False,
                rich_tracebacks=True,
                tracebacks_show_locals=verbose,
            )
        )

    logging.basicConfig(level=level, format="%(message)s", handlers=handlers)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    configure_third_party_loggers(verbose)


def configure_third_party_loggers(verbose: bool) -> None:
    """Quiet noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.INFO if verbose else logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("rich").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(
        logging.DEBUG if verbose else logging.WARNING
    )


def get_logger(name: str) -> EnhancedStructuredLogger:
    """Get a structured logger instance."""
    return EnhancedStructuredLogger(name)


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


class LoggingContextManager:
    """Context manager that logs the start, end and duration of an operation."""

    def __init__(
        self,
        logger: EnhancedStructuredLogger,
        operation: str,
        correlation_id_value: str | None = None,
        **context: Any,
    ):
        self.logger = logger
        self.operation = operation
        self.correlation_id_value = correlation_id_value or generate_correlation_id()
        self.context = context
        self._tokens: list[tuple[contextvars.ContextVar, contextvars.Token]] = []

    def __enter__(self) -> EnhancedStructuredLogger:
        self._tokens = [
            (correlation_id, correlation_id.set(self.correlation_id_value)),
            (
                operation_context,
                operation_context.set({"operation": self.operation, **self.context}),
            ),
            (operation_start_time, operation_start_time.set(time.time())),
        ]
        self.logger.debug(f"Starting operation: {self.operation}")
        return self.logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = (time.time() - operation_start_time.get(time.time())) * 1000

        if exc_type:
            self.logger.error(
                f"Operation failed: {self.operation}",
                error=exc_val,
                duration_ms=round(duration_ms, 2),
            )
        else:
            self.logger.debug(
                f"Operation completed: {self.operation}",
                duration_ms=round(duration_ms, 2),
            )

        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens = []


def operation_logger(
    operation_name: str, correlation_id_value: str | None = None, **context: Any
) -> LoggingContextManager:
    """Create a logging context manager for an operation."""
    return LoggingContextManager(
        get_logger(__name__), operation_name, correlation_id_value, **context
    )
