"""
Centralized logging and error classification utilities for the Ark SDK.

This module provides decorators and helper functions to standardize logging
and error reporting across the client and the streaming pipeline.

Features:
- Structured logging with contextual information
- Error classification for SDK, HTTP and validation errors
- Performance timing on async operations
- Context-aware loggers bound to a single stream
"""

from __future__ import annotations

import functools
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, ParamSpec, TypeVar

import httpx
import structlog
from pydantic import ValidationError

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Type variables for generic decorators
P = ParamSpec("P")
T = TypeVar("T")
AsyncCallable = Callable[P, Awaitable[T]]

logger = structlog.get_logger(__name__)


class LLMErrorHandler:
    """Maps exceptions to stable category names for structured logs."""

    @staticmethod
    def classify_error(error: BaseException) -> str:
        """
        Classify an error into a log category.

        Args:
            error: The exception to classify

        Returns:
            Category name, e.g. ``"payload_decode"`` or ``"api_error"``
        """
        # SDK errors (src.llm.exceptions) declare their own category
        category = getattr(error, "category", None)
        if isinstance(category, str):
            return category
        if isinstance(error, ValidationError):
            return "validation_error"
        if isinstance(error, TimeoutError | httpx.TimeoutException):
            return "timeout_error"
        if isinstance(error, ConnectionError | OSError | httpx.TransportError):
            return "connection_error"
        if isinstance(error, ValueError | TypeError):
            return "parameter_error"
        return "unknown_error"

    @staticmethod
    def error_context(error: BaseException) -> dict[str, Any]:
        """Collect log fields describing ``error``."""
        context: dict[str, Any] = {
            "error_type": type(error).__name__,
            "error_category": LLMErrorHandler.classify_error(error),
            "error_message": str(error),
        }
        status_code = getattr(error, "status_code", None)
        if status_code is not None:
            context["status_code"] = status_code
        return context


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def _request_fields(args: tuple[Any, ...]) -> dict[str, Any]:
    # Client calls take (self, request); tag records with the request's model
    for arg in args:
        model = getattr(arg, "model", None)
        if isinstance(model, str):
            return {"model": model}
    return {}


def _result_fields(result: Any) -> dict[str, Any]:
    usage = getattr(result, "usage", None)
    total_tokens = getattr(usage, "total_tokens", None)
    return {"total_tokens": total_tokens} if total_tokens is not None else {}


def log_operation(
    operation: str,
    *,
    log_timing: bool = True,
    context: dict[str, Any] | None = None,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """
    Decorator for logging async client calls with structured context.

    The model of the request argument and the token usage of the result are
    added to the records when present.

    Args:
        operation: Name of the operation being performed
        log_timing: Whether to log execution timing
        context: Additional context to include in logs

    Returns:
        Decorated function with logging
    """
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            operation_logger = logger.bind(**{
                "operation": operation,
                **_request_fields(args),
                **(context or {}),
            })
            operation_logger.debug("Operation started")
            start_time = time.perf_counter()

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                failure = LLMErrorHandler.error_context(e)
                if log_timing:
                    failure["duration_ms"] = _elapsed_ms(start_time)
                operation_logger.error("Operation failed", **failure)
                raise

            summary = _result_fields(result)
            if log_timing:
                summary["duration_ms"] = _elapsed_ms(start_time)
            operation_logger.info("Operation completed", **summary)
            return result

        return wrapper
    return decorator


@asynccontextmanager
async def operation_context(
    operation: str,
    *,
    context: dict[str, Any] | None = None,
    log_timing: bool = True,
):
    """
    Async context manager logging the outcome of a block, e.g. one stream.

    Args:
        operation: Name of the operation
        context: Additional context for logging
        log_timing: Whether to log operation timing

    Yields:
        Bound logger for the operation
    """
    operation_logger = logger.bind(operation=operation, **(context or {}))
    operation_logger.debug("Operation started")
    start_time = time.perf_counter()

    try:
        yield operation_logger
    except Exception as e:
        failure = LLMErrorHandler.error_context(e)
        if log_timing:
            failure["duration_ms"] = _elapsed_ms(start_time)
        operation_logger.error("Operation failed", **failure)
        raise

    if log_timing:
        operation_logger.info(
            "Operation completed", duration_ms=_elapsed_ms(start_time)
        )
    else:
        operation_logger.info("Operation completed")


class ContextualLogger:
    """Logger carrying fixed context, such as one stream's ID and model."""

    def __init__(self, base_context: dict[str, Any] | None = None):
        self.base_context = dict(base_context or {})
        self._logger = logger.bind(**self.base_context)

    def bind(self, **context: Any) -> ContextualLogger:
        """Return a new logger with ``context`` merged over the current one."""
        return ContextualLogger({**self.base_context, **context})

    def debug(self, message: str, **fields: Any) -> None:
        self._logger.debug(message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self._logger.info(message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._logger.warning(message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self._logger.error(message, **fields)
