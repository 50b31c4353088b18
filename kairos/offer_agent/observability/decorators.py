"""Decorators for automatic handler instrumentation with observability."""

import inspect
import time
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from kairos.offer_agent.observability.protocols import ObservabilityProvider

# Type variable for the decorated function
F = TypeVar("F", bound=Callable[..., Any])


def instrumented_handler(handler_name: str) -> Callable[[F], F]:
    """Decorator that instruments an orchestrator state handler with observability.

    This decorator wraps handler methods to automatically:
    - Track execution duration
    - Record the error message of a failed execution
    - Forward both to the observability provider

    The provider is read from the `_observability` attribute of the instance the method is
    bound to. Exceptions are re-raised unchanged.

    Usage:
        @instrumented_handler("searching")
        async def _handle_searching(self, event: ScreenEvent) -> None:
            ...

    Args:
        handler_name: Name of the handler for metrics (e.g., "searching", "processing_detail")

    Returns:
        Decorated coroutine function with automatic instrumentation
    """

    def decorator(func: F) -> F:
        if not inspect.iscoroutinefunction(func):
            raise ValueError("instrumented_handler only supports async functions")

        @wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            observability: ObservabilityProvider | None = (
                getattr(args[0], "_observability", None) if args else None
            )

            start_time = time.perf_counter()
            error_msg: str | None = None

            try:
                return await func(*args, **kwargs)
            except Exception as e:
                error_msg = str(e)
                raise
            finally:
                duration_ms = (time.perf_counter() - start_time) * 1000

                if observability:
                    observability.log_handler_execution(
                        handler=handler_name,
                        duration_ms=duration_ms,
                        error=error_msg,
                    )

        return async_wrapper  # type: ignore

    return decorator
