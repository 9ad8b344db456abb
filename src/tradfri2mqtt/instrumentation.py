"""
Timing for broker round-trips.

:func:`timed_async` wraps a coroutine function and logs how long each call
took, warning when ``TRADFRI_PERF_THRESHOLD_MS`` is exceeded. Disabled unless
``TRADFRI_PERF_TRACKING`` is set.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from tradfri2mqtt.logging_abstraction import get_logger

__all__ = [
    "measure_time",
    "timed_async",
]

logger = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def measure_time(start_time: float) -> float:
    """Milliseconds elapsed since ``start_time`` (a :func:`time.perf_counter` value)."""
    return (time.perf_counter() - start_time) * 1000


def timed_async(operation_name: str | None = None) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """
    Decorator timing an async function.

    Args:
        operation_name: Name used in the log line (defaults to the function name)

    Example:
        @timed_async("mqtt_publish")
        async def publish(self, path, value): ...
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            from tradfri2mqtt.const import TRADFRI_PERF_THRESHOLD_MS, TRADFRI_PERF_TRACKING

            if not TRADFRI_PERF_TRACKING:
                return await func(*args, **kwargs)

            start_time = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                _log_timing(operation_name or func.__name__, measure_time(start_time), TRADFRI_PERF_THRESHOLD_MS)

        return wrapper

    return decorator


def _log_timing(operation_name: str, elapsed_ms: float, threshold_ms: int) -> None:
    context = {
        "operation": operation_name,
        "duration_ms": round(elapsed_ms, 2),
        "threshold_ms": threshold_ms,
    }
    if elapsed_ms > threshold_ms:
        logger.warning("[%s] took %.1fms (threshold: %dms)", operation_name, elapsed_ms, threshold_ms, extra=context)
    else:
        logger.debug("[%s] took %.1fms", operation_name, elapsed_ms, extra=context)
