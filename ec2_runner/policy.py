"""Named error-handling policies for orchestrator operations.

Most operations log and re-raise. Operations whose outcome the caller cannot
act on are declared best-effort instead:

    @best_effort("Could not send command to instance")
    async def start_runner(self, instance_id: str) -> None:
        ...

A best-effort call logs the failure and returns None; the caller gets no
signal that it failed.
"""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from loguru import logger

P = ParamSpec("P")
T = TypeVar("T")

ErrorTypes = type[Exception] | tuple[type[Exception], ...]


def best_effort(
    message: str,
    on: ErrorTypes = Exception,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T | None]]]:
    """Decorator that logs and swallows failures of an async function.

    Args:
        message: Error line logged when the call fails.
        on: Exception types to swallow. Anything else propagates.

    Returns:
        Decorated async function returning None on failure.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T | None]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T | None:
            try:
                return await func(*args, **kwargs)
            except on as e:
                logger.error(f"{message}: {type(e).__name__}: {e}")
                return None

        wrapper.__best_effort__ = True  # type: ignore[attr-defined]
        return wrapper

    return decorator


def is_best_effort(func: Callable[..., object]) -> bool:
    """Whether a function runs under the best-effort policy."""
    return getattr(func, "__best_effort__", False)
