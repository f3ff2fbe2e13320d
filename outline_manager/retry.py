"""Async retry decorator with exponential backoff.

Example:
    from outline_manager.retry import on_status_code, retry

    @retry(on=on_status_code(429, 503), max_attempts=3)
    async def list_zones():
        ...
"""

from __future__ import annotations

import asyncio
import functools
import random
from collections.abc import Awaitable, Callable

from outline_manager.observability.logger import logger

type RetryPredicate = Callable[[Exception], bool]

TRANSIENT_STATUS_CODES = (429, 500, 502, 503, 504)


def retry[**P, T](
    on: type[Exception] | tuple[type[Exception], ...] | RetryPredicate = Exception,
    max_attempts: int = 5,
    base_delay: float = 1.0,
    exponential_base: float = 2.0,
    max_delay: float = 60.0,
    jitter: bool = True,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Retry an async function with exponential backoff.

    Args:
        on: An exception class, a tuple of them, or a predicate deciding
            whether an exception is worth another attempt.
        max_attempts: Maximum number of attempts, including the first one.
        base_delay: Delay in seconds before the first retry.
        exponential_base: Multiplier applied per attempt, capped at ``max_delay``.
        max_delay: Maximum delay in seconds.
        jitter: Add up to 10% random jitter to each delay.
    """
    if isinstance(on, type) and issubclass(on, Exception):
        should_retry: RetryPredicate = lambda e: isinstance(e, on)
    elif isinstance(on, tuple):
        should_retry = lambda e: isinstance(e, on)
    else:
        should_retry = on

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not should_retry(e) or attempt == max_attempts - 1:
                        raise

                    delay = min(base_delay * (exponential_base**attempt), max_delay)
                    if jitter:
                        delay += random.uniform(0, delay * 0.1)

                    logger.warning(
                        "Retry {n}/{total} of {fn} after {kind}: {err}. Waiting {delay:.1f}s",
                        n=attempt + 1, total=max_attempts, fn=func.__qualname__,
                        kind=type(e).__name__, err=e, delay=delay,
                    )
                    await asyncio.sleep(delay)
            raise AssertionError("unreachable")

        return wrapper

    return decorator


def on_status_code(*codes: int) -> RetryPredicate:
    """Retry when the exception exposes one of ``codes`` as ``status``."""

    def predicate(e: Exception) -> bool:
        return getattr(e, "status", None) in codes

    return predicate
