"""Retry decorator with exponential backoff for provider calls.

Example:
    from cce_operator.retry import on_status_code, retry

    @retry(on=on_status_code(429), max_attempts=3)
    async def show_cluster(cluster_id: str) -> Cluster:
        ...
"""

from __future__ import annotations

import asyncio
import functools
import random
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from loguru import logger

P = ParamSpec("P")
T = TypeVar("T")

RetryPredicate = Callable[[Exception], bool]

log = logger.bind(component="retry")


def retry(
    on: type[Exception] | tuple[type[Exception], ...] | RetryPredicate = Exception,
    max_attempts: int = 5,
    base_delay: float = 1.0,
    exponential_base: float = 2.0,
    max_delay: float = 60.0,
    jitter: bool = True,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Retry an async function with exponential backoff.

    Args:
        on: Exception class, tuple of classes, or predicate deciding whether
            a failure is retried.
        max_attempts: Total attempts including the first one.
        base_delay: Delay before the first retry, in seconds.
        exponential_base: Backoff multiplier,
            ``min(base_delay * exponential_base ** attempt, max_delay)``.
        max_delay: Upper bound for a single delay.
        jitter: Add up to 10% random jitter to each delay.
    """
    if isinstance(on, type) and issubclass(on, Exception):
        should_retry: RetryPredicate = lambda e: isinstance(e, on)
    elif isinstance(on, tuple):
        should_retry = lambda e: isinstance(e, on)
    else:
        should_retry = on

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        name = getattr(func, "__qualname__", repr(func))

        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    attempt += 1
                    if attempt >= max_attempts or not should_retry(e):
                        raise
                    delay = min(base_delay * (exponential_base ** (attempt - 1)), max_delay)
                    if jitter:
                        delay += random.uniform(0, delay * 0.1)
                    log.warning(
                        "{fn} attempt {attempt}/{total} failed with {err}, retrying in {delay:.1f}s",
                        fn=name, attempt=attempt, total=max_attempts,
                        err=type(e).__name__, delay=delay,
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator


def on_status_code(*codes: int) -> RetryPredicate:
    """Retry when the exception carries one of the given HTTP status codes.

    Works with any exception exposing ``status_code`` (provider errors)
    or ``status`` (raw HTTP errors).
    """

    def predicate(e: Exception) -> bool:
        status = getattr(e, "status_code", None)
        if status is None:
            status = getattr(e, "status", None)
        return status in codes

    return predicate


def any_of(*predicates: RetryPredicate) -> RetryPredicate:
    def combined(e: Exception) -> bool:
        return any(p(e) for p in predicates)

    return combined
