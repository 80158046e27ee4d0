"""Exponential backoff retry decorator for external AI calls.

Retry is collaborator policy: the generation providers wrap their raw API
call with it so a transient timeout does not surface as a failed tool call.
The dispatcher itself never retries.

Usage::

    from infrastructure.retry import with_async_retry

    @with_async_retry(max_attempts=3, base_seconds=1.0, exceptions=(openai.APIError,))
    async def call_llm(prompt: str) -> str:
        return await client.generate(prompt)
"""

from __future__ import annotations

import asyncio
import functools
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

# Default exceptions that trigger a retry (transient failures)
_DEFAULT_RETRYABLE: tuple[type[Exception], ...] = (
    OSError,
    TimeoutError,
    ConnectionError,
)


def backoff_seconds(attempt: int, base_seconds: float, max_seconds: float) -> float:
    """Un-jittered wait before retry number ``attempt`` (1-based)."""
    return min(base_seconds * (2 ** (attempt - 1)), max_seconds)


def with_async_retry(
    *,
    max_attempts: int = 3,
    base_seconds: float = 1.0,
    max_seconds: float = 30.0,
    jitter: bool = True,
    exceptions: tuple[type[Exception], ...] = _DEFAULT_RETRYABLE,
) -> Callable[[F], F]:
    """Decorator factory for exponential backoff retry of a coroutine function.

    Args:
        max_attempts: Total attempts including the first try (default: 3).
        base_seconds: Base wait time in seconds (default: 1.0).
        max_seconds: Maximum wait time cap in seconds (default: 30.0).
        jitter: Add random jitter ±25% to avoid thundering herd (default: True).
        exceptions: Tuple of exception types that trigger a retry.

    Returns:
        Decorator that wraps the coroutine function with retry logic.

    Raises:
        ValueError: If max_attempts < 1.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            last_exc: Exception | None = None
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as exc:
                    last_exc = exc
                    if attempt == max_attempts:
                        break
                    wait = backoff_seconds(attempt, base_seconds, max_seconds)
                    if jitter:
                        wait *= 1 + random.uniform(-0.25, 0.25)  # noqa: S311
                    logger.warning(
                        "retry: %s attempt %d/%d failed (%s) — retrying in %.2fs",
                        func.__name__,
                        attempt,
                        max_attempts,
                        exc,
                        wait,
                    )
                    await asyncio.sleep(wait)
            raise RuntimeError(
                f"{func.__name__} failed after {max_attempts} attempts"
            ) from last_exc

        return wrapper  # type: ignore[return-value]

    return decorator
