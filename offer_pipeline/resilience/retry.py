"""Retry logic with bounded exponential backoff for external service calls.

Delay before attempt ``n + 1`` is ``min(initial * base ** (n - 1), max)``, i.e.
1s, 2s, 4s, ... capped at 10s with the default configuration.

Example:
    >>> config = RetryConfig(max_attempts=2)
    >>> result = await async_retry_with_backoff(
    ...     client.complete,
    ...     config,
    ...     is_transient_error,
    ...     request,
    ... )
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, Union

from offer_pipeline.core.config import (
    BACKOFF_MULTIPLIER,
    INITIAL_BACKOFF_SECONDS,
    MAX_BACKOFF_SECONDS,
    MAX_RETRIES,
)
from offer_pipeline.core.exceptions import (
    ExternalServiceError,
    MalformedResponseError,
    ResponseParseError,
)

logger = logging.getLogger(__name__)

RetryPredicate = Union[
    Tuple[Type[BaseException], ...],
    Callable[[BaseException], bool],
]

# Indirection so tests can replace the sleep without touching asyncio itself.
_sleep = asyncio.sleep


@dataclass
class RetryConfig:
    """Configuration for retry logic.

    Attributes:
        max_attempts: Maximum number of attempts (including initial)
        initial_delay_seconds: Delay before the first retry
        max_delay_seconds: Maximum delay between retries
        exponential_base: Base for exponential backoff
        jitter: Whether to add random jitter to delays
    """

    max_attempts: int = MAX_RETRIES
    initial_delay_seconds: float = INITIAL_BACKOFF_SECONDS
    max_delay_seconds: float = MAX_BACKOFF_SECONDS
    exponential_base: float = BACKOFF_MULTIPLIER
    jitter: bool = False

    def delay_for(self, attempt: int) -> float:
        """Delay after the failed 1-based ``attempt``."""
        delay = min(
            self.initial_delay_seconds * (self.exponential_base ** (attempt - 1)),
            self.max_delay_seconds,
        )
        if self.jitter:
            delay = delay * (0.5 + random.random())
        return delay


def is_transient_error(exc: BaseException) -> bool:
    """Timeouts and connection resets."""
    return isinstance(exc, ExternalServiceError) and exc.is_timeout_or_connection


def is_retryable_service_error(exc: BaseException) -> bool:
    """Any external service failure flagged retryable (auth and parse errors are not)."""
    return isinstance(exc, ExternalServiceError) and exc.retryable


def is_retryable_completion_error(exc: BaseException) -> bool:
    """Retryable service failures plus unusable model replies.

    Model output varies between calls, so a reply without parseable JSON is
    worth asking for again. Authentication and configuration errors are not.
    """
    if isinstance(exc, (ResponseParseError, MalformedResponseError)):
        return True
    return is_retryable_service_error(exc)


def _should_retry(predicate: RetryPredicate, exc: BaseException) -> bool:
    if isinstance(predicate, tuple):
        return isinstance(exc, predicate)
    return predicate(exc)


async def call_with_timeout(
    func: Callable[..., Awaitable[Any]],
    call_timeout: Optional[float],
    service_name: str,
    *args,
    **kwargs,
) -> Any:
    """Await ``func`` with a hard timeout, classified as a transient service error.

    Remaining arguments, including any ``timeout`` keyword of ``func`` itself,
    are passed through unchanged.
    """
    if call_timeout is None:
        return await func(*args, **kwargs)
    try:
        return await asyncio.wait_for(func(*args, **kwargs), timeout=call_timeout)
    except asyncio.TimeoutError as e:
        raise ExternalServiceError(
            service_name=service_name,
            error_type="timeout",
            details={"timeout_seconds": call_timeout},
        ) from e


async def async_retry_with_backoff(
    func: Callable[..., Awaitable[Any]],
    config: RetryConfig,
    retry_on: RetryPredicate,
    *args,
    **kwargs,
) -> Any:
    """Retry an async function with exponential backoff.

    Args:
        func: Coroutine function to execute
        config: Retry configuration
        retry_on: Exception types, or a predicate, that trigger a retry
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result from the successful call

    Raises:
        The last exception once attempts are exhausted, or immediately for
        exceptions ``retry_on`` does not accept.
    """
    max_attempts = max(1, config.max_attempts)

    for attempt in range(1, max_attempts + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not _should_retry(retry_on, e):
                raise

            if attempt == max_attempts:
                logger.error(
                    f"All {max_attempts} attempts failed: {type(e).__name__}: {e}",
                    extra={
                        "retry_attempt": attempt,
                        "max_attempts": max_attempts,
                        "error_code": getattr(e, "error_code", None),
                    },
                )
                raise

            delay = config.delay_for(attempt)
            logger.warning(
                f"Attempt {attempt}/{max_attempts} failed: {type(e).__name__}: {e}. "
                f"Retrying in {delay:.2f}s...",
                extra={
                    "retry_attempt": attempt,
                    "max_attempts": max_attempts,
                    "delay_seconds": delay,
                    "error_code": getattr(e, "error_code", None),
                },
            )
            await _sleep(delay)

    # unreachable: the loop either returns or raises
    raise RuntimeError("retry loop exhausted")
