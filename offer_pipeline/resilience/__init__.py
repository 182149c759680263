"""Resilience utilities for external service calls.

- Retry Logic: bounded exponential backoff for transient errors
- Timeouts: per-call hard timeouts classified as transient failures
"""

from offer_pipeline.resilience.retry import (
    RetryConfig,
    async_retry_with_backoff,
    call_with_timeout,
    is_retryable_completion_error,
    is_retryable_service_error,
    is_transient_error,
)

__all__ = [
    "RetryConfig",
    "async_retry_with_backoff",
    "call_with_timeout",
    "is_retryable_completion_error",
    "is_retryable_service_error",
    "is_transient_error",
]
