"""
Ready-made retry policies.

Thin factories combining the engine with the built-in strategies. Each
uses its own policy name so several can coexist in one pipeline.
"""

from storage_pipeline.retry.engine import DEFAULT_RETRY_POLICY_COUNT, RetryPolicy
from storage_pipeline.retry.strategies import (
    DEFAULT_CLIENT_MAX_RETRY_INTERVAL_MS,
    DEFAULT_CLIENT_RETRY_INTERVAL_MS,
    ExponentialRetryStrategy,
    ThrottlingRetryStrategy,
)


def exponential_retry_policy(
    max_retries: int = DEFAULT_RETRY_POLICY_COUNT,
    retry_delay_in_ms: float = DEFAULT_CLIENT_RETRY_INTERVAL_MS,
    max_retry_delay_in_ms: float = DEFAULT_CLIENT_MAX_RETRY_INTERVAL_MS,
) -> RetryPolicy:
    """Backoff on transient HTTP statuses and connection errors."""
    strategy = ExponentialRetryStrategy(
        retry_delay_in_ms=retry_delay_in_ms,
        max_retry_delay_in_ms=max_retry_delay_in_ms,
    )
    return RetryPolicy([strategy], max_retries=max_retries, name="exponentialRetryPolicy")


def system_error_retry_policy(
    max_retries: int = DEFAULT_RETRY_POLICY_COUNT,
    retry_delay_in_ms: float = DEFAULT_CLIENT_RETRY_INTERVAL_MS,
    max_retry_delay_in_ms: float = DEFAULT_CLIENT_MAX_RETRY_INTERVAL_MS,
) -> RetryPolicy:
    """Backoff on connection errors only; HTTP statuses pass through."""
    strategy = ExponentialRetryStrategy(
        retry_delay_in_ms=retry_delay_in_ms,
        max_retry_delay_in_ms=max_retry_delay_in_ms,
        ignore_http_status_codes=True,
    )
    return RetryPolicy([strategy], max_retries=max_retries, name="systemErrorRetryPolicy")


def throttling_retry_policy(max_retries: int = DEFAULT_RETRY_POLICY_COUNT) -> RetryPolicy:
    """Honour 429/503 retry-after hints only."""
    return RetryPolicy(
        [ThrottlingRetryStrategy()], max_retries=max_retries, name="throttlingRetryPolicy"
    )


def default_retry_policy(
    max_retries: int = DEFAULT_RETRY_POLICY_COUNT,
    retry_delay_in_ms: float = DEFAULT_CLIENT_RETRY_INTERVAL_MS,
    max_retry_delay_in_ms: float = DEFAULT_CLIENT_MAX_RETRY_INTERVAL_MS,
) -> RetryPolicy:
    """Throttling hints first, exponential backoff second."""
    strategies = [
        ThrottlingRetryStrategy(),
        ExponentialRetryStrategy(
            retry_delay_in_ms=retry_delay_in_ms,
            max_retry_delay_in_ms=max_retry_delay_in_ms,
        ),
    ]
    return RetryPolicy(strategies, max_retries=max_retries, name="defaultRetryPolicy")
