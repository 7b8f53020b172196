"""
Retry engine with pluggable strategies.

The engine is a pipeline policy that loops over attempts and asks an
ordered list of strategies what to do after each one:

1. **Throttling**: wait for the server's retry-after hint (429/503)
2. **Exponential**: half-jitter backoff on 5xx/408 and connection errors
3. Anything else: surface the last response or error unchanged

Main Components:
    - RetryPolicy: attempt loop (a pipeline Policy)
    - RetryStrategy: protocol for decision functions
    - RetryInformation / RetryModifiers: strategy input and output
    - RetryInvariantError: no response and no error (broken pipeline)

Usage:
    >>> from storage_pipeline.retry import default_retry_policy
    >>> pipeline.add_policy(default_retry_policy(), PolicyOptions(phase="Retry"))
"""

from storage_pipeline.retry.engine import RetryPolicy, retry_policy
from storage_pipeline.retry.exceptions import RetryInvariantError
from storage_pipeline.retry.metadata import RetryInformation, RetryModifiers
from storage_pipeline.retry.policies import (
    default_retry_policy,
    exponential_retry_policy,
    system_error_retry_policy,
    throttling_retry_policy,
)
from storage_pipeline.retry.strategies import (
    ExponentialRetryStrategy,
    RetryStrategy,
    ThrottlingRetryStrategy,
    calculate_retry_delay,
    exponential_retry_strategy,
    get_retry_after_in_ms,
    is_exponential_retry_response,
    is_system_error,
    is_throttling_retry_response,
    throttling_retry_strategy,
)

__all__ = [
    "RetryPolicy",
    "retry_policy",
    "RetryInvariantError",
    "RetryInformation",
    "RetryModifiers",
    "RetryStrategy",
    "ExponentialRetryStrategy",
    "ThrottlingRetryStrategy",
    "exponential_retry_strategy",
    "throttling_retry_strategy",
    "calculate_retry_delay",
    "get_retry_after_in_ms",
    "is_exponential_retry_response",
    "is_system_error",
    "is_throttling_retry_response",
    "default_retry_policy",
    "exponential_retry_policy",
    "system_error_retry_policy",
    "throttling_retry_policy",
]
