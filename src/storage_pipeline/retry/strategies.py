"""
Retry strategies for the generic retry engine.

Each strategy is a pure decision function over the outcome of one
attempt. The engine asks strategies in registration order; the first
one that does not skip decides.

Strategies:
    1. ThrottlingRetryStrategy: honour server backpressure hints
       (429/503 with retry-after headers)
    2. ExponentialRetryStrategy: half-jitter capped exponential backoff on
       transient 5xx/408 and connection failures
"""

import email.utils
import math
import random
import time
from typing import Optional, Protocol

import structlog

from storage_pipeline.exceptions import RestError
from storage_pipeline.models.http_models import PipelineResponse
from storage_pipeline.retry.metadata import RetryInformation, RetryModifiers

logger = structlog.get_logger(__name__)

DEFAULT_CLIENT_RETRY_INTERVAL_MS = 1000
DEFAULT_CLIENT_MAX_RETRY_INTERVAL_MS = 1000 * 64

# Connection-level failures worth retrying
SYSTEM_ERROR_CODES = frozenset(
    {"ETIMEDOUT", "ESOCKETTIMEDOUT", "ECONNREFUSED", "ECONNRESET", "ENOENT", "ENOTFOUND"}
)

RETRY_AFTER_MS_HEADER = "retry-after-ms"
MS_RETRY_AFTER_MS_HEADER = "x-ms-retry-after-ms"
RETRY_AFTER_HEADER = "Retry-After"
# Checked in this order; only Retry-After is expressed in seconds
ALL_RETRY_AFTER_HEADERS = (RETRY_AFTER_MS_HEADER, MS_RETRY_AFTER_MS_HEADER, RETRY_AFTER_HEADER)


class RetryStrategy(Protocol):
    """
    Protocol for retry strategies.

    ``retry`` must not perform I/O or sleep; the engine applies the
    returned decision.
    """

    name: str

    def retry(self, state: RetryInformation) -> RetryModifiers:
        """
        Decide what to do after one attempt.

        Args:
            state: Attempt index plus the response and/or error it produced

        Returns:
            RetryModifiers with exactly one decision (or skip)
        """
        ...


def _parse_header_as_number(response: PipelineResponse, header: str) -> Optional[float]:
    value = response.headers.get(header)
    if not value:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def get_retry_after_in_ms(response: Optional[PipelineResponse]) -> Optional[float]:
    """
    Extract the server's retry hint from a throttling response.

    Returns:
        Milliseconds to wait, or None if the response is not 429/503 or
        carries no parseable hint
    """
    if response is None or response.status not in (429, 503):
        return None

    for header in ALL_RETRY_AFTER_HEADERS:
        value = _parse_header_as_number(response, header)
        if value is not None:
            multiplier = 1000 if header == RETRY_AFTER_HEADER else 1
            return max(0.0, value * multiplier)

    retry_after = response.headers.get(RETRY_AFTER_HEADER)
    if not retry_after:
        return None

    try:
        retry_at = email.utils.parsedate_to_datetime(retry_after)
    except (TypeError, ValueError):
        return None
    diff_ms = retry_at.timestamp() * 1000 - time.time() * 1000
    return max(0.0, diff_ms) if math.isfinite(diff_ms) else None


def is_throttling_retry_response(response: Optional[PipelineResponse]) -> bool:
    """True if the response is 429/503 with a usable retry-after hint."""
    retry_after = get_retry_after_in_ms(response)
    return retry_after is not None and math.isfinite(retry_after)


def is_exponential_retry_response(response: Optional[PipelineResponse]) -> bool:
    """True for 408 and 5xx responses, except 501 and 505."""
    if response is None:
        return False
    status = response.status
    return (status >= 500 or status == 408) and status not in (501, 505)


def is_system_error(error: Optional[BaseException]) -> bool:
    """True if the error carries one of the retryable connection error codes."""
    if error is None:
        return False
    code = getattr(error, "code", None)
    return code in SYSTEM_ERROR_CODES


def calculate_retry_delay(
    retry_attempt: int,
    retry_delay_in_ms: float = DEFAULT_CLIENT_RETRY_INTERVAL_MS,
    max_retry_delay_in_ms: float = DEFAULT_CLIENT_MAX_RETRY_INTERVAL_MS,
) -> float:
    """
    Half-jitter capped exponential backoff.

    delay = clamped/2 + randint(0, clamped/2) where
    clamped = min(max_retry_delay_in_ms, retry_delay_in_ms * 2**retry_attempt)

    Args:
        retry_attempt: Zero-based attempt index
    """
    exponential_delay = retry_delay_in_ms * math.pow(2, retry_attempt)
    clamped_delay = min(max_retry_delay_in_ms, exponential_delay)
    half = clamped_delay / 2
    return half + random.randint(0, math.floor(half))


class ThrottlingRetryStrategy:
    """
    Retry after the delay the server asked for.

    Applies to 429 and 503 responses carrying ``retry-after-ms``,
    ``x-ms-retry-after-ms`` or ``Retry-After``. Everything else is skipped.
    """

    def __init__(self) -> None:
        self.name = "throttlingRetryStrategy"

    def retry(self, state: RetryInformation) -> RetryModifiers:
        retry_after_in_ms = get_retry_after_in_ms(state.response)
        if retry_after_in_ms is None or not math.isfinite(retry_after_in_ms):
            return RetryModifiers.skip()

        logger.info(
            "Server requested throttling delay",
            strategy=self.name,
            status=state.response.status,
            retry_after_in_ms=retry_after_in_ms,
        )
        return RetryModifiers(retry_after_in_ms=retry_after_in_ms)


class ExponentialRetryStrategy:
    """
    Exponential backoff for transient failures.

    Retries 408 and 5xx (but not 501/505) responses and connection
    errors with a system error code. Throttling responses are left to
    ThrottlingRetryStrategy. A structured error that matches neither rule
    is escalated as ``error_to_throw``.
    """

    def __init__(
        self,
        retry_delay_in_ms: float = DEFAULT_CLIENT_RETRY_INTERVAL_MS,
        max_retry_delay_in_ms: float = DEFAULT_CLIENT_MAX_RETRY_INTERVAL_MS,
        ignore_system_errors: bool = False,
        ignore_http_status_codes: bool = False,
    ):
        """
        Args:
            retry_delay_in_ms: Base delay for attempt 0
            max_retry_delay_in_ms: Upper bound before jitter
            ignore_system_errors: Skip connection errors
            ignore_http_status_codes: Skip retryable HTTP statuses
        """
        self.name = "exponentialRetryStrategy"
        self.retry_delay_in_ms = retry_delay_in_ms
        self.max_retry_delay_in_ms = max_retry_delay_in_ms
        self.ignore_system_errors = ignore_system_errors
        self.ignore_http_status_codes = ignore_http_status_codes

    def retry(self, state: RetryInformation) -> RetryModifiers:
        response = state.response
        response_error: Optional[RestError] = state.response_error

        matched_system_error = is_system_error(response_error)
        ignore_system_error = matched_system_error and self.ignore_system_errors
        is_exponential = is_exponential_retry_response(response)
        ignore_exponential_response = is_exponential and self.ignore_http_status_codes
        unknown_response = response is not None and (
            is_throttling_retry_response(response) or not is_exponential
        )

        if unknown_response or ignore_exponential_response or ignore_system_error:
            return RetryModifiers.skip()

        if response_error is not None and not matched_system_error and not is_exponential:
            return RetryModifiers(error_to_throw=response_error)

        retry_after_in_ms = calculate_retry_delay(
            state.retry_count, self.retry_delay_in_ms, self.max_retry_delay_in_ms
        )
        logger.info(
            "Exponential backoff computed",
            strategy=self.name,
            retry_count=state.retry_count,
            status=response.status if response is not None else None,
            error_code=getattr(response_error, "code", None),
            retry_after_in_ms=retry_after_in_ms,
        )
        return RetryModifiers(retry_after_in_ms=retry_after_in_ms)


def exponential_retry_strategy(
    retry_delay_in_ms: float = DEFAULT_CLIENT_RETRY_INTERVAL_MS,
    max_retry_delay_in_ms: float = DEFAULT_CLIENT_MAX_RETRY_INTERVAL_MS,
    ignore_system_errors: bool = False,
    ignore_http_status_codes: bool = False,
) -> ExponentialRetryStrategy:
    return ExponentialRetryStrategy(
        retry_delay_in_ms=retry_delay_in_ms,
        max_retry_delay_in_ms=max_retry_delay_in_ms,
        ignore_system_errors=ignore_system_errors,
        ignore_http_status_codes=ignore_http_status_codes,
    )


def throttling_retry_strategy() -> ThrottlingRetryStrategy:
    return ThrottlingRetryStrategy()
