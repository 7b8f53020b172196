"""
Dual-endpoint retry policy for storage accounts.

Read operations against an account with a read-only secondary replica
alternate between endpoints: odd attempts go to the primary host, even
attempts to the secondary. Once the secondary has answered 404 (the blob
is not replicated yet) every later attempt is pinned to the primary.

Backoff:
    primary -> primary  EXPONENTIAL: min((2**(attempt-1) - 1) * base, max)
                        FIXED:       base
    endpoint switch     random 0-1000 ms
"""

import math
import random
from typing import Optional

import httpx
import structlog
from pydantic import BaseModel, Field

from storage_pipeline.abort import delay
from storage_pipeline.exceptions import RestError
from storage_pipeline.models.enums import StorageRetryPolicyType
from storage_pipeline.models.http_models import PipelineRequest, PipelineResponse
from storage_pipeline.monitoring.metrics import pipeline_retries_total
from storage_pipeline.pipeline.policy import SendRequest

logger = structlog.get_logger(__name__)

DEFAULT_MAX_TRIES = 4
DEFAULT_RETRY_DELAY_IN_MS = 4 * 1000
DEFAULT_MAX_RETRY_DELAY_IN_MS = 120 * 1000
SWITCH_JITTER_MAX_MS = 1000

# Matched against the error's class name, message and code
RETRIABLE_ERRORS = (
    "ETIMEDOUT",
    "ESOCKETTIMEDOUT",
    "ECONNREFUSED",
    "ECONNRESET",
    "ENOENT",
    "ENOTFOUND",
    "TIMEOUT",
    "EPIPE",
    "REQUEST_SEND_ERROR",
)
READ_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
TIMEOUT_QUERY_PARAM = "timeout"
# Truncated XML bodies surface as this parse error when the service times out
INCOMPLETE_XML_PREFIX = 'Error "Error: Unclosed root tag'


class StorageRetryOptions(BaseModel):
    """
    User-facing options for StorageRetryPolicy.

    Unset fields fall back to the defaults when the policy is built.
    """

    retry_policy_type: StorageRetryPolicyType = StorageRetryPolicyType.EXPONENTIAL
    max_tries: Optional[int] = Field(default=None, description="Total attempts, min 1")
    retry_delay_in_ms: Optional[float] = Field(default=None, description="Backoff base")
    max_retry_delay_in_ms: Optional[float] = Field(default=None, description="Backoff cap")
    secondary_host: Optional[str] = Field(default=None, description="Read replica hostname")
    try_timeout_in_ms: Optional[float] = Field(
        default=None, description="Server-side timeout per attempt, sent as ?timeout=<s>"
    )


class StorageRetryPolicy:
    """
    Self-contained retry policy for storage requests.

    Each attempt sends a clone of the original request so host and query
    rewrites never leak into the caller's request.
    """

    def __init__(self, options: Optional[StorageRetryOptions] = None):
        options = options or StorageRetryOptions()
        self.name = "storageRetryPolicy"
        self.retry_policy_type = options.retry_policy_type

        self.max_tries = (
            max(options.max_tries, 1) if options.max_tries else DEFAULT_MAX_TRIES
        )
        self.try_timeout_in_ms = (
            options.try_timeout_in_ms
            if options.try_timeout_in_ms is not None and options.try_timeout_in_ms >= 0
            else None
        )
        self.max_retry_delay_in_ms = (
            options.max_retry_delay_in_ms
            if options.max_retry_delay_in_ms is not None and options.max_retry_delay_in_ms >= 0
            else DEFAULT_MAX_RETRY_DELAY_IN_MS
        )
        self.retry_delay_in_ms = (
            min(options.retry_delay_in_ms, self.max_retry_delay_in_ms)
            if options.retry_delay_in_ms is not None and options.retry_delay_in_ms >= 0
            else DEFAULT_RETRY_DELAY_IN_MS
        )
        self.secondary_host = options.secondary_host or None

    async def send_request(
        self, request: PipelineRequest, call_next: SendRequest
    ) -> PipelineResponse:
        secondary_has_404 = False
        attempt = 1

        while True:
            is_primary = self.is_primary_attempt(request, secondary_has_404, attempt)
            attempt_request = self._prepare_attempt(request, is_primary)

            response: Optional[PipelineResponse] = None
            logger.info(
                "Storage attempt",
                policy=self.name,
                attempt=attempt,
                endpoint="primary" if is_primary else "secondary",
                request_id=request.request_id,
            )
            try:
                response = await call_next(attempt_request)
            except RestError as e:
                logger.warning(
                    "Storage attempt failed",
                    policy=self.name,
                    attempt=attempt,
                    error_type=type(e).__name__,
                    error_code=e.code,
                )
                if not self.should_retry(is_primary, attempt, error=e):
                    pipeline_retries_total.labels(policy=self.name, decision="throw").inc()
                    raise
                # An error may still carry the secondary's 404
                if not is_primary and _status_of(e.response, e) == 404:
                    secondary_has_404 = True
            else:
                if not self.should_retry(is_primary, attempt, response=response):
                    return response
                secondary_has_404 = secondary_has_404 or (
                    not is_primary and response.status == 404
                )

            next_is_primary = self.is_primary_attempt(request, secondary_has_404, attempt + 1)
            pipeline_retries_total.labels(policy=self.name, decision="retry").inc()
            await self._delay(is_primary, next_is_primary, attempt, request)
            attempt += 1

    def is_primary_attempt(
        self, request: PipelineRequest, secondary_has_404: bool, attempt: int
    ) -> bool:
        """Odd attempts, non-read methods and pinned requests use the primary."""
        return (
            secondary_has_404
            or not self.secondary_host
            or request.method not in READ_METHODS
            or attempt % 2 == 1
        )

    def should_retry(
        self,
        is_primary: bool,
        attempt: int,
        response: Optional[PipelineResponse] = None,
        error: Optional[BaseException] = None,
    ) -> bool:
        """
        Decide whether another attempt is worthwhile.

        Args:
            is_primary: Whether the finished attempt hit the primary host
            attempt: 1-based index of the finished attempt
            response: Response of the finished attempt, if any
            error: Error raised by the finished attempt, if any
        """
        if attempt >= self.max_tries:
            logger.info(
                "No further tries",
                policy=self.name,
                attempt=attempt,
                max_tries=self.max_tries,
            )
            return False

        if error is not None:
            name = type(error).__name__.upper()
            message = str(getattr(error, "message", error)).upper()
            code = getattr(error, "code", None)
            for retriable in RETRIABLE_ERRORS:
                if (
                    retriable in name
                    or retriable in message
                    or (code is not None and str(code).upper() == retriable)
                ):
                    logger.info("Network error found, will retry", policy=self.name, error=retriable)
                    return True

        if response is not None or error is not None:
            status = _status_of(response, error)
            if not is_primary and status == 404:
                logger.info("Secondary access with 404, will retry", policy=self.name)
                return True
            if status in (500, 503):
                logger.info("Will retry for status code", policy=self.name, status=status)
                return True

        if (
            error is not None
            and getattr(error, "code", None) == "PARSE_ERROR"
            and str(getattr(error, "message", error)).startswith(INCOMPLETE_XML_PREFIX)
        ):
            logger.info(
                "Incomplete XML response likely due to service timeout, will retry",
                policy=self.name,
            )
            return True

        return False

    def compute_delay_in_ms(self, is_primary: bool, next_is_primary: bool, attempt: int) -> float:
        """Backoff before attempt ``attempt + 1``."""
        if not (is_primary and next_is_primary):
            return random.uniform(0, SWITCH_JITTER_MAX_MS)
        if self.retry_policy_type == StorageRetryPolicyType.FIXED:
            return self.retry_delay_in_ms
        return min(
            (math.pow(2, attempt - 1) - 1) * self.retry_delay_in_ms,
            self.max_retry_delay_in_ms,
        )

    async def _delay(
        self, is_primary: bool, next_is_primary: bool, attempt: int, request: PipelineRequest
    ) -> None:
        delay_in_ms = self.compute_delay_in_ms(is_primary, next_is_primary, attempt)
        logger.info("Delaying before next try", policy=self.name, delay_in_ms=delay_in_ms)
        await delay(delay_in_ms, request.abort_signal, "The operation was aborted.")

    def _prepare_attempt(self, request: PipelineRequest, is_primary: bool) -> PipelineRequest:
        attempt_request = request.clone()
        url = httpx.URL(attempt_request.url)
        if not is_primary:
            url = url.copy_with(host=self.secondary_host)
        if self.try_timeout_in_ms is not None:
            url = url.copy_set_param(
                TIMEOUT_QUERY_PARAM, str(math.floor(self.try_timeout_in_ms / 1000))
            )
        attempt_request.url = str(url)
        return attempt_request


def _status_of(response: Optional[PipelineResponse], error: Optional[BaseException]) -> int:
    if response is not None:
        return response.status
    if error is not None:
        return getattr(error, "status_code", None) or 0
    return 0


def storage_retry_policy(options: Optional[StorageRetryOptions] = None) -> StorageRetryPolicy:
    return StorageRetryPolicy(options)
