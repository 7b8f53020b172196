"""
Generic retry engine.

RetryPolicy is itself a pipeline policy: it owns the attempt loop and
calls "the rest of the pipeline below it" once per attempt. What happens
between attempts is decided by an ordered list of strategies; the first
strategy that does not skip wins.

Attempt loop:
    1. Send the request through the rest of the pipeline
    2. Abort immediately if the request's signal has fired
    3. Out of retries: surface the last response, else the last error
    4. Ask strategies: throw / wait and retry / redirect and retry
    5. Nobody objected: surface the last error, else the last response

Usage:
    policy = RetryPolicy([ThrottlingRetryStrategy(), ExponentialRetryStrategy()])
    pipeline.add_policy(policy, PolicyOptions(phase="Retry"))
"""

from typing import Optional, Sequence

import structlog

from storage_pipeline.abort import delay
from storage_pipeline.exceptions import AbortError, RestError
from storage_pipeline.models.http_models import PipelineRequest, PipelineResponse
from storage_pipeline.monitoring.metrics import pipeline_retries_total
from storage_pipeline.pipeline.policy import SendRequest
from storage_pipeline.retry.exceptions import RetryInvariantError
from storage_pipeline.retry.metadata import RetryInformation
from storage_pipeline.retry.strategies import RetryStrategy

logger = structlog.get_logger(__name__)

DEFAULT_RETRY_POLICY_COUNT = 3


class RetryPolicy:
    """
    Strategy-driven retry policy.

    Only RestError failures are evaluated by strategies; any other
    exception propagates from the first attempt. Cancellation is checked
    after every attempt and is never retried.

    Attributes:
        name: Policy name inside the pipeline
        strategies: Strategies, asked in order
        max_retries: Retries after the first attempt (attempts = max_retries + 1)
    """

    def __init__(
        self,
        strategies: Sequence[RetryStrategy],
        max_retries: int = DEFAULT_RETRY_POLICY_COUNT,
        name: str = "retryPolicy",
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.name = name
        self.strategies = list(strategies)
        self.max_retries = max_retries

    async def send_request(
        self, request: PipelineRequest, call_next: SendRequest
    ) -> PipelineResponse:
        retry_count = -1

        while True:
            retry_count += 1
            response: Optional[PipelineResponse] = None
            response_error: Optional[RestError] = None

            try:
                logger.info(
                    "Sending request",
                    policy=self.name,
                    retry_count=retry_count,
                    request_id=request.request_id,
                )
                response = await call_next(request)
            except RestError as e:
                logger.warning(
                    "Attempt failed",
                    policy=self.name,
                    retry_count=retry_count,
                    error_code=e.code,
                    status_code=e.status_code,
                )
                response_error = e
                response = e.response

            if request.abort_signal is not None and request.abort_signal.aborted:
                logger.error("Request aborted", policy=self.name, retry_count=retry_count)
                pipeline_retries_total.labels(policy=self.name, decision="aborted").inc()
                raise AbortError()

            if retry_count >= self.max_retries:
                logger.info(
                    "Maximum retries reached, returning last outcome",
                    policy=self.name,
                    retry_count=retry_count,
                    max_retries=self.max_retries,
                )
                pipeline_retries_total.labels(policy=self.name, decision="exhausted").inc()
                if response is not None:
                    return response
                if response_error is not None:
                    raise response_error
                raise RetryInvariantError(retry_count)

            state = RetryInformation(
                retry_count=retry_count,
                response=response,
                response_error=response_error,
            )
            retry_now = False
            for strategy in self.strategies:
                modifiers = strategy.retry(state)
                if modifiers.skip_strategy:
                    logger.debug("Strategy skipped", policy=self.name, strategy=strategy.name)
                    continue

                if modifiers.error_to_throw is not None:
                    logger.error(
                        "Strategy escalated error",
                        policy=self.name,
                        strategy=strategy.name,
                        error_type=type(modifiers.error_to_throw).__name__,
                    )
                    pipeline_retries_total.labels(policy=self.name, decision="throw").inc()
                    raise modifiers.error_to_throw

                if modifiers.retry_after_in_ms is not None:
                    logger.info(
                        "Retrying after delay",
                        policy=self.name,
                        strategy=strategy.name,
                        retry_count=retry_count,
                        retry_after_in_ms=modifiers.retry_after_in_ms,
                    )
                    pipeline_retries_total.labels(policy=self.name, decision="retry").inc()
                    await delay(modifiers.retry_after_in_ms, request.abort_signal)
                    retry_now = True
                    break

                if modifiers.redirect_to is not None:
                    logger.info(
                        "Retrying against redirect target",
                        policy=self.name,
                        strategy=strategy.name,
                        redirect_to=modifiers.redirect_to,
                    )
                    pipeline_retries_total.labels(policy=self.name, decision="redirect").inc()
                    request.url = modifiers.redirect_to
                    retry_now = True
                    break

            if retry_now:
                continue

            if response_error is not None:
                logger.info("No strategy retried, raising last error", policy=self.name)
                raise response_error
            if response is not None:
                return response
            raise RetryInvariantError(retry_count)


def retry_policy(
    strategies: Sequence[RetryStrategy],
    max_retries: int = DEFAULT_RETRY_POLICY_COUNT,
    name: str = "retryPolicy",
) -> RetryPolicy:
    """Build a RetryPolicy from an ordered list of strategies."""
    return RetryPolicy(strategies, max_retries=max_retries, name=name)
