"""Standard pipeline policies: user agent, request id, error mapping, logging."""

import platform
import time
from typing import Iterable, Optional

import httpx
import structlog

from storage_pipeline import __version__
from storage_pipeline.exceptions import RestError
from storage_pipeline.models.http_models import PipelineRequest, PipelineResponse
from storage_pipeline.pipeline.policy import SendRequest

logger = structlog.get_logger(__name__)

USER_AGENT_HEADER = "User-Agent"
CLIENT_REQUEST_ID_HEADER = "x-ms-client-request-id"

DEFAULT_REDACTED_HEADERS = frozenset({"authorization", "cookie", "set-cookie", "x-ms-encryption-key"})
DEFAULT_REDACTED_QUERY_PARAMS = frozenset({"sig"})
REDACTED = "REDACTED"


def default_user_agent(prefix: Optional[str] = None) -> str:
    """``[prefix ]storage-pipeline/<version> Python/<version> (<platform>)``"""
    agent = (
        f"storage-pipeline/{__version__} "
        f"Python/{platform.python_version()} ({platform.system()} {platform.machine()})"
    )
    return f"{prefix} {agent}" if prefix else agent


class UserAgentPolicy:
    """Sets the User-Agent header unless the caller already did."""

    def __init__(self, prefix: Optional[str] = None):
        self.name = "userAgentPolicy"
        self.user_agent = default_user_agent(prefix)

    async def send_request(
        self, request: PipelineRequest, call_next: SendRequest
    ) -> PipelineResponse:
        if USER_AGENT_HEADER not in request.headers:
            request.headers[USER_AGENT_HEADER] = self.user_agent
        return await call_next(request)


class SetClientRequestIdPolicy:
    """Stamps the request id into a header so service logs can be correlated."""

    def __init__(self, header_name: str = CLIENT_REQUEST_ID_HEADER):
        self.name = "setClientRequestIdPolicy"
        self.header_name = header_name

    async def send_request(
        self, request: PipelineRequest, call_next: SendRequest
    ) -> PipelineResponse:
        if self.header_name not in request.headers:
            request.headers[self.header_name] = request.request_id
        return await call_next(request)


class ThrowOnErrorPolicy:
    """
    Turn non-2xx responses into RestError.

    Registered in the Deserialize phase, i.e. outside the Retry phase:
    retry policies see raw responses, callers see errors.
    """

    def __init__(self, expected_statuses: Optional[Iterable[int]] = None):
        self.name = "throwOnErrorPolicy"
        self.expected_statuses = frozenset(expected_statuses) if expected_statuses else None

    def _is_success(self, status: int) -> bool:
        if self.expected_statuses is not None:
            return status in self.expected_statuses
        return 200 <= status < 300

    async def send_request(
        self, request: PipelineRequest, call_next: SendRequest
    ) -> PipelineResponse:
        response = await call_next(request)
        if self._is_success(response.status):
            return response

        error_code = response.headers.get("x-ms-error-code")
        raise RestError(
            f"Unexpected status code: {response.status}",
            code=error_code,
            request=request,
            response=response,
            details={"status": response.status, "error_code": error_code},
        )


def sanitize_url(url: str, redacted_params: Iterable[str] = DEFAULT_REDACTED_QUERY_PARAMS) -> str:
    """Replace secret query parameter values (SAS signatures) with REDACTED."""
    parsed = httpx.URL(url)
    for param in redacted_params:
        if param in parsed.params:
            parsed = parsed.copy_set_param(param, REDACTED)
    return str(parsed)


def sanitize_headers(
    headers: httpx.Headers, redacted: Iterable[str] = DEFAULT_REDACTED_HEADERS
) -> dict[str, str]:
    redacted = {h.lower() for h in redacted}
    return {
        key: (REDACTED if key.lower() in redacted else value)
        for key, value in headers.items()
    }


class LogPolicy:
    """
    Log every request and response that passes through.

    Registered after the Sign phase it sits innermost, so each retry
    attempt is logged with its final URL and headers.
    """

    def __init__(self, redacted_headers: Iterable[str] = DEFAULT_REDACTED_HEADERS):
        self.name = "logPolicy"
        self.redacted_headers = frozenset(h.lower() for h in redacted_headers)

    async def send_request(
        self, request: PipelineRequest, call_next: SendRequest
    ) -> PipelineResponse:
        log = logger.bind(request_id=request.request_id)
        log.info(
            "Request",
            method=request.method,
            url=sanitize_url(request.url),
            headers=sanitize_headers(request.headers, self.redacted_headers),
        )

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            log.warning(
                "Request failed",
                error_type=type(exc).__name__,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise

        log.info(
            "Response",
            status=response.status,
            headers=sanitize_headers(response.headers, self.redacted_headers),
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return response


def user_agent_policy(prefix: Optional[str] = None) -> UserAgentPolicy:
    return UserAgentPolicy(prefix)


def set_client_request_id_policy(header_name: str = CLIENT_REQUEST_ID_HEADER) -> SetClientRequestIdPolicy:
    return SetClientRequestIdPolicy(header_name)


def throw_on_error_policy(expected_statuses: Optional[Iterable[int]] = None) -> ThrowOnErrorPolicy:
    return ThrowOnErrorPolicy(expected_statuses)


def log_policy() -> LogPolicy:
    return LogPolicy()
