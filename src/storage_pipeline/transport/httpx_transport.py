"""
httpx-backed transport.

Uses a persistent httpx.AsyncClient. Connection failures are mapped to
RestError carrying the system error code the retry strategies know:

    httpx.TimeoutException      -> ETIMEDOUT
    httpx.ConnectError          -> ENOTFOUND (DNS) / ECONNREFUSED
    httpx.ReadError/WriteError  -> ECONNRESET
    httpx.RemoteProtocolError   -> ECONNRESET
    other httpx.TransportError  -> REQUEST_SEND_ERROR

HTTP error statuses are returned as ordinary responses.
"""

import asyncio
import time
from typing import Optional

import httpx
import structlog

from storage_pipeline.abort import AbortSignal
from storage_pipeline.exceptions import AbortError, RestError
from storage_pipeline.models.http_models import PipelineRequest, PipelineResponse
from storage_pipeline.monitoring.metrics import transport_request_latency_seconds
from storage_pipeline.transport.base_client import HttpClient

logger = structlog.get_logger(__name__)

_DNS_FAILURE_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
)


def _error_code(error: httpx.TransportError) -> str:
    if isinstance(error, httpx.TimeoutException):
        return "ETIMEDOUT"
    if isinstance(error, httpx.ConnectError):
        message = str(error).lower()
        if any(marker in message for marker in _DNS_FAILURE_MARKERS):
            return "ENOTFOUND"
        return "ECONNREFUSED"
    if isinstance(error, (httpx.ReadError, httpx.WriteError, httpx.RemoteProtocolError)):
        return "ECONNRESET"
    return RestError.REQUEST_SEND_ERROR


class HttpxTransport(HttpClient):
    """
    Transport using httpx for async HTTP communication.

    Features:
    - Connection pooling via a lazily created, persistent AsyncClient
    - Per-request timeout override (PipelineRequest.timeout)
    - Abort signal raced against the in-flight call
    """

    def __init__(
        self,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        limits: Optional[httpx.Limits] = None,
    ):
        """
        Initialize transport.

        Args:
            timeout: Default timeout in seconds
            client: Pre-built AsyncClient (tests pass one with MockTransport)
            limits: Connection pool limits for the client created here
        """
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._limits = limits or httpx.Limits(
            max_keepalive_connections=10,
            max_connections=50,
            keepalive_expiry=30.0,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=self._limits,
                follow_redirects=False,
            )
            self._owns_client = True
            logger.debug("Created new httpx AsyncClient")
        return self._client

    async def send_request(self, request: PipelineRequest) -> PipelineResponse:
        client = await self._get_client()
        httpx_request = client.build_request(
            request.method,
            request.url,
            headers=request.headers,
            content=request.body,
            timeout=request.timeout if request.timeout is not None else self.timeout,
        )

        start_time = time.perf_counter()
        try:
            if request.abort_signal is None:
                response = await client.send(httpx_request)
            else:
                response = await self._send_abortable(client, httpx_request, request.abort_signal)
        except httpx.TransportError as e:
            code = _error_code(e)
            transport_request_latency_seconds.labels(
                method=request.method, status=code
            ).observe(time.perf_counter() - start_time)
            logger.warning(
                "Transport error",
                method=request.method,
                error_code=code,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise RestError(
                f"{code}: {e}" if str(e) else code,
                code=code,
                request=request,
                details={"error_type": type(e).__name__},
            ) from e

        elapsed = time.perf_counter() - start_time
        transport_request_latency_seconds.labels(
            method=request.method, status=str(response.status_code)
        ).observe(elapsed)
        logger.debug(
            "Transport response",
            method=request.method,
            status=response.status_code,
            latency_ms=int(elapsed * 1000),
        )

        return PipelineResponse(
            status=response.status_code,
            headers=response.headers,
            request=request,
            body=response.content,
        )

    async def _send_abortable(
        self,
        client: httpx.AsyncClient,
        httpx_request: httpx.Request,
        abort_signal: AbortSignal,
    ) -> httpx.Response:
        if abort_signal.aborted:
            raise AbortError()

        send_task = asyncio.ensure_future(client.send(httpx_request))
        abort_task = asyncio.ensure_future(abort_signal.wait())
        try:
            done, _ = await asyncio.wait(
                {send_task, abort_task}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            send_task.cancel()
            raise
        finally:
            abort_task.cancel()

        if send_task in done:
            return send_task.result()

        send_task.cancel()
        await asyncio.gather(send_task, return_exceptions=True)
        logger.info("In-flight request aborted", url=str(httpx_request.url))
        raise AbortError()

    async def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._client is not None and not self._client.is_closed and self._owns_client:
            await self._client.aclose()
            logger.debug("Closed httpx AsyncClient")
