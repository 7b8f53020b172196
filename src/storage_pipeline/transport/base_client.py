"""
Abstract HTTP client at the bottom of the pipeline.

Defines the interface every transport implementation must adhere to.
The pipeline only ever calls ``send_request``; pooling, TLS and proxies
are the implementation's business.
"""

from abc import ABC, abstractmethod

import structlog

from storage_pipeline.models.http_models import PipelineRequest, PipelineResponse

logger = structlog.get_logger(__name__)


class HttpClient(ABC):
    """
    Abstract base class for transports.

    Responsibilities:
    - Send one request and return the response, whatever its status
    - Raise RestError with a system error code on connection failures
    - Observe the request's abort signal while the call is in flight

    Does NOT handle:
    - Retries (that's the retry policies' job)
    - Status-based errors (that's the throw-on-error policy's job)
    """

    @abstractmethod
    async def send_request(self, request: PipelineRequest) -> PipelineResponse:
        """
        Send a request.

        Args:
            request: Fully prepared request

        Returns:
            PipelineResponse for any HTTP status

        Raises:
            RestError: Connection-level failure (``code`` set, no response)
            AbortError: The request's abort signal fired
        """
        pass

    async def close(self) -> None:
        """
        Release connections. Default implementation does nothing.
        """
        logger.debug("Closing transport", transport_class=self.__class__.__name__)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
