"""
Minimal storage client.

Resource operations only build requests and hand them to the pipeline;
they carry no retry or ordering logic of their own.
"""

from typing import Optional
from urllib.parse import quote

import httpx
import structlog

from storage_pipeline.abort import AbortSignal
from storage_pipeline.config import Settings, settings as default_settings
from storage_pipeline.models.http_models import PipelineRequest, PipelineResponse
from storage_pipeline.pipeline.pipeline import Pipeline
from storage_pipeline.policies.bearer_token import GetToken
from storage_pipeline.storage.pipeline import new_storage_pipeline
from storage_pipeline.transport.base_client import HttpClient
from storage_pipeline.transport.httpx_transport import HttpxTransport

logger = structlog.get_logger(__name__)

STORAGE_API_VERSION = "2024-11-04"


class StorageClient:
    """
    Blob storage operations on top of a Pipeline.

    Attributes:
        account_url: Primary endpoint, e.g. https://account.blob.core.windows.net
        pipeline: Policy pipeline shared by all operations
        transport: HttpClient at the bottom of the pipeline
    """

    def __init__(
        self,
        account_url: Optional[str] = None,
        pipeline: Optional[Pipeline] = None,
        transport: Optional[HttpClient] = None,
        settings: Optional[Settings] = None,
        get_token: Optional[GetToken] = None,
    ):
        settings = settings or default_settings
        self.account_url = (account_url or settings.STORAGE_ACCOUNT_URL).rstrip("/")
        self.pipeline = pipeline or new_storage_pipeline(settings, get_token=get_token)
        self.transport = transport or HttpxTransport(timeout=settings.HTTP_TIMEOUT)

    def _url(self, container: str, blob: Optional[str] = None, **params: str) -> str:
        path = f"{self.account_url}/{quote(container)}"
        if blob is not None:
            path = f"{path}/{quote(blob)}"
        url = httpx.URL(path)
        for key, value in params.items():
            url = url.copy_add_param(key, value)
        return str(url)

    async def send(
        self,
        method: str,
        url: str,
        headers: Optional[dict[str, str]] = None,
        body: Optional[bytes] = None,
        abort_signal: Optional[AbortSignal] = None,
    ) -> PipelineResponse:
        """Run one request through the pipeline."""
        request = PipelineRequest(
            url=url,
            method=method,
            headers={"x-ms-version": STORAGE_API_VERSION, **(headers or {})},
            body=body,
            abort_signal=abort_signal,
        )
        return await self.pipeline.send_request(self.transport, request)

    async def create_container(
        self, container: str, abort_signal: Optional[AbortSignal] = None
    ) -> PipelineResponse:
        return await self.send(
            "PUT", self._url(container, restype="container"), abort_signal=abort_signal
        )

    async def upload_blob(
        self,
        container: str,
        blob: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        abort_signal: Optional[AbortSignal] = None,
    ) -> PipelineResponse:
        headers = {
            "x-ms-blob-type": "BlockBlob",
            "Content-Type": content_type,
        }
        return await self.send(
            "PUT", self._url(container, blob), headers=headers, body=data, abort_signal=abort_signal
        )

    async def get_blob_properties(
        self, container: str, blob: str, abort_signal: Optional[AbortSignal] = None
    ) -> dict[str, str]:
        """HEAD the blob; eligible for secondary reads."""
        response = await self.send("HEAD", self._url(container, blob), abort_signal=abort_signal)
        return dict(response.headers.items())

    async def download_blob(
        self, container: str, blob: str, abort_signal: Optional[AbortSignal] = None
    ) -> bytes:
        """GET the blob content; eligible for secondary reads."""
        response = await self.send("GET", self._url(container, blob), abort_signal=abort_signal)
        logger.debug("Blob downloaded", container=container, blob=blob, size=len(response.body or b""))
        return response.body or b""

    async def close(self) -> None:
        await self.transport.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
