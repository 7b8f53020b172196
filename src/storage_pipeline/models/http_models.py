"""
Request/response models flowing through the pipeline.

PipelineRequest is mutable: policies set headers, the retry
engine rewrites the URL on redirects, and the storage retry policy sends
clones against the secondary host. PipelineResponse is what the
transport hands back up the policy chain.
"""

import uuid
from typing import Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

from storage_pipeline.abort import AbortSignal


class PipelineRequest(BaseModel):
    """
    Outgoing HTTP request as seen by every policy.

    Headers are case-insensitive (httpx.Headers). The abort signal is
    shared between a request and its clones.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    url: str = Field(..., description="Absolute request URL")
    method: str = Field(default="GET", description="HTTP method (upper-case)")
    headers: httpx.Headers = Field(default_factory=httpx.Headers)
    body: Optional[Union[bytes, str]] = Field(default=None, description="Raw request body")
    timeout: Optional[float] = Field(default=None, ge=0, description="Transport timeout in seconds")
    abort_signal: Optional[AbortSignal] = Field(default=None, description="Cooperative cancellation")
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    @field_validator("headers", mode="before")
    @classmethod
    def _coerce_headers(cls, value):
        if isinstance(value, httpx.Headers):
            return value
        return httpx.Headers(value or {})

    @field_validator("method")
    @classmethod
    def _upper_method(cls, value: str) -> str:
        return value.upper()

    def clone(self) -> "PipelineRequest":
        """Independent copy with its own headers; abort signal is shared."""
        return self.model_copy(update={"headers": httpx.Headers(self.headers)})


class PipelineResponse(BaseModel):
    """HTTP response returned by the transport."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: int = Field(..., ge=100, le=599)
    headers: httpx.Headers = Field(default_factory=httpx.Headers)
    request: PipelineRequest
    body: Optional[bytes] = None

    @field_validator("headers", mode="before")
    @classmethod
    def _coerce_headers(cls, value):
        if isinstance(value, httpx.Headers):
            return value
        return httpx.Headers(value or {})
