"""Shared test fixtures and configuration for all tests.

This conftest.py provides common fixtures used across unit tests:
settings, request factories and a scripted in-memory transport.
"""

from typing import Any, Optional, Union

import httpx
import pytest

from storage_pipeline.config import Settings
from storage_pipeline.models.http_models import PipelineRequest, PipelineResponse
from storage_pipeline.transport.base_client import HttpClient


class ScriptedTransport(HttpClient):
    """In-memory transport replaying a script of responses and errors.

    Each script entry is either an int status, a (status, headers) tuple,
    or an exception instance to raise. The last entry repeats forever.
    Every received request is recorded (as sent, after policies ran).
    """

    def __init__(self, script: list[Union[int, tuple, BaseException]]):
        self.script = list(script)
        self.requests: list[PipelineRequest] = []

    async def send_request(self, request: PipelineRequest) -> PipelineResponse:
        self.requests.append(request)
        index = min(len(self.requests) - 1, len(self.script) - 1)
        entry = self.script[index]
        if isinstance(entry, BaseException):
            raise entry
        status, headers = entry if isinstance(entry, tuple) else (entry, {})
        return PipelineResponse(status=status, headers=headers, request=request, body=b"ok")

    @property
    def calls(self) -> int:
        return len(self.requests)

    @property
    def hosts(self) -> list[str]:
        return [httpx.URL(r.url).host for r in self.requests]


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with safe defaults for local testing."""
    return Settings(
        LOG_LEVEL="DEBUG",
        ENVIRONMENT="development",
        STORAGE_ACCOUNT_URL="https://account.blob.core.windows.net",
        SECONDARY_HOST="account-secondary.blob.core.windows.net",
        STORAGE_MAX_TRIES=4,
        STORAGE_RETRY_DELAY_MS=0,
        STORAGE_MAX_RETRY_DELAY_MS=0,
    )


@pytest.fixture
def make_request():
    """Factory fixture to create PipelineRequest instances.

    Usage:
        def test_something(make_request):
            request = make_request(method="HEAD")
    """
    def _create(
        url: str = "https://account.blob.core.windows.net/container/blob.txt",
        method: str = "GET",
        headers: Optional[dict[str, str]] = None,
        **kwargs: Any,
    ) -> PipelineRequest:
        return PipelineRequest(url=url, method=method, headers=headers or {}, **kwargs)

    return _create


@pytest.fixture
def make_response(make_request):
    """Factory fixture to create PipelineResponse instances."""
    def _create(status: int = 200, headers: Optional[dict[str, str]] = None) -> PipelineResponse:
        return PipelineResponse(status=status, headers=headers or {}, request=make_request())

    return _create


@pytest.fixture
def scripted_transport():
    """Factory fixture building a ScriptedTransport from a script."""
    def _create(*script) -> ScriptedTransport:
        return ScriptedTransport(list(script))

    return _create
