"""
Unit tests for BearerTokenAuthenticationPolicy.
"""

import asyncio
import time

import pytest

from storage_pipeline.exceptions import AuthenticationError
from storage_pipeline.models.http_models import PipelineResponse
from storage_pipeline.policies.bearer_token import (
    AccessToken,
    BearerTokenAuthenticationPolicy,
    bearer_token_authentication_policy,
)

SCOPES = ["https://storage.azure.com/.default"]


class TokenSource:
    """Counts token requests; each token lives ``lifetime`` seconds."""

    def __init__(self, lifetime: float = 3600, latency: float = 0):
        self.lifetime = lifetime
        self.latency = latency
        self.calls = 0
        self.scopes = None

    async def __call__(self, scopes):
        self.calls += 1
        self.scopes = list(scopes)
        if self.latency:
            await asyncio.sleep(self.latency)
        return AccessToken(token=f"token-{self.calls}", expires_on=time.time() + self.lifetime)


async def echo(request):
    return PipelineResponse(status=200, request=request)


@pytest.mark.asyncio
async def test_sets_authorization_header(make_request):
    source = TokenSource()
    policy = bearer_token_authentication_policy(source, SCOPES)
    request = make_request()

    await policy.send_request(request, echo)

    assert request.headers["Authorization"] == "Bearer token-1"
    assert source.scopes == SCOPES


@pytest.mark.asyncio
async def test_token_is_cached(make_request):
    source = TokenSource()
    policy = BearerTokenAuthenticationPolicy(source, SCOPES)

    for _ in range(3):
        await policy.send_request(make_request(), echo)

    assert source.calls == 1


@pytest.mark.asyncio
async def test_token_near_expiry_is_refreshed(make_request):
    source = TokenSource(lifetime=60)
    policy = BearerTokenAuthenticationPolicy(source, SCOPES, refresh_window_seconds=120)

    await policy.send_request(make_request(), echo)
    request = make_request()
    await policy.send_request(request, echo)

    assert source.calls == 2
    assert request.headers["Authorization"] == "Bearer token-2"


@pytest.mark.asyncio
async def test_concurrent_requests_share_refresh(make_request):
    source = TokenSource(latency=0.01)
    policy = BearerTokenAuthenticationPolicy(source, SCOPES)

    await asyncio.gather(*(policy.send_request(make_request(), echo) for _ in range(5)))

    assert source.calls == 1


@pytest.mark.asyncio
async def test_rejects_plain_http(make_request):
    source = TokenSource()
    policy = BearerTokenAuthenticationPolicy(source, SCOPES)

    with pytest.raises(AuthenticationError, match="non-https"):
        await policy.send_request(make_request(url="http://account.blob.core.windows.net/c/b"), echo)

    assert source.calls == 0
