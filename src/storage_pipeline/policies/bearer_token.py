"""
Bearer token authentication policy.

Token acquisition is an opaque async callable supplied by the caller.
The policy caches the token privately and refreshes it shortly before
it expires; concurrent requests share a single refresh.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

import structlog

from storage_pipeline.exceptions import AuthenticationError
from storage_pipeline.models.http_models import PipelineRequest, PipelineResponse
from storage_pipeline.pipeline.policy import SendRequest

logger = structlog.get_logger(__name__)

DEFAULT_REFRESH_WINDOW_SECONDS = 120


@dataclass(frozen=True)
class AccessToken:
    """
    Bearer token plus its expiry.

    Attributes:
        token: Raw token value
        expires_on: Expiry as a POSIX timestamp (seconds)
    """

    token: str
    expires_on: float


GetToken = Callable[[Sequence[str]], Awaitable[AccessToken]]


class BearerTokenAuthenticationPolicy:
    """
    Adds ``Authorization: Bearer <token>`` to every request.

    Refuses non-https URLs so tokens never travel in clear text.
    """

    def __init__(
        self,
        get_token: GetToken,
        scopes: Sequence[str],
        refresh_window_seconds: float = DEFAULT_REFRESH_WINDOW_SECONDS,
    ):
        self.name = "bearerTokenAuthenticationPolicy"
        self._get_token = get_token
        self._scopes = list(scopes)
        self._refresh_window_seconds = refresh_window_seconds
        self._token: Optional[AccessToken] = None
        self._lock = asyncio.Lock()

    def _needs_refresh(self) -> bool:
        if self._token is None:
            return True
        return self._token.expires_on - time.time() <= self._refresh_window_seconds

    async def _access_token(self) -> AccessToken:
        if not self._needs_refresh():
            return self._token
        async with self._lock:
            # Another request may have refreshed while we waited
            if self._needs_refresh():
                logger.info("Refreshing access token", scopes=self._scopes)
                self._token = await self._get_token(self._scopes)
        return self._token

    async def send_request(
        self, request: PipelineRequest, call_next: SendRequest
    ) -> PipelineResponse:
        if not request.url.lower().startswith("https://"):
            raise AuthenticationError(
                "Bearer token authentication is not permitted for non-TLS protected (non-https) URLs.",
                details={"scheme": request.url.split(":", 1)[0]},
            )

        token = await self._access_token()
        request.headers["Authorization"] = f"Bearer {token.token}"
        return await call_next(request)


def bearer_token_authentication_policy(
    get_token: GetToken,
    scopes: Sequence[str],
    refresh_window_seconds: float = DEFAULT_REFRESH_WINDOW_SECONDS,
) -> BearerTokenAuthenticationPolicy:
    return BearerTokenAuthenticationPolicy(get_token, scopes, refresh_window_seconds)
