"""
Shared exceptions for the request-dispatch core.

The retry engine distinguishes failure modes by type:
- RestError: structured HTTP/transport failure, eligible for retry decisions
- AbortError: cooperative cancellation, always fatal
- anything else: propagated untouched
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from storage_pipeline.models.http_models import PipelineRequest, PipelineResponse


class StoragePipelineError(Exception):
    """
    Base exception for all errors raised by this package.

    Carries an optional ``details`` dict for structured logging.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class RestError(StoragePipelineError):
    """
    A request failed at the HTTP or connection level.

    Connection failures carry a ``code`` (e.g. ``ECONNRESET``) and no
    response. HTTP failures carry the ``response`` and its ``status_code``.
    Only RestError instances take part in retry strategy evaluation.
    """

    REQUEST_SEND_ERROR = "REQUEST_SEND_ERROR"
    PARSE_ERROR = "PARSE_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
        request: "PipelineRequest | None" = None,
        response: "PipelineResponse | None" = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.code = code
        if status_code is None and response is not None:
            status_code = response.status
        self.status_code = status_code
        self.request = request
        self.response = response


class AbortError(StoragePipelineError):
    """
    Raised when a request's abort signal fires.

    Cancellation is never retried.
    """

    def __init__(self, message: str = "The operation was aborted."):
        super().__init__(message)


class AuthenticationError(StoragePipelineError):
    """Raised when a credential cannot be applied to a request."""
    pass
