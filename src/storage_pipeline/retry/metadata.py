"""
Retry decision inputs and outputs.

RetryInformation is what a strategy sees about one finished attempt;
RetryModifiers is what it answers. Both are frozen so a strategy cannot
tamper with the engine's state.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from storage_pipeline.exceptions import RestError
    from storage_pipeline.models.http_models import PipelineResponse


@dataclass(frozen=True)
class RetryInformation:
    """
    Outcome of one attempt.

    Attributes:
        retry_count: Zero-based attempt index
        response: Response received (also set when the error carries one)
        response_error: Structured error raised by the rest of the pipeline
    """

    retry_count: int
    response: Optional["PipelineResponse"] = None
    response_error: Optional["RestError"] = None

    def __post_init__(self) -> None:
        if self.retry_count < 0:
            raise ValueError("retry_count must be >= 0")


@dataclass(frozen=True)
class RetryModifiers:
    """
    A strategy's verdict. At most one field is meaningful.

    Attributes:
        skip_strategy: Defer to the next strategy
        retry_after_in_ms: Wait this long (0 allowed) then retry
        error_to_throw: Fail now with this error
        redirect_to: Retry immediately against this URL
    """

    skip_strategy: bool = False
    retry_after_in_ms: Optional[float] = None
    error_to_throw: Optional[Exception] = None
    redirect_to: Optional[str] = None

    def __post_init__(self) -> None:
        decisions = [
            self.skip_strategy,
            self.retry_after_in_ms is not None,
            self.error_to_throw is not None,
            self.redirect_to is not None,
        ]
        if sum(decisions) > 1:
            raise ValueError("RetryModifiers must carry at most one decision")
        if self.retry_after_in_ms is not None and self.retry_after_in_ms < 0:
            raise ValueError("retry_after_in_ms must be >= 0")

    @classmethod
    def skip(cls) -> "RetryModifiers":
        return cls(skip_strategy=True)
