"""
Policy contract and registration options.

A policy is one unit of pipeline middleware. It receives the request and
a ``call_next`` coroutine function that runs the rest of the pipeline,
and returns the response (possibly after calling ``call_next`` several
times, as retry policies do).
"""

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Protocol, Union, runtime_checkable

from storage_pipeline.models.enums import PipelinePhase
from storage_pipeline.models.http_models import PipelineRequest, PipelineResponse

SendRequest = Callable[[PipelineRequest], Awaitable[PipelineResponse]]
PhaseLike = Union[PipelinePhase, str]


@runtime_checkable
class Policy(Protocol):
    """
    Protocol for pipeline policies.

    ``name`` identifies the policy inside a pipeline and is what
    before/after dependencies refer to.
    """

    name: str

    async def send_request(
        self, request: PipelineRequest, call_next: SendRequest
    ) -> PipelineResponse:
        """
        Process a request.

        Args:
            request: Outgoing request (mutable)
            call_next: Runs the remaining policies and the transport

        Returns:
            Response to hand back to the enclosing policy
        """
        ...


@dataclass(frozen=True)
class PolicyOptions:
    """
    Where a policy sits in the pipeline.

    Attributes:
        phase: Phase the policy belongs to (None means the unphased bucket)
        after_phase: Run only once this phase has fully drained;
            mutually exclusive with ``phase``
        before_policies: Names of policies that must run after this one
        after_policies: Names of policies that must run before this one
    """

    phase: Optional[PhaseLike] = None
    after_phase: Optional[PhaseLike] = None
    before_policies: tuple[str, ...] = field(default_factory=tuple)
    after_policies: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Accept any iterable of names (lists, sets) but store tuples
        object.__setattr__(self, "before_policies", tuple(self.before_policies))
        object.__setattr__(self, "after_policies", tuple(self.after_policies))
