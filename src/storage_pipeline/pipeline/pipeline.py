"""
Pipeline: policy registry, ordering and composition.

Policies register into one of five phases and may declare explicit
before/after dependencies on other policies by name. On first use the
pipeline resolves a single deterministic order (a phase-aware
topological sort), caches it, and composes the policies around the
transport call so that the first policy in order is outermost.

Phase order:
    Serialize -> None -> Deserialize -> Retry -> Sign

Usage:
    pipeline = Pipeline.create()
    pipeline.add_policy(user_agent_policy())
    pipeline.add_policy(default_retry_policy(), PolicyOptions(phase="Retry"))
    response = await pipeline.send_request(transport, request)
"""

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

import structlog

from storage_pipeline.models.enums import PipelinePhase
from storage_pipeline.models.http_models import PipelineRequest, PipelineResponse
from storage_pipeline.pipeline.exceptions import PipelineConfigurationError
from storage_pipeline.pipeline.policy import PhaseLike, Policy, PolicyOptions

if TYPE_CHECKING:
    from storage_pipeline.transport.base_client import HttpClient

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class _PolicyDescriptor:
    policy: Policy
    options: PolicyOptions


# eq=False keeps identity hashing so nodes and phases can live in dicts
@dataclass(eq=False)
class _PolicyNode:
    policy: Policy
    # dicts used as insertion-ordered sets
    depends_on: dict["_PolicyNode", None] = field(default_factory=dict)
    dependants: dict["_PolicyNode", None] = field(default_factory=dict)
    after_phase: Optional["_Phase"] = None


@dataclass(eq=False)
class _Phase:
    name: PipelinePhase
    policies: dict[_PolicyNode, None] = field(default_factory=dict)
    has_run: bool = False
    has_after_policies: bool = False


def _resolve_phase(value: Optional[PhaseLike], option: str) -> Optional[PipelinePhase]:
    if value is None:
        return None
    try:
        return PipelinePhase(value)
    except ValueError:
        raise PipelineConfigurationError(
            f"Invalid phase name: {value}",
            details={"option": option, "valid": [p.value for p in PipelinePhase]},
        ) from None


class Pipeline:
    """
    Ordered, phase-aware middleware pipeline.

    The registry is insertion ordered. The computed ordering is cached and
    dropped on every add/remove; concurrent send_request calls share it.
    """

    def __init__(self, policies: Optional[Iterable[_PolicyDescriptor]] = None):
        self._policies: list[_PolicyDescriptor] = list(policies or [])
        self._ordered_policies: Optional[list[Policy]] = None

    @classmethod
    def create(cls) -> "Pipeline":
        """Create an empty pipeline."""
        return cls()

    def add_policy(self, policy: Policy, options: Optional[PolicyOptions] = None) -> None:
        """
        Register a policy.

        Args:
            policy: Policy to add
            options: Phase and dependency placement (defaults to unphased)

        Raises:
            PipelineConfigurationError: phase and after_phase both set, or an
                unknown phase name
        """
        options = options or PolicyOptions()
        if options.phase is not None and options.after_phase is not None:
            raise PipelineConfigurationError(
                "Policies inside a phase cannot specify after_phase.",
                details={"policy": policy.name},
            )

        options = replace(
            options,
            phase=_resolve_phase(options.phase, "phase"),
            after_phase=_resolve_phase(options.after_phase, "after_phase"),
        )
        self._policies.append(_PolicyDescriptor(policy=policy, options=options))
        self._ordered_policies = None

        logger.debug(
            "Policy added",
            policy=policy.name,
            phase=options.phase.value if options.phase else None,
            after_phase=options.after_phase.value if options.after_phase else None,
        )

    def remove_policy(
        self, name: Optional[str] = None, phase: Optional[PhaseLike] = None
    ) -> list[Policy]:
        """
        Remove every policy matching ``name`` OR registered in ``phase``.

        Policies added without a phase (including after_phase ones) belong
        to the None phase.

        Returns:
            The removed policies, in registration order
        """
        target_phase = _resolve_phase(phase, "phase")
        removed: list[Policy] = []
        kept: list[_PolicyDescriptor] = []

        for descriptor in self._policies:
            name_match = name is not None and descriptor.policy.name == name
            registered_phase = descriptor.options.phase or PipelinePhase.NONE
            phase_match = target_phase is not None and registered_phase == target_phase
            if name_match or phase_match:
                removed.append(descriptor.policy)
            else:
                kept.append(descriptor)

        self._policies = kept
        self._ordered_policies = None

        logger.debug("Policies removed", removed=[p.name for p in removed])
        return removed

    async def send_request(
        self, transport: "HttpClient", request: PipelineRequest
    ) -> PipelineResponse:
        """
        Run ``request`` through every policy and then the transport.

        Raises:
            PipelineConfigurationError: If the policies cannot be ordered
        """
        policies = tuple(self.get_ordered_policies())
        return await _dispatch(policies, transport, request)

    def get_ordered_policies(self) -> list[Policy]:
        """Ordered policy list; computed once and cached until mutation."""
        if self._ordered_policies is None:
            self._ordered_policies = self._order_policies()
        return self._ordered_policies

    def clone(self) -> "Pipeline":
        """New pipeline with the same registry and an empty cache."""
        return Pipeline(self._policies)

    def _order_policies(self) -> list[Policy]:
        result: list[Policy] = []
        node_map: dict[str, _PolicyNode] = {}

        phases = {name: _Phase(name) for name in PipelinePhase.ordered()}
        ordered_phases = [phases[name] for name in PipelinePhase.ordered()]
        no_phase = phases[PipelinePhase.NONE]

        for descriptor in self._policies:
            policy_name = descriptor.policy.name
            if policy_name in node_map:
                raise PipelineConfigurationError(
                    "Duplicate policy names not allowed in pipeline",
                    details={"policy": policy_name},
                )
            node = _PolicyNode(policy=descriptor.policy)
            if descriptor.options.after_phase is not None:
                node.after_phase = phases[descriptor.options.after_phase]
                node.after_phase.has_after_policies = True
            node_map[policy_name] = node
            phases[descriptor.options.phase or PipelinePhase.NONE].policies[node] = None

        for descriptor in self._policies:
            node = node_map[descriptor.policy.name]
            # Names that are not registered are ignored
            for after_name in descriptor.options.after_policies:
                after_node = node_map.get(after_name)
                if after_node is not None:
                    node.depends_on[after_node] = None
                    after_node.dependants[node] = None
            for before_name in descriptor.options.before_policies:
                before_node = node_map.get(before_name)
                if before_node is not None:
                    before_node.depends_on[node] = None
                    node.dependants[before_node] = None

        def walk_phase(phase: _Phase) -> None:
            phase.has_run = True
            for node in list(phase.policies):
                if node.after_phase is not None and (
                    not node.after_phase.has_run or node.after_phase.policies
                ):
                    continue
                if not node.depends_on:
                    result.append(node.policy)
                    for dependant in node.dependants:
                        dependant.depends_on.pop(node, None)
                    del node_map[node.policy.name]
                    del phase.policies[node]

        def walk_phases() -> None:
            for phase in ordered_phases:
                walk_phase(phase)
                if phase.policies and phase is not no_phase:
                    # Later phases must wait for this one to drain
                    if not no_phase.has_run:
                        walk_phase(no_phase)
                    return
                if phase.has_after_policies:
                    walk_phase(no_phase)

        iteration = 0
        while node_map:
            iteration += 1
            emitted_before = len(result)
            walk_phases()
            if len(result) <= emitted_before and iteration > 1:
                raise PipelineConfigurationError(
                    "Cannot satisfy policy dependencies due to requirements cycle.",
                    details={"unresolved": sorted(node_map)},
                )

        logger.debug("Pipeline ordered", policies=[p.name for p in result])
        return result


async def _dispatch(
    policies: Sequence[Policy], transport: "HttpClient", request: PipelineRequest
) -> PipelineResponse:
    """Invoke the head policy, handing it the remaining slice as ``call_next``."""
    if not policies:
        return await transport.send_request(request)

    head, rest = policies[0], policies[1:]

    async def call_next(next_request: PipelineRequest) -> PipelineResponse:
        return await _dispatch(rest, transport, next_request)

    return await head.send_request(request, call_next)
