"""
Unit tests for Pipeline.

Tests policy registration, phase-aware ordering, caching and the
onion-style composition around the transport.
"""

import pytest

from storage_pipeline.models.enums import PipelinePhase
from storage_pipeline.models.http_models import PipelineResponse
from storage_pipeline.pipeline.exceptions import PipelineConfigurationError
from storage_pipeline.pipeline.pipeline import Pipeline
from storage_pipeline.pipeline.policy import PolicyOptions


def names(policies) -> list[str]:
    return [p.name for p in policies]


class LoggingTransport:
    """Transport writing into the same log as the recording policies."""

    def __init__(self, log: list[str]):
        self.log = log

    async def send_request(self, request):
        self.log.append("transport")
        return PipelineResponse(status=200, request=request)


# ============================================================================
# Registration Tests
# ============================================================================


def test_add_policy_rejects_phase_and_after_phase(make_policy):
    """Test phase and after_phase are mutually exclusive."""
    pipeline = Pipeline.create()

    with pytest.raises(PipelineConfigurationError, match="cannot specify after_phase"):
        pipeline.add_policy(
            make_policy("a"),
            PolicyOptions(phase=PipelinePhase.RETRY, after_phase=PipelinePhase.SIGN),
        )


@pytest.mark.parametrize("option", ["phase", "after_phase"])
def test_add_policy_rejects_unknown_phase(make_policy, option):
    """Test unknown phase names are rejected at registration time."""
    pipeline = Pipeline.create()

    with pytest.raises(PipelineConfigurationError, match="Invalid phase name: Bogus"):
        pipeline.add_policy(make_policy("a"), PolicyOptions(**{option: "Bogus"}))


def test_add_policy_accepts_phase_names_as_strings(make_policy):
    """Test phases may be given by name."""
    pipeline = Pipeline.create()
    pipeline.add_policy(make_policy("signer"), PolicyOptions(phase="Sign"))
    pipeline.add_policy(make_policy("first"), PolicyOptions(phase="Serialize"))

    assert names(pipeline.get_ordered_policies()) == ["first", "signer"]


def test_remove_policy_matches_name_or_phase(make_policy):
    """Test remove_policy removes entries matching the name OR the phase."""
    pipeline = Pipeline.create()
    pipeline.add_policy(make_policy("a"))
    pipeline.add_policy(make_policy("b"), PolicyOptions(phase=PipelinePhase.RETRY))
    pipeline.add_policy(make_policy("c"), PolicyOptions(phase=PipelinePhase.RETRY))
    pipeline.add_policy(make_policy("d"), PolicyOptions(phase=PipelinePhase.SIGN))

    removed = pipeline.remove_policy(name="a", phase=PipelinePhase.RETRY)

    assert names(removed) == ["a", "b", "c"]
    assert names(pipeline.get_ordered_policies()) == ["d"]


@pytest.mark.parametrize("phase", ["None", PipelinePhase.NONE])
def test_remove_policy_none_phase_matches_unphased(make_policy, phase):
    """Test policies added without a phase are removed by the None phase."""
    pipeline = Pipeline.create()
    pipeline.add_policy(make_policy("a"))
    pipeline.add_policy(make_policy("b"), PolicyOptions(phase=PipelinePhase.RETRY))
    pipeline.add_policy(make_policy("c"), PolicyOptions(after_phase=PipelinePhase.SIGN))

    removed = pipeline.remove_policy(phase=phase)

    assert names(removed) == ["a", "c"]
    assert names(pipeline.get_ordered_policies()) == ["b"]


def test_remove_policy_without_match_returns_empty(make_policy):
    pipeline = Pipeline.create()
    pipeline.add_policy(make_policy("a"))

    assert pipeline.remove_policy(name="missing") == []
    assert names(pipeline.get_ordered_policies()) == ["a"]


# ============================================================================
# Ordering Tests
# ============================================================================


def test_phases_follow_global_order(make_policy):
    """Test policies are ordered Serialize, None, Deserialize, Retry, Sign."""
    pipeline = Pipeline.create()
    pipeline.add_policy(make_policy("sign"), PolicyOptions(phase=PipelinePhase.SIGN))
    pipeline.add_policy(make_policy("retry"), PolicyOptions(phase=PipelinePhase.RETRY))
    pipeline.add_policy(make_policy("deserialize"), PolicyOptions(phase=PipelinePhase.DESERIALIZE))
    pipeline.add_policy(make_policy("unphased"))
    pipeline.add_policy(make_policy("serialize"), PolicyOptions(phase=PipelinePhase.SERIALIZE))

    assert names(pipeline.get_ordered_policies()) == [
        "serialize",
        "unphased",
        "deserialize",
        "retry",
        "sign",
    ]


def test_same_phase_keeps_registration_order(make_policy):
    pipeline = Pipeline.create()
    for name in ["one", "two", "three"]:
        pipeline.add_policy(make_policy(name))

    assert names(pipeline.get_ordered_policies()) == ["one", "two", "three"]


def test_after_policies_dependency(make_policy):
    """Test after_policies moves a policy behind its dependency."""
    pipeline = Pipeline.create()
    pipeline.add_policy(make_policy("a"), PolicyOptions(after_policies=["b"]))
    pipeline.add_policy(make_policy("b"))

    assert names(pipeline.get_ordered_policies()) == ["b", "a"]


def test_before_policies_dependency(make_policy):
    """Test before_policies moves a policy in front of its dependant."""
    pipeline = Pipeline.create()
    pipeline.add_policy(make_policy("x"))
    pipeline.add_policy(make_policy("y"), PolicyOptions(before_policies=["x"]))

    assert names(pipeline.get_ordered_policies()) == ["y", "x"]


def test_unknown_dependency_names_are_ignored(make_policy):
    """Test dependencies on unregistered policies do not raise."""
    pipeline = Pipeline.create()
    pipeline.add_policy(
        make_policy("a"),
        PolicyOptions(after_policies=["missing"], before_policies=["also-missing"]),
    )

    assert names(pipeline.get_ordered_policies()) == ["a"]


def test_after_phase_waits_for_phase_to_drain(make_policy):
    """Test an after_phase policy runs right after its target phase."""
    pipeline = Pipeline.create()
    pipeline.add_policy(make_policy("logger"), PolicyOptions(after_phase=PipelinePhase.RETRY))
    pipeline.add_policy(make_policy("retry"), PolicyOptions(phase=PipelinePhase.RETRY))
    pipeline.add_policy(make_policy("sign"), PolicyOptions(phase=PipelinePhase.SIGN))
    pipeline.add_policy(make_policy("unphased"))

    assert names(pipeline.get_ordered_policies()) == ["unphased", "retry", "logger", "sign"]


def test_after_phase_sign_is_innermost(make_policy):
    pipeline = Pipeline.create()
    pipeline.add_policy(make_policy("logger"), PolicyOptions(after_phase=PipelinePhase.SIGN))
    pipeline.add_policy(make_policy("sign"), PolicyOptions(phase=PipelinePhase.SIGN))
    pipeline.add_policy(make_policy("retry"), PolicyOptions(phase=PipelinePhase.RETRY))

    assert names(pipeline.get_ordered_policies()) == ["retry", "sign", "logger"]


def test_after_phase_combined_with_dependants(make_policy):
    """Test a policy can declare both after_phase and before_policies."""
    pipeline = Pipeline.create()
    pipeline.add_policy(make_policy("tail"))
    pipeline.add_policy(
        make_policy("gate"),
        PolicyOptions(after_phase=PipelinePhase.DESERIALIZE, before_policies=["tail"]),
    )
    pipeline.add_policy(make_policy("deserialize"), PolicyOptions(phase=PipelinePhase.DESERIALIZE))
    pipeline.add_policy(make_policy("retry"), PolicyOptions(phase=PipelinePhase.RETRY))

    assert names(pipeline.get_ordered_policies()) == ["deserialize", "gate", "retry", "tail"]


def test_cycle_raises(make_policy):
    """Test a dependency cycle is reported instead of looping forever."""
    pipeline = Pipeline.create()
    pipeline.add_policy(make_policy("a"), PolicyOptions(after_policies=["b"]))
    pipeline.add_policy(make_policy("b"), PolicyOptions(after_policies=["a"]))

    with pytest.raises(PipelineConfigurationError, match="requirements cycle"):
        pipeline.get_ordered_policies()


def test_dependency_against_phase_order_raises(make_policy):
    """Test a Retry policy cannot wait for a Sign policy."""
    pipeline = Pipeline.create()
    pipeline.add_policy(
        make_policy("retry"),
        PolicyOptions(phase=PipelinePhase.RETRY, after_policies=["sign"]),
    )
    pipeline.add_policy(make_policy("sign"), PolicyOptions(phase=PipelinePhase.SIGN))

    with pytest.raises(PipelineConfigurationError, match="requirements cycle"):
        pipeline.get_ordered_policies()


def test_duplicate_names_rejected_at_ordering_time(make_policy):
    """Test duplicate names are accepted by add_policy but fail ordering."""
    pipeline = Pipeline.create()
    pipeline.add_policy(make_policy("x"))
    pipeline.add_policy(make_policy("x"), PolicyOptions(phase=PipelinePhase.SIGN))

    with pytest.raises(PipelineConfigurationError, match="Duplicate policy names"):
        pipeline.get_ordered_policies()


# ============================================================================
# Caching Tests
# ============================================================================


def test_ordering_is_cached(make_policy):
    """Test repeated calls return the identical list."""
    pipeline = Pipeline.create()
    pipeline.add_policy(make_policy("a"))

    first = pipeline.get_ordered_policies()
    assert pipeline.get_ordered_policies() is first


@pytest.mark.parametrize("mutation", ["add", "remove"])
def test_mutation_invalidates_cache(make_policy, mutation):
    pipeline = Pipeline.create()
    pipeline.add_policy(make_policy("a"))
    pipeline.add_policy(make_policy("b"))
    first = pipeline.get_ordered_policies()

    if mutation == "add":
        pipeline.add_policy(make_policy("c"))
        expected = ["a", "b", "c"]
    else:
        pipeline.remove_policy(name="a")
        expected = ["b"]

    second = pipeline.get_ordered_policies()
    assert second is not first
    assert names(second) == expected


def test_clone_copies_registry_with_fresh_cache(make_policy):
    pipeline = Pipeline.create()
    pipeline.add_policy(make_policy("a"), PolicyOptions(phase=PipelinePhase.SIGN))
    pipeline.add_policy(make_policy("b"))
    original_order = pipeline.get_ordered_policies()

    clone = pipeline.clone()
    clone.add_policy(make_policy("c"))

    assert names(clone.get_ordered_policies()) == ["b", "c", "a"]
    assert pipeline.get_ordered_policies() is original_order
    assert names(original_order) == ["b", "a"]


# ============================================================================
# Composition Tests
# ============================================================================


@pytest.mark.asyncio
async def test_send_request_composes_onion(make_policy, make_request):
    """Test the first ordered policy is outermost."""
    pipeline = Pipeline.create()
    pipeline.add_policy(make_policy("P3"), PolicyOptions(phase=PipelinePhase.SIGN))
    pipeline.add_policy(make_policy("P1"), PolicyOptions(phase=PipelinePhase.SERIALIZE))
    pipeline.add_policy(make_policy("P2"))
    transport = LoggingTransport(make_policy.log)

    response = await pipeline.send_request(transport, make_request())

    assert response.status == 200
    assert make_policy.log == [
        "P1-in",
        "P2-in",
        "P3-in",
        "transport",
        "P3-out",
        "P2-out",
        "P1-out",
    ]


@pytest.mark.asyncio
async def test_send_request_without_policies_calls_transport(make_request, scripted_transport):
    transport = scripted_transport(204)

    response = await Pipeline.create().send_request(transport, make_request())

    assert response.status == 204
    assert transport.calls == 1


@pytest.mark.asyncio
async def test_policy_can_replace_request(make_request, scripted_transport):
    """Test call_next forwards whatever request the policy passes on."""

    class Rewrite:
        name = "rewrite"

        async def send_request(self, request, call_next):
            replacement = request.clone()
            replacement.url = "https://other.example.com/"
            return await call_next(replacement)

    pipeline = Pipeline.create()
    pipeline.add_policy(Rewrite())
    transport = scripted_transport(200)
    original = make_request()

    await pipeline.send_request(transport, original)

    assert transport.requests[0].url == "https://other.example.com/"
    assert original.url.startswith("https://account.blob.core.windows.net")


@pytest.mark.asyncio
async def test_send_request_surfaces_ordering_errors(make_policy, make_request, scripted_transport):
    pipeline = Pipeline.create()
    pipeline.add_policy(make_policy("x"))
    pipeline.add_policy(make_policy("x"))
    transport = scripted_transport(200)

    with pytest.raises(PipelineConfigurationError):
        await pipeline.send_request(transport, make_request())
    assert transport.calls == 0
