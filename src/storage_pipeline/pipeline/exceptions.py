"""
Pipeline configuration exceptions.

Raised while registering or ordering policies, never while a request is
in flight, so misconfiguration surfaces at client construction.
"""

from storage_pipeline.exceptions import StoragePipelineError


class PipelineConfigurationError(StoragePipelineError):
    """
    Raised when the policy registry cannot be turned into an ordering.

    Examples:
    - phase and after_phase both set
    - unknown phase name
    - duplicate policy names
    - cyclic before/after dependencies
    """
    pass
