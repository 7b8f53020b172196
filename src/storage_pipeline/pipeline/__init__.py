"""
Policy pipeline.

Components:
- Pipeline: registry, phase-aware ordering and composition
- Policy: protocol every middleware implements
- PolicyOptions: phase and dependency placement
- PipelineConfigurationError: invalid registry or unsatisfiable ordering
"""

from storage_pipeline.pipeline.exceptions import PipelineConfigurationError
from storage_pipeline.pipeline.pipeline import Pipeline
from storage_pipeline.pipeline.policy import Policy, PolicyOptions, SendRequest

__all__ = [
    "Pipeline",
    "Policy",
    "PolicyOptions",
    "SendRequest",
    "PipelineConfigurationError",
]
