"""
Data models for the request-dispatch core.

Includes:
- Enums (PipelinePhase, StorageRetryPolicyType)
- HTTP models (PipelineRequest, PipelineResponse)
"""

from storage_pipeline.models.enums import PipelinePhase, StorageRetryPolicyType
from storage_pipeline.models.http_models import PipelineRequest, PipelineResponse

__all__ = [
    # Enums
    "PipelinePhase",
    "StorageRetryPolicyType",
    # HTTP models
    "PipelineRequest",
    "PipelineResponse",
]
