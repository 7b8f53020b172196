"""
Enumerations for the request-dispatch core.

All enums are closed sets - no values outside these sets are permitted.
"""

from enum import Enum


class PipelinePhase(str, Enum):
    """
    Named buckets controlling coarse-grained policy ordering.

    Phases run in declaration order: Serialize, None, Deserialize,
    Retry, Sign. The first phase is outermost in the composed pipeline.
    """

    SERIALIZE = "Serialize"
    NONE = "None"
    DESERIALIZE = "Deserialize"
    RETRY = "Retry"
    SIGN = "Sign"

    @classmethod
    def ordered(cls) -> list["PipelinePhase"]:
        """Phases in their fixed global execution order."""
        return [cls.SERIALIZE, cls.NONE, cls.DESERIALIZE, cls.RETRY, cls.SIGN]


class StorageRetryPolicyType(str, Enum):
    """Backoff mode for the storage dual-endpoint retry policy."""

    EXPONENTIAL = "EXPONENTIAL"
    FIXED = "FIXED"
