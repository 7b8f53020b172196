"""
Storage-specific pipeline pieces.

Components:
- StorageRetryPolicy: dual-endpoint (primary/secondary) retry
- new_storage_pipeline: pipeline factory for storage clients
- StorageClient: minimal blob client built on the pipeline
"""

from storage_pipeline.storage.client import StorageClient
from storage_pipeline.storage.pipeline import (
    new_storage_pipeline,
    storage_retry_options_from_settings,
)
from storage_pipeline.storage.retry_policy import (
    StorageRetryOptions,
    StorageRetryPolicy,
    storage_retry_policy,
)

__all__ = [
    "StorageClient",
    "StorageRetryOptions",
    "StorageRetryPolicy",
    "new_storage_pipeline",
    "storage_retry_options_from_settings",
    "storage_retry_policy",
]
