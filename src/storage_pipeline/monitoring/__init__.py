"""Monitoring and metrics for the request pipeline."""

from storage_pipeline.monitoring.metrics import (
    pipeline_retries_total,
    transport_request_latency_seconds,
)

__all__ = [
    "pipeline_retries_total",
    "transport_request_latency_seconds",
]
