"""Prometheus metrics for the request pipeline.

Exposed through the default prometheus_client registry; the host
application decides whether and where to serve them.
Alert rules worth configuring:
- pipeline_retries_total (high retry rate indicates service instability)
- transport_request_latency_seconds (p95 latency per method/status)
"""

from prometheus_client import Counter, Histogram

# === Retry Metrics ===

pipeline_retries_total = Counter(
    "pipeline_retries_total",
    "Retry decisions taken by retry policies",
    ["policy", "decision"],
)
"""
Retry decisions by policy and outcome.

Labels:
- policy: retry policy name (retryPolicy, storageRetryPolicy, ...)
- decision: retry, redirect, throw, exhausted, aborted
"""

# === Transport Metrics ===

transport_request_latency_seconds = Histogram(
    "transport_request_latency_seconds",
    "Latency of single transport calls in seconds",
    ["method", "status"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)
"""
Transport latency histogram, one observation per attempt.

Labels:
- method: HTTP method
- status: HTTP status code, or the system error code on connection failure
"""
