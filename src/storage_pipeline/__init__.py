"""
Request-dispatch core for a cloud storage HTTP client SDK.

Every SDK operation is reduced to "build a request, run it through the
pipeline". This package provides:
- Pipeline: ordered, phase-aware middleware composition
- RetryPolicy: strategy-driven retry loop (exponential, throttling)
- StorageRetryPolicy: dual-endpoint retry for storage reads
- HttpxTransport: httpx-backed transport at the bottom of the pipeline

Architecture: Pipeline (policies) -> Retry engine -> HttpClient
"""

__version__ = "0.1.0"
