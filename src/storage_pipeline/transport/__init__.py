"""
Transports: the HTTP client at the bottom of every pipeline.

Components:
- HttpClient: Abstract base class for transports
- HttpxTransport: httpx.AsyncClient implementation
"""

from storage_pipeline.transport.base_client import HttpClient
from storage_pipeline.transport.httpx_transport import HttpxTransport

__all__ = [
    "HttpClient",
    "HttpxTransport",
]
