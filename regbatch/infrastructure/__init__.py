"""
Infrastructure package for the registration batch submitter.

Centralizes network concerns (client construction, connectivity probing,
retrying transport). Keep this layer focused on I/O and resource management,
decoupled from submission and scheduling logic.
"""

from regbatch.infrastructure.http_factory import build_async_client, endpoint_path
from regbatch.infrastructure.probe import ConnectivityProbe
from regbatch.infrastructure.transport import ResilientTransport, request_with_retry

__all__ = [
    "ConnectivityProbe",
    "ResilientTransport",
    "build_async_client",
    "endpoint_path",
    "request_with_retry",
]
