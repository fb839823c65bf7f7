"""Transport implementations."""

from blobsync.transport.http import HTTPTransport, binary_path, error_for_status

__all__ = [
    "HTTPTransport",
    "binary_path",
    "error_for_status",
]
