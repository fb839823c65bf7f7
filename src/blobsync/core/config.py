"""Configuration classes for blobsync.

This module defines the transfer manager settings and the connection
settings used by the HTTP transport.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_MAX_CONCURRENT_TRANSFERS = 4
DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass
class TransferConfig:
    """Settings for a TransferManager.

    Attributes:
        max_concurrent_transfers: Maximum transfers in progress at once.
            Requests beyond the limit wait in FIFO order.
        chunk_size: Bytes per upload chunk handed to the transport.
        stop_timeout: Seconds stop() waits for worker threads to exit.
    """

    max_concurrent_transfers: int = DEFAULT_MAX_CONCURRENT_TRANSFERS
    chunk_size: int = DEFAULT_CHUNK_SIZE
    stop_timeout: float = 10.0

    def __post_init__(self) -> None:
        """Validate settings."""
        if self.max_concurrent_transfers < 1:
            raise ValueError(
                f"max_concurrent_transfers must be >= 1, got {self.max_concurrent_transfers}"
            )
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {self.chunk_size}")
        if self.stop_timeout < 0:
            raise ValueError(f"stop_timeout must be >= 0, got {self.stop_timeout}")


@dataclass
class ServerConfig:
    """Configuration for connecting to a binary storage server.

    Attributes:
        server_url: Base URL of the server (e.g., "https://api.example.com/1/app").
        token: Authentication token.
        timeout: Request/connection timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str
    token: str
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")
