"""Core module - Shared configuration."""

from blobsync.core.config import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_CONCURRENT_TRANSFERS,
    ServerConfig,
    TransferConfig,
)

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_MAX_CONCURRENT_TRANSFERS",
    "ServerConfig",
    "TransferConfig",
]
