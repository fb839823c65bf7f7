"""blobsync - Binary attachment transfers for synchronization clients."""

from blobsync.core.config import ServerConfig, TransferConfig
from blobsync.transfers import (
    CancelledError,
    CorruptionError,
    DuplicateTransferError,
    ErrorClassification,
    LoggingObserver,
    TransferDirection,
    TransferError,
    TransferEvent,
    TransferHandle,
    TransferInfo,
    TransferManager,
    TransferObserver,
    TransferStatus,
    TransportError,
)

__version__ = "0.1.0"

__all__ = [
    "CancelledError",
    "CorruptionError",
    "DuplicateTransferError",
    "ErrorClassification",
    "LoggingObserver",
    "ServerConfig",
    "TransferConfig",
    "TransferDirection",
    "TransferError",
    "TransferEvent",
    "TransferHandle",
    "TransferInfo",
    "TransferManager",
    "TransferObserver",
    "TransferStatus",
    "TransportError",
    "__version__",
]
