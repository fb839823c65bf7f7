"""Binary attachment transfers.

Architecture:
    caller -> TransferManager -> TransferWorker -> Transport
                   |
                   +-> ObserverRegistry -> observers

Components:
- **TransferRecord**: State machine for one upload or download
- **ProgressTracker**: Running byte total for one transfer
- **TransferWorker**: Streams one record through the transport
- **TransferManager**: Queue, concurrency limit, de-duplication, event relay
- **ObserverRegistry**: Weakly-held observers with optional handlers
"""

from blobsync.transfers.errors import (
    NETWORK_EXCEPTIONS,
    CancelledError,
    CorruptionError,
    DuplicateTransferError,
    ErrorClassification,
    InvalidTransitionError,
    ManagerStoppedError,
    PermanentTransportError,
    TransferError,
    TransientTransportError,
    TransportError,
    classify_exception,
)
from blobsync.transfers.manager import ManagerState, TransferHandle, TransferManager
from blobsync.transfers.observers import (
    LoggingObserver,
    ObserverRegistry,
    TransferEvent,
    TransferObserver,
)
from blobsync.transfers.progress import ProgressTracker
from blobsync.transfers.protocols import SyncEngine, Transport
from blobsync.transfers.record import (
    TransferDirection,
    TransferInfo,
    TransferKey,
    TransferRecord,
    TransferStatus,
)
from blobsync.transfers.retry import RetryPolicy, retry_transfer
from blobsync.transfers.worker import TransferWorker, WorkerContext, WorkerResult

__all__ = [
    # Errors
    "NETWORK_EXCEPTIONS",
    "CancelledError",
    "CorruptionError",
    "DuplicateTransferError",
    "ErrorClassification",
    "InvalidTransitionError",
    "ManagerStoppedError",
    "PermanentTransportError",
    "TransferError",
    "TransientTransportError",
    "TransportError",
    "classify_exception",
    # Records
    "TransferDirection",
    "TransferInfo",
    "TransferKey",
    "TransferRecord",
    "TransferStatus",
    # Progress
    "ProgressTracker",
    # Observers
    "LoggingObserver",
    "ObserverRegistry",
    "TransferEvent",
    "TransferObserver",
    # Workers
    "TransferWorker",
    "WorkerContext",
    "WorkerResult",
    # Manager
    "ManagerState",
    "TransferHandle",
    "TransferManager",
    # Collaborators
    "SyncEngine",
    "Transport",
    # Retry
    "RetryPolicy",
    "retry_transfer",
]
