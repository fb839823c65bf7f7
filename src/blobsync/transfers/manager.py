"""Transfer manager for binary attachment uploads and downloads.

This module provides:
- ManagerState: Lifecycle of the manager's worker threads
- TransferHandle: Caller-side view of one requested transfer
- TransferManager: Owns active transfers, enforces the concurrency limit,
  de-duplicates requests and relays events to observers

Requests never block: they queue a PENDING record and return a handle.
A fixed set of worker threads (one per concurrency slot) takes records from
the queue in FIFO order and runs them with a TransferWorker.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from enum import Enum, auto
from typing import TYPE_CHECKING, Any

from blobsync.core.config import TransferConfig
from blobsync.transfers.errors import (
    CancelledError,
    DuplicateTransferError,
    ManagerStoppedError,
    PermanentTransportError,
    TransferError,
)
from blobsync.transfers.observers import ObserverRegistry, TransferEvent
from blobsync.transfers.record import (
    TransferDirection,
    TransferKey,
    TransferRecord,
    TransferStatus,
)
from blobsync.transfers.worker import TransferWorker, WorkerContext

if TYPE_CHECKING:
    from blobsync.transfers.protocols import SyncEngine, Transport

logger = logging.getLogger(__name__)


class ManagerState(Enum):
    """State of the transfer manager."""

    STOPPED = auto()
    RUNNING = auto()
    STOPPING = auto()
    CLOSED = auto()


class TransferHandle:
    """Handle returned for every accepted transfer request.

    Inspection properties read the live record. wait() and result() are the
    only blocking calls and are opt-in.
    """

    def __init__(self, record: TransferRecord, manager: TransferManager) -> None:
        self._record = record
        self._manager = manager
        self._done = threading.Event()

    def __repr__(self) -> str:
        return (
            f"TransferHandle({self.direction}, {self._record.bucket_name}/"
            f"{self._record.object_key}.{self._record.attribute_name}, "
            f"{self.status.name})"
        )

    @property
    def record(self) -> TransferRecord:
        return self._record

    @property
    def transfer_id(self) -> str:
        return self._record.transfer_id

    @property
    def key(self) -> TransferKey:
        return self._record.key

    @property
    def direction(self) -> TransferDirection:
        return self._record.direction

    @property
    def status(self) -> TransferStatus:
        return self._record.status

    @property
    def transferred_length(self) -> int:
        return self._record.transferred_length

    @property
    def expected_length(self) -> int | None:
        return self._record.expected_length

    @property
    def error(self) -> TransferError | None:
        return self._record.error

    @property
    def data(self) -> bytes | None:
        """Downloaded bytes once the download succeeded, None otherwise."""
        if (
            self._record.direction == TransferDirection.DOWNLOAD
            and self._record.status == TransferStatus.SUCCEEDED
        ):
            return self._record.data
        return None

    @property
    def done(self) -> bool:
        """True once the transfer is terminal and its worker has let go of it."""
        return self._done.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the transfer is done.

        Returns:
            True if done, False on timeout.
        """
        return self._done.wait(timeout)

    def cancel(self) -> bool:
        """Cancel this transfer. See TransferManager.cancel()."""
        return self._manager.cancel(self)

    def result(self, timeout: float | None = None) -> bytes | None:
        """Wait for the transfer and return its outcome.

        Returns:
            Downloaded bytes for downloads, None for uploads.

        Raises:
            TimeoutError: If the transfer is not done within timeout.
            CancelledError: If the transfer was cancelled.
            TransferError: The failure cause if the transfer failed.
        """
        if not self.wait(timeout):
            raise TimeoutError(f"Transfer {self.transfer_id} still {self.status.name}")
        if self.status == TransferStatus.CANCELLED:
            raise CancelledError(f"Transfer {self.transfer_id} was cancelled")
        if self.status == TransferStatus.FAILED:
            if self._record.error is None:
                raise TransferError(f"Transfer {self.transfer_id} failed")
            raise self._record.error
        return self.data

    def _mark_done(self) -> None:
        self._done.set()


class TransferManager:
    """Coordinates binary attachment transfers.

    Owns the active-record set and the pending queue. Every mutation of
    either happens under a single lock; transport I/O happens outside it.
    Events are fanned out on the worker thread that produced them.

    Usage:
        manager = TransferManager(transport, TransferConfig(max_concurrent_transfers=2))
        manager.add_observer(observer)
        manager.start()

        handle = manager.request_upload("notes", "42", "photo", data)
        handle.cancel()

        manager.stop()
    """

    def __init__(
        self,
        transport: Transport,
        config: TransferConfig | None = None,
        engine: SyncEngine | None = None,
        client: Any = None,
    ) -> None:
        """Initialize the manager.

        Args:
            transport: Moves the bytes.
            config: Concurrency and chunking settings.
            engine: Optional sync engine told about completed transfers.
            client: Owning synchronization client, passed along in event payloads.
        """
        self._transport = transport
        self._config = config or TransferConfig()
        self._engine = engine
        self._client = client

        self._state = ManagerState.STOPPED
        self._lock = threading.Lock()
        self._condition = threading.Condition(self._lock)

        # Active (pending or in progress) records by identity key
        self._active: dict[TransferKey, TransferRecord] = {}
        self._pending: deque[TransferRecord] = deque()
        self._handles: dict[str, TransferHandle] = {}
        self._in_progress = 0

        self._observers = ObserverRegistry()
        self._workers: list[threading.Thread] = []

        # Statistics
        self._completed_count = 0
        self._failed_count = 0
        self._cancelled_count = 0

    def __enter__(self) -> TransferManager:
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()

    # === Inspection ===

    @property
    def state(self) -> ManagerState:
        """Get current manager state."""
        return self._state

    @property
    def config(self) -> TransferConfig:
        return self._config

    @property
    def active_count(self) -> int:
        """Get number of pending or in-progress transfers."""
        with self._lock:
            return sum(1 for record in self._active.values() if record.is_active)

    @property
    def pending_count(self) -> int:
        """Get number of transfers waiting for a slot."""
        with self._lock:
            return len(self._pending)

    @property
    def in_progress_count(self) -> int:
        """Get number of occupied concurrency slots."""
        with self._lock:
            return self._in_progress

    @property
    def completed_count(self) -> int:
        return self._completed_count

    @property
    def failed_count(self) -> int:
        return self._failed_count

    @property
    def cancelled_count(self) -> int:
        return self._cancelled_count

    def get(
        self,
        bucket_name: str,
        object_key: str,
        attribute_name: str,
        direction: TransferDirection,
    ) -> TransferHandle | None:
        """Get the handle of the active transfer for an identity key, if any."""
        key = (bucket_name, object_key, attribute_name, direction)
        with self._lock:
            record = self._active.get(key)
            if record is None or not record.is_active:
                return None
            return self._handles.get(record.transfer_id)

    # === Observers ===

    def add_observer(self, observer: Any) -> None:
        """Register an observer. The manager does not keep it alive."""
        self._observers.add(observer)

    def remove_observer(self, observer: Any) -> bool:
        """Unregister an observer."""
        return self._observers.remove(observer)

    # === Lifecycle ===

    def start(self) -> None:
        """Start the worker threads."""
        with self._lock:
            if self._state != ManagerState.STOPPED:
                logger.warning(f"Transfer manager cannot start from {self._state.name}")
                return

            self._state = ManagerState.RUNNING

            for i in range(self._config.max_concurrent_transfers):
                thread = threading.Thread(
                    target=self._worker_loop,
                    name=f"TransferWorker-{i}",
                    daemon=True,
                )
                thread.start()
                self._workers.append(thread)

            logger.info(
                f"Transfer manager started with {self._config.max_concurrent_transfers} slots"
            )

    def stop(self, timeout: float | None = None) -> None:
        """Cancel every active transfer and stop the worker threads.

        Args:
            timeout: Maximum time to wait for workers to finish.
        """
        timeout = self._config.stop_timeout if timeout is None else timeout
        with self._condition:
            if self._state in (ManagerState.STOPPING, ManagerState.CLOSED):
                return
            self._state = ManagerState.STOPPING
            logger.info("Transfer manager stopping...")

            for record in list(self._active.values()):
                self._cancel_locked(record)

            self._condition.notify_all()
            workers = list(self._workers)

        for worker in workers:
            worker.join(timeout=timeout / len(workers))

        with self._lock:
            self._state = ManagerState.CLOSED
            self._workers.clear()
            logger.info("Transfer manager stopped")

    # === Requests ===

    def request_upload(
        self,
        bucket_name: str,
        object_key: str,
        attribute_name: str,
        data: bytes,
    ) -> TransferHandle:
        """Queue an upload of an attribute's binary data.

        Args:
            bucket_name: Bucket the record belongs to.
            object_key: Key of the record.
            attribute_name: Field holding the binary reference.
            data: The bytes to upload.

        Returns:
            Handle for cancellation and inspection.

        Raises:
            DuplicateTransferError: If an upload for the same attribute is in progress.
            ManagerStoppedError: If the manager has been stopped.
        """
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f"data must be bytes-like, got {type(data).__name__}")
        data = bytes(data)
        record = TransferRecord(
            bucket_name=bucket_name,
            object_key=object_key,
            attribute_name=attribute_name,
            direction=TransferDirection.UPLOAD,
            expected_length=len(data),
            data=data,
            client=self._client,
        )
        return self._submit(record)

    def request_download(
        self,
        bucket_name: str,
        object_key: str,
        attribute_name: str,
        expected_length: int | None = None,
    ) -> TransferHandle:
        """Queue a download of an attribute's binary data.

        Args:
            bucket_name: Bucket the record belongs to.
            object_key: Key of the record.
            attribute_name: Field holding the binary reference.
            expected_length: Total bytes expected, None if unknown.

        Returns:
            Handle for cancellation and inspection.

        Raises:
            DuplicateTransferError: If a download for the same attribute is in progress.
            ManagerStoppedError: If the manager has been stopped.
        """
        if expected_length is not None and expected_length < 0:
            raise ValueError(f"expected_length must be >= 0, got {expected_length}")
        record = TransferRecord(
            bucket_name=bucket_name,
            object_key=object_key,
            attribute_name=attribute_name,
            direction=TransferDirection.DOWNLOAD,
            expected_length=expected_length,
            client=self._client,
        )
        return self._submit(record)

    def cancel(self, handle: TransferHandle) -> bool:
        """Cancel a transfer.

        A pending transfer is dropped from the queue and never starts. An
        in-progress transfer is flagged; its worker stops at the next chunk
        boundary and no further event fires. Cancelling a terminal transfer
        is a no-op.

        Returns:
            True if this call cancelled the transfer.
        """
        with self._condition:
            cancelled = self._cancel_locked(handle.record)
        if cancelled:
            logger.info(f"Cancellation requested for: {handle!r}")
        return cancelled

    def _submit(self, record: TransferRecord) -> TransferHandle:
        for name in ("bucket_name", "object_key", "attribute_name"):
            if not getattr(record, name):
                raise ValueError(f"{name} must not be empty")

        with self._condition:
            if self._state in (ManagerState.STOPPING, ManagerState.CLOSED):
                raise ManagerStoppedError("Transfer manager has been stopped")

            existing = self._active.get(record.key)
            if existing is not None and existing.is_active:
                if existing.status == TransferStatus.IN_PROGRESS:
                    raise DuplicateTransferError(record.key)
                # Still pending: the newer request supersedes it
                self._cancel_locked(existing)
                logger.info(f"Superseded pending {existing.direction} {existing.transfer_id}")

            handle = TransferHandle(record, self)
            self._active[record.key] = record
            self._handles[record.transfer_id] = handle
            self._pending.append(record)
            self._condition.notify()

        logger.debug(
            f"Transfer queued: {record.direction} {record.bucket_name}/"
            f"{record.object_key}.{record.attribute_name}"
        )
        return handle

    def _cancel_locked(self, record: TransferRecord) -> bool:
        """Cancel a record. Caller must hold the lock."""
        was_pending = record.status == TransferStatus.PENDING
        if not record.cancel():
            return False

        self._cancelled_count += 1
        self._forget_locked(record)
        if was_pending:
            self._pending.remove(record)
            self._release_locked(record)
        return True

    def _forget_locked(self, record: TransferRecord) -> None:
        """Remove a record from the active set. Caller must hold the lock."""
        if self._active.get(record.key) is record:
            del self._active[record.key]

    def _release_locked(self, record: TransferRecord) -> None:
        """Forget a terminal record and wake its handle. Caller must hold the lock."""
        self._forget_locked(record)
        handle = self._handles.pop(record.transfer_id, None)
        if handle is not None:
            handle._mark_done()

    # === Worker side ===

    def _worker_loop(self) -> None:
        """Main loop for worker threads."""
        while True:
            with self._condition:
                while self._state == ManagerState.RUNNING and not self._pending:
                    self._condition.wait()
                if self._state != ManagerState.RUNNING:
                    return
                record = self._pending.popleft()
                record.start()
                self._in_progress += 1

            try:
                self._run(record)
            except Exception:
                logger.exception(f"Unexpected error in transfer worker for {record.transfer_id}")

    def _run(self, record: TransferRecord) -> None:
        """Run one in-progress record and release its slot."""
        worker = TransferWorker(self._transport, chunk_size=self._config.chunk_size)
        ctx = WorkerContext(
            record=record,
            cancel_check=lambda: record.cancel_requested,
            emit=lambda event, extra: self._relay(record, event, extra),
            settle=self._settle,
        )

        stuck_error: TransferError | None = None
        try:
            result = worker.execute(ctx)
            if result.success and self._engine is not None:
                self._notify_engine(self._engine, record)
        finally:
            with self._condition:
                if record.status == TransferStatus.IN_PROGRESS:
                    stuck_error = PermanentTransportError("Worker exited without finishing")
                    record.fail(stuck_error)
                    self._failed_count += 1
                self._in_progress -= 1
            if stuck_error is not None:
                logger.error(f"Transfer {record.transfer_id} left unfinished by its worker")
                self._relay(
                    record,
                    TransferEvent.for_direction(record.direction, "failed"),
                    stuck_error,
                )
            with self._condition:
                self._release_locked(record)

    def _settle(self, record: TransferRecord, error: TransferError | None) -> bool:
        """Apply the terminal transition unless the record was cancelled."""
        with self._lock:
            if record.status != TransferStatus.IN_PROGRESS:
                return False
            if error is None:
                record.succeed()
                self._completed_count += 1
            else:
                record.fail(error)
                self._failed_count += 1
            return True

    def _relay(self, record: TransferRecord, event: TransferEvent, extra: Any) -> None:
        """Forward a worker event to the observers.

        A "started" event is dropped if the record was cancelled after its
        worker picked it up.
        """
        if event in (TransferEvent.UPLOAD_STARTED, TransferEvent.DOWNLOAD_STARTED):
            with self._lock:
                if record.status != TransferStatus.IN_PROGRESS:
                    return
        self._observers.notify(event, record.info, extra)

    def _notify_engine(self, engine: SyncEngine, record: TransferRecord) -> None:
        """Report a successful transfer to the sync engine."""
        try:
            if record.direction == TransferDirection.UPLOAD:
                engine.upload_finished(record.info)
            else:
                engine.download_finished(record.info, record.data or b"")
        except Exception:
            logger.exception(f"Sync engine failed to record transfer {record.transfer_id}")
