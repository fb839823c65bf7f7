"""Worker that runs a single transfer against the transport.

This module provides:
- WorkerResult: Result of a worker execution
- WorkerContext: Hooks the manager hands to a worker
- TransferWorker: Streams one record's bytes, emitting lifecycle events
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from blobsync.core.config import DEFAULT_CHUNK_SIZE
from blobsync.transfers.errors import (
    CancelledError,
    CorruptionError,
    TransferError,
    classify_exception,
)
from blobsync.transfers.observers import TransferEvent
from blobsync.transfers.progress import ProgressTracker
from blobsync.transfers.record import TransferDirection

if TYPE_CHECKING:
    from blobsync.transfers.protocols import Transport
    from blobsync.transfers.record import TransferRecord

logger = logging.getLogger(__name__)


@dataclass
class WorkerResult:
    """Result of a worker execution.

    Attributes:
        success: Whether the transfer succeeded.
        cancelled: Whether the transfer was cancelled.
        error: Failure cause, if any.
        transferred: Bytes transferred.
        elapsed_time: Time taken in seconds.
    """

    success: bool
    cancelled: bool = False
    error: TransferError | None = None
    transferred: int = 0
    elapsed_time: float = 0.0


@dataclass
class WorkerContext:
    """Context passed to worker execution.

    Attributes:
        record: The record being transferred.
        cancel_check: Returns True once cancellation was requested.
        emit: Relays an event (and its extra argument) to observers.
        settle: Applies the terminal transition; returns False if the record
            was cancelled in the meantime and no terminal event must fire.
    """

    record: TransferRecord
    cancel_check: Callable[[], bool] = field(default=lambda: False)
    emit: Callable[[TransferEvent, Any], None] = field(default=lambda event, extra: None)
    settle: Callable[[TransferRecord, TransferError | None], bool] = field(
        default=lambda record, error: True
    )


class TransferWorker:
    """Executes exactly one transfer.

    Protocol:
        1. emit "started"
        2. move the bytes chunk by chunk, emitting "progress" with the
           increment after each chunk
        3. settle as succeeded or failed and emit the matching event

    Cancellation is checked at chunk boundaries. A cancelled transfer closes
    the transport stream and emits nothing further. There is no retry here.

    Usage:
        worker = TransferWorker(transport, chunk_size=65536)
        result = worker.execute(WorkerContext(record=record, emit=relay))
    """

    def __init__(self, transport: Transport, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._transport = transport
        self._chunk_size = chunk_size

    def execute(self, ctx: WorkerContext) -> WorkerResult:
        """Run the transfer to completion, failure or cancellation."""
        record = ctx.record
        direction = record.direction
        label = f"{record.bucket_name}/{record.object_key}.{record.attribute_name}"
        tracker = ProgressTracker(record.expected_length, label=label)
        start_time = time.time()

        if ctx.cancel_check():
            logger.info(f"{direction} of {label} cancelled before start")
            return WorkerResult(success=False, cancelled=True)

        ctx.emit(TransferEvent.for_direction(direction, "started"), None)

        try:
            if direction == TransferDirection.UPLOAD:
                self._upload(ctx, tracker)
            else:
                self._download(ctx, tracker)
        except CancelledError:
            elapsed = time.time() - start_time
            logger.info(f"{direction} of {label} cancelled after {elapsed:.2f}s")
            return WorkerResult(
                success=False,
                cancelled=True,
                transferred=tracker.total,
                elapsed_time=elapsed,
            )
        except Exception as e:
            error = classify_exception(e)
            elapsed = time.time() - start_time
            if not ctx.settle(record, error):
                return WorkerResult(
                    success=False, cancelled=True, transferred=tracker.total,
                    elapsed_time=elapsed,
                )
            logger.error(
                f"{direction} of {label} failed ({error.classification.value}): {error}"
            )
            ctx.emit(TransferEvent.for_direction(direction, "failed"), error)
            return WorkerResult(
                success=False,
                error=error,
                transferred=tracker.total,
                elapsed_time=elapsed,
            )

        elapsed = time.time() - start_time
        if not ctx.settle(record, None):
            if direction == TransferDirection.DOWNLOAD:
                record.data = None
            return WorkerResult(
                success=False, cancelled=True, transferred=tracker.total,
                elapsed_time=elapsed,
            )
        logger.info(f"{direction} of {label} complete: {tracker.total} bytes in {elapsed:.2f}s")
        ctx.emit(TransferEvent.for_direction(direction, "successful"), None)
        return WorkerResult(success=True, transferred=tracker.total, elapsed_time=elapsed)

    def _check_cancel(self, ctx: WorkerContext) -> None:
        if ctx.cancel_check():
            raise CancelledError(f"Transfer {ctx.record.transfer_id} cancelled")

    def _advance(self, ctx: WorkerContext, tracker: ProgressTracker, increment: int) -> None:
        """Account for one chunk and emit its increment."""
        if increment == 0:
            return
        ctx.record.transferred_length = tracker.add(increment)
        ctx.emit(TransferEvent.for_direction(ctx.record.direction, "progress"), increment)

    def _upload(self, ctx: WorkerContext, tracker: ProgressTracker) -> None:
        record = ctx.record
        data = record.data or b""
        info = record.info

        if not data:
            self._check_cancel(ctx)
            self._transport.send(info, b"", 0)
            return

        for offset in range(0, len(data), self._chunk_size):
            self._check_cancel(ctx)
            chunk = data[offset : offset + self._chunk_size]
            self._transport.send(info, chunk, offset)
            self._check_cancel(ctx)
            self._advance(ctx, tracker, len(chunk))

    def _download(self, ctx: WorkerContext, tracker: ProgressTracker) -> None:
        record = ctx.record
        buffer = bytearray()
        self._check_cancel(ctx)
        chunks = iter(self._transport.receive(record.info, record.expected_length))
        try:
            for chunk in chunks:
                self._check_cancel(ctx)
                buffer.extend(chunk)
                self._advance(ctx, tracker, len(chunk))
            self._check_cancel(ctx)
        finally:
            close = getattr(chunks, "close", None)
            if callable(close):
                close()

        expected = tracker.expected_length
        if expected is not None and tracker.total < expected:
            raise CorruptionError(expected, tracker.total)
        record.expected_length = tracker.total
        record.data = bytes(buffer)
