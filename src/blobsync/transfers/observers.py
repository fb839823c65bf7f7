"""Observer registry for transfer lifecycle events.

This module provides:
- TransferEvent: The eight lifecycle events (upload/download x 4)
- TransferObserver: Base class with no-op handlers for every event
- ObserverRegistry: Weakly-held observers with ordered fan-out
- LoggingObserver: Observer that logs every event

Observers only implement the events they care about. Any object can be
registered; handlers are looked up by name at dispatch time, so a missing
handler is simply skipped.
"""

from __future__ import annotations

import logging
import threading
import weakref
from enum import Enum
from typing import TYPE_CHECKING, Any

from blobsync.transfers.record import TransferDirection

if TYPE_CHECKING:
    from blobsync.transfers.errors import TransferError
    from blobsync.transfers.record import TransferInfo

logger = logging.getLogger(__name__)


class TransferEvent(str, Enum):
    """Lifecycle event; the value is the observer handler name."""

    UPLOAD_STARTED = "upload_started"
    UPLOAD_PROGRESS = "upload_progress"
    UPLOAD_SUCCESSFUL = "upload_successful"
    UPLOAD_FAILED = "upload_failed"
    DOWNLOAD_STARTED = "download_started"
    DOWNLOAD_PROGRESS = "download_progress"
    DOWNLOAD_SUCCESSFUL = "download_successful"
    DOWNLOAD_FAILED = "download_failed"

    @classmethod
    def for_direction(cls, direction: TransferDirection, phase: str) -> TransferEvent:
        """Get the event for a direction and phase.

        Args:
            direction: Upload or download.
            phase: One of "started", "progress", "successful", "failed".
        """
        return cls(f"{direction.name.lower()}_{phase}")

    @property
    def is_progress(self) -> bool:
        return self in (TransferEvent.UPLOAD_PROGRESS, TransferEvent.DOWNLOAD_PROGRESS)

    @property
    def is_failure(self) -> bool:
        return self in (TransferEvent.UPLOAD_FAILED, TransferEvent.DOWNLOAD_FAILED)


class TransferObserver:
    """Base observer; every handler defaults to a no-op.

    Subclass and override only the handlers you need.
    """

    def upload_started(self, info: TransferInfo) -> None:
        pass

    def upload_progress(self, info: TransferInfo, increment: int) -> None:
        pass

    def upload_successful(self, info: TransferInfo) -> None:
        pass

    def upload_failed(self, info: TransferInfo, error: TransferError) -> None:
        pass

    def download_started(self, info: TransferInfo) -> None:
        pass

    def download_progress(self, info: TransferInfo, increment: int) -> None:
        pass

    def download_successful(self, info: TransferInfo) -> None:
        pass

    def download_failed(self, info: TransferInfo, error: TransferError) -> None:
        pass


class ObserverRegistry:
    """Holds non-owning references to observers and dispatches events.

    Observers are notified in registration order. Observers that have been
    garbage collected are pruned silently.
    """

    def __init__(self) -> None:
        self._refs: list[weakref.ref[Any]] = []
        self._lock = threading.Lock()

    def add(self, observer: Any) -> None:
        """Register an observer. Registering twice has no effect."""
        with self._lock:
            self._prune()
            if any(ref() is observer for ref in self._refs):
                return
            self._refs.append(weakref.ref(observer))

    def remove(self, observer: Any) -> bool:
        """Unregister an observer.

        Returns:
            True if the observer was registered.
        """
        with self._lock:
            self._prune()
            for index, ref in enumerate(self._refs):
                if ref() is observer:
                    del self._refs[index]
                    return True
            return False

    def _prune(self) -> None:
        """Drop dead references. Caller must hold the lock."""
        self._refs = [ref for ref in self._refs if ref() is not None]

    def observers(self) -> list[Any]:
        """Get strong references to the live observers, in registration order."""
        with self._lock:
            live = [ref() for ref in self._refs]
        return [observer for observer in live if observer is not None]

    def __len__(self) -> int:
        return len(self.observers())

    def notify(
        self,
        event: TransferEvent,
        info: TransferInfo,
        extra: Any = None,
    ) -> int:
        """Dispatch an event to every live observer that handles it.

        Args:
            event: The lifecycle event.
            info: Transfer payload.
            extra: Increment for progress events, error for failure events.

        Returns:
            Number of observers the event was delivered to.
        """
        delivered = 0
        for observer in self.observers():
            handler = getattr(observer, event.value, None)
            if not callable(handler):
                continue
            try:
                if event.is_progress or event.is_failure:
                    handler(info, extra)
                else:
                    handler(info)
                delivered += 1
            except Exception:
                logger.exception(f"Observer {observer!r} failed handling {event.value}")
        return delivered


class LoggingObserver(TransferObserver):
    """Logs every transfer event.

    The registry holds observers weakly, so keep a reference to the
    LoggingObserver for as long as it should log:

        log_observer = LoggingObserver()
        manager.add_observer(log_observer)
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    @staticmethod
    def _describe(info: TransferInfo) -> str:
        return f"{info.bucket_name}/{info.object_key}.{info.attribute_name}"

    def upload_started(self, info: TransferInfo) -> None:
        self._log.info(f"Upload started: {self._describe(info)}")

    def upload_progress(self, info: TransferInfo, increment: int) -> None:
        self._log.debug(f"Upload progress: {self._describe(info)} +{increment} bytes")

    def upload_successful(self, info: TransferInfo) -> None:
        self._log.info(f"Upload complete: {self._describe(info)}")

    def upload_failed(self, info: TransferInfo, error: TransferError) -> None:
        self._log.warning(
            f"Upload failed: {self._describe(info)} "
            f"({error.classification.value}: {error})"
        )

    def download_started(self, info: TransferInfo) -> None:
        self._log.info(f"Download started: {self._describe(info)}")

    def download_progress(self, info: TransferInfo, increment: int) -> None:
        self._log.debug(f"Download progress: {self._describe(info)} +{increment} bytes")

    def download_successful(self, info: TransferInfo) -> None:
        self._log.info(f"Download complete: {self._describe(info)}")

    def download_failed(self, info: TransferInfo, error: TransferError) -> None:
        self._log.warning(
            f"Download failed: {self._describe(info)} "
            f"({error.classification.value}: {error})"
        )
