"""Collaborator interfaces consumed by the transfer manager.

The manager never moves bytes or persists records itself. It drives a
Transport and reports completed transfers to an optional SyncEngine.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from blobsync.transfers.record import TransferInfo


class Transport(Protocol):
    """Bytes-on-the-wire capability.

    Implementations raise TransportError (or any exception, which is
    classified by the worker) on failure. Timeouts are the transport's
    responsibility.
    """

    def send(self, info: TransferInfo, chunk: bytes, offset: int) -> None:
        """Send one chunk of an upload.

        Args:
            info: Identity of the attachment being uploaded.
            chunk: The bytes to send.
            offset: Position of the chunk within the attachment.
        """
        ...

    def receive(self, info: TransferInfo, expected_length: int | None) -> Iterable[bytes]:
        """Stream the chunks of a download.

        If the returned iterator has a ``close()`` method it is called when
        the transfer is cancelled or finishes.

        Args:
            info: Identity of the attachment being downloaded.
            expected_length: Total bytes expected, if known.
        """
        ...


class SyncEngine(Protocol):
    """Record-synchronization engine notified when transfers complete."""

    def upload_finished(self, info: TransferInfo) -> None:
        """Called after an upload succeeded."""
        ...

    def download_finished(self, info: TransferInfo, data: bytes) -> None:
        """Called after a download succeeded, with the received bytes."""
        ...
