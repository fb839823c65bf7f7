"""Transfer record state machine.

States:
    PENDING -> IN_PROGRESS -> SUCCEEDED
                           -> CANCELLED
                           -> FAILED
    PENDING -> CANCELLED

All state transitions are validated.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import IntEnum, auto
from typing import Any

from blobsync.transfers.errors import InvalidTransitionError, TransferError


class TransferDirection(IntEnum):
    """Direction of a transfer."""

    UPLOAD = auto()
    DOWNLOAD = auto()

    def __str__(self) -> str:
        return self.name.lower()


class TransferStatus(IntEnum):
    """Status of a transfer."""

    PENDING = auto()
    IN_PROGRESS = auto()
    SUCCEEDED = auto()
    FAILED = auto()
    CANCELLED = auto()


# Valid state transitions
VALID_TRANSITIONS: dict[TransferStatus, set[TransferStatus]] = {
    TransferStatus.PENDING: {TransferStatus.IN_PROGRESS, TransferStatus.CANCELLED},
    TransferStatus.IN_PROGRESS: {
        TransferStatus.SUCCEEDED,
        TransferStatus.CANCELLED,
        TransferStatus.FAILED,
    },
    TransferStatus.SUCCEEDED: set(),  # Terminal
    TransferStatus.FAILED: set(),  # Terminal
    TransferStatus.CANCELLED: set(),  # Terminal
}

TERMINAL_STATUSES = frozenset(
    {TransferStatus.SUCCEEDED, TransferStatus.FAILED, TransferStatus.CANCELLED}
)

TransferKey = tuple[str, str, str, TransferDirection]


@dataclass(frozen=True)
class TransferInfo:
    """Payload passed to observers for every transfer event.

    Attributes:
        bucket_name: Bucket the record belongs to.
        object_key: Key of the synchronized record.
        attribute_name: Field on the record holding the binary reference.
        direction: Upload or download.
        length: Expected total length in bytes, if known.
        client: The synchronization client owning the transfer, if any.
    """

    bucket_name: str
    object_key: str
    attribute_name: str
    direction: TransferDirection
    length: int | None = None
    client: Any = field(default=None, compare=False)

    def as_dict(self) -> dict[str, Any]:
        """Return the payload as a plain dictionary."""
        return {
            "bucket_name": self.bucket_name,
            "client": self.client,
            "attribute_name": self.attribute_name,
            "length": self.length,
            "object_key": self.object_key,
            "direction": str(self.direction),
        }


@dataclass(eq=False)
class TransferRecord:
    """One upload or download of a binary attribute.

    Attributes:
        bucket_name: Logical collection the record belongs to.
        object_key: Key of the synchronized record.
        attribute_name: Field holding the binary reference.
        direction: Upload or download.
        expected_length: Total bytes expected, None while unknown.
        data: Payload for uploads, received bytes for downloads.
        transferred_length: Bytes completed so far.
        status: Current status.
        cancel_requested: Flag checked by the worker at chunk boundaries.
        error: Failure cause if FAILED.
    """

    bucket_name: str
    object_key: str
    attribute_name: str
    direction: TransferDirection
    expected_length: int | None = None
    data: bytes | None = field(default=None, repr=False)
    client: Any = field(default=None, repr=False)

    transfer_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    transferred_length: int = 0
    status: TransferStatus = TransferStatus.PENDING
    cancel_requested: bool = False
    error: TransferError | None = None

    created_at: float = field(default_factory=time.time)
    started_at: float | None = None
    finished_at: float | None = None

    @property
    def key(self) -> TransferKey:
        """Identity key; at most one active record exists per key."""
        return (self.bucket_name, self.object_key, self.attribute_name, self.direction)

    @property
    def info(self) -> TransferInfo:
        """Build the observer payload for this record."""
        return TransferInfo(
            bucket_name=self.bucket_name,
            object_key=self.object_key,
            attribute_name=self.attribute_name,
            direction=self.direction,
            length=self.expected_length,
            client=self.client,
        )

    @property
    def is_terminal(self) -> bool:
        """Check if transfer is in a terminal state."""
        return self.status in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        """Check if transfer is pending or in progress."""
        return not self.is_terminal

    def transition_to(self, new_status: TransferStatus) -> None:
        """Transition to a new status with validation."""
        if new_status not in VALID_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Cannot transition from {self.status.name} to {new_status.name}"
            )
        self.status = new_status
        if new_status == TransferStatus.IN_PROGRESS:
            self.started_at = time.time()
        elif new_status in TERMINAL_STATUSES:
            self.finished_at = time.time()

    def start(self) -> None:
        """Mark transfer as started."""
        self.transition_to(TransferStatus.IN_PROGRESS)

    def succeed(self) -> None:
        """Mark transfer as succeeded."""
        self.transition_to(TransferStatus.SUCCEEDED)

    def fail(self, error: TransferError) -> None:
        """Mark transfer as failed."""
        self.transition_to(TransferStatus.FAILED)
        self.error = error

    def cancel(self) -> bool:
        """Mark transfer as cancelled and raise the cancel flag.

        Returns:
            True if the record was active, False if it was already terminal.
        """
        if self.is_terminal:
            return False
        self.cancel_requested = True
        self.transition_to(TransferStatus.CANCELLED)
        return True
