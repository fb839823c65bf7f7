"""Exception types for binary transfers.

This module provides:
- ErrorClassification: Transient / permanent / corruption classification
- TransferError: Base exception carrying a classification
- DuplicateTransferError, TransportError, CancelledError, CorruptionError
- classify_exception: Map arbitrary exceptions onto the taxonomy
"""

from __future__ import annotations

from enum import Enum


class ErrorClassification(str, Enum):
    """How a failed transfer should be treated by the caller's retry policy."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    CORRUPTION = "corruption"


class TransferError(Exception):
    """Base exception for transfer errors."""

    classification: ErrorClassification = ErrorClassification.PERMANENT

    @property
    def is_transient(self) -> bool:
        """Check if retrying the transfer could succeed."""
        return self.classification == ErrorClassification.TRANSIENT


class DuplicateTransferError(TransferError):
    """A conflicting transfer is already in progress for the same attribute."""

    def __init__(self, key: tuple[str, str, str, object]) -> None:
        self.key = key
        bucket_name, object_key, attribute_name, direction = key
        super().__init__(
            f"{str(direction).capitalize()} already in progress for "
            f"{bucket_name}/{object_key}.{attribute_name}"
        )


class TransportError(TransferError):
    """The underlying network or storage operation failed.

    Attributes:
        classification: TRANSIENT (connection reset, timeout) or PERMANENT
            (auth, payload too large, malformed response).
        status_code: HTTP status code when the transport has one.
    """

    def __init__(
        self,
        message: str,
        classification: ErrorClassification = ErrorClassification.TRANSIENT,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.classification = classification
        self.status_code = status_code


class TransientTransportError(TransportError):
    """Transport failure that may succeed on retry."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message, ErrorClassification.TRANSIENT, status_code)


class PermanentTransportError(TransportError):
    """Transport failure that will not succeed on retry."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message, ErrorClassification.PERMANENT, status_code)


class CorruptionError(TransferError):
    """Downloaded length does not match the expected length."""

    classification = ErrorClassification.CORRUPTION

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected {expected} bytes, received {actual}")


class CancelledError(TransferError):
    """Raised to the handle owner when a transfer was cancelled."""


class InvalidTransitionError(TransferError):
    """Raised when attempting an invalid status transition."""


class ManagerStoppedError(TransferError):
    """Raised when a request reaches a stopped transfer manager."""


# Exceptions that indicate connectivity issues
NETWORK_EXCEPTIONS: tuple[type[Exception], ...] = (
    ConnectionError,
    TimeoutError,
    OSError,
)


def classify_exception(exc: BaseException) -> TransferError:
    """Convert any exception raised by a transport into a TransferError.

    Args:
        exc: The exception raised while transferring.

    Returns:
        The exception itself if it already is a TransferError, otherwise a
        TransportError chained to it.
    """
    if isinstance(exc, TransferError):
        return exc
    if isinstance(exc, NETWORK_EXCEPTIONS):
        error = TransientTransportError(str(exc) or type(exc).__name__)
    else:
        error = PermanentTransportError(str(exc) or type(exc).__name__)
    error.__cause__ = exc
    return error
