"""Byte-count accounting for a single transfer."""

from __future__ import annotations

import logging
import threading

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Accumulates progress increments into a running total.

    The total never decreases. If the transport delivers more bytes than
    expected, the overshoot is logged and the expected length is corrected
    to the running total.

    Usage:
        tracker = ProgressTracker(expected_length=2048)
        tracker.add(512)
        tracker.ratio  # 0.25
    """

    def __init__(self, expected_length: int | None = None, label: str = "") -> None:
        """Initialize the tracker.

        Args:
            expected_length: Total bytes expected, None if unknown.
            label: Name used in log messages.
        """
        if expected_length is not None and expected_length < 0:
            raise ValueError(f"expected_length must be >= 0, got {expected_length}")
        self._expected = expected_length
        self._total = 0
        self._label = label
        self._lock = threading.Lock()

    @property
    def total(self) -> int:
        """Get bytes accumulated so far."""
        return self._total

    @property
    def expected_length(self) -> int | None:
        """Get expected total length, if known."""
        return self._expected

    @property
    def ratio(self) -> float | None:
        """Get completion ratio in [0, 1], or None if expected length is unknown."""
        with self._lock:
            if not self._expected:
                return None
            return min(self._total / self._expected, 1.0)

    def set_expected(self, length: int) -> None:
        """Set the expected length once the transport reports it."""
        if length < 0:
            raise ValueError(f"expected length must be >= 0, got {length}")
        with self._lock:
            self._expected = length

    def add(self, increment: int) -> int:
        """Record an increment.

        Args:
            increment: Bytes transferred since the previous call.

        Returns:
            The new running total.

        Raises:
            ValueError: If increment is negative.
        """
        if increment < 0:
            raise ValueError(f"Progress increment must be >= 0, got {increment}")
        with self._lock:
            self._total += increment
            if self._expected is not None and self._total > self._expected:
                logger.warning(
                    f"{self._label or 'transfer'}: received {self._total} bytes, "
                    f"expected {self._expected}; correcting expected length"
                )
                self._expected = self._total
            return self._total
