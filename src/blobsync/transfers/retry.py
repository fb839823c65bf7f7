"""Caller-side retry with exponential backoff.

The transfer manager never retries on its own. Callers that want retries
wrap their request in retry_transfer(), which resubmits only while the
failure is classified as transient.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from blobsync.transfers.errors import TransferError

if TYPE_CHECKING:
    from blobsync.transfers.manager import TransferHandle

logger = logging.getLogger(__name__)

# Default retry configuration
DEFAULT_MAX_RETRIES = 5
DEFAULT_INITIAL_BACKOFF = 1.0  # seconds
DEFAULT_MAX_BACKOFF = 60.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0


@dataclass
class RetryPolicy:
    """Exponential backoff policy for transient transfer failures.

    Attributes:
        max_retries: Maximum retry attempts after the first failure.
        initial_backoff: Delay before the first retry, in seconds.
        max_backoff: Upper bound on any delay, in seconds.
        backoff_multiplier: Factor applied to the delay after each retry.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF
    max_backoff: float = DEFAULT_MAX_BACKOFF
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER

    def should_retry(self, error: BaseException | None, attempt: int) -> bool:
        """Check if a failed attempt should be retried.

        Args:
            error: The failure cause.
            attempt: Number of retries already made.
        """
        if attempt >= self.max_retries:
            return False
        return isinstance(error, TransferError) and error.is_transient

    def delay(self, attempt: int) -> float:
        """Get the backoff before retry number ``attempt`` (0-based)."""
        return min(
            self.initial_backoff * (self.backoff_multiplier**attempt),
            self.max_backoff,
        )


def retry_transfer(
    request: Callable[[], TransferHandle],
    policy: RetryPolicy | None = None,
    timeout: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> TransferHandle:
    """Run a transfer request, resubmitting it after transient failures.

    Blocks the calling thread until the last attempt is done.

    Args:
        request: Submits the transfer and returns its handle, e.g.
            ``lambda: manager.request_upload("notes", "42", "photo", data)``.
        policy: Backoff policy. Defaults to RetryPolicy().
        timeout: Maximum time to wait for each attempt.
        sleep: Sleep function, replaceable in tests.

    Returns:
        The handle of the last attempt, successful or not.
    """
    policy = policy or RetryPolicy()
    attempt = 0

    while True:
        handle = request()
        if not handle.wait(timeout):
            return handle

        if not policy.should_retry(handle.error, attempt):
            if handle.error is not None and attempt > 0:
                logger.error(f"All {attempt} retries failed: {handle.error}")
            return handle

        backoff = policy.delay(attempt)
        attempt += 1
        logger.warning(
            f"Attempt {attempt}/{policy.max_retries + 1} failed: {handle.error}. "
            f"Retrying in {backoff:.1f}s..."
        )
        sleep(backoff)
