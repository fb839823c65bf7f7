"""Tests for caller-side retry."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

from blobsync.transfers import (
    CorruptionError,
    PermanentTransportError,
    RetryPolicy,
    TransferStatus,
    TransientTransportError,
    retry_transfer,
)


def failed_handle(error: Exception | None) -> MagicMock:
    handle = MagicMock()
    handle.wait.return_value = True
    handle.error = error
    return handle


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_exponential_delay_is_capped(self) -> None:
        """Delays should grow by the multiplier up to max_backoff."""
        policy = RetryPolicy(initial_backoff=1.0, backoff_multiplier=2.0, max_backoff=5.0)
        assert [policy.delay(i) for i in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_only_transient_errors_are_retried(self) -> None:
        """Permanent, corruption and missing errors should not be retried."""
        policy = RetryPolicy()
        assert policy.should_retry(TransientTransportError("reset"), 0) is True
        assert policy.should_retry(PermanentTransportError("forbidden"), 0) is False
        assert policy.should_retry(CorruptionError(10, 5), 0) is False
        assert policy.should_retry(None, 0) is False

    def test_attempts_are_bounded(self) -> None:
        """Should stop once max_retries is reached."""
        policy = RetryPolicy(max_retries=2)
        assert policy.should_retry(TransientTransportError("reset"), 1) is True
        assert policy.should_retry(TransientTransportError("reset"), 2) is False


class TestRetryTransfer:
    """Tests for retry_transfer."""

    def test_retries_transient_failure(self, make_manager: Any, transport: Any) -> None:
        """A transient failure should be resubmitted after the backoff."""
        transport.fail("notes", "42", "photo", TransientTransportError("reset"), at_chunk=0)
        manager = make_manager()
        manager.start()
        sleeps: list[float] = []

        handle = retry_transfer(
            lambda: manager.request_upload("notes", "42", "photo", b"x" * 10),
            RetryPolicy(initial_backoff=0.5),
            timeout=5.0,
            sleep=sleeps.append,
        )

        assert handle.status == TransferStatus.SUCCEEDED
        assert sleeps == [0.5]
        assert manager.failed_count == 1
        assert manager.completed_count == 1

    def test_permanent_failure_is_not_retried(self) -> None:
        """A permanent failure should be returned immediately."""
        handle = failed_handle(PermanentTransportError("forbidden", 403))
        request = MagicMock(return_value=handle)
        sleep = MagicMock()

        assert retry_transfer(request, sleep=sleep) is handle
        assert request.call_count == 1
        sleep.assert_not_called()

    def test_gives_up_after_max_retries(self) -> None:
        """Should stop after max_retries resubmissions."""
        request = MagicMock(
            side_effect=lambda: failed_handle(TransientTransportError("reset"))
        )
        sleeps: list[float] = []

        handle = retry_transfer(
            request,
            RetryPolicy(max_retries=3, initial_backoff=1.0),
            sleep=sleeps.append,
        )

        assert request.call_count == 4
        assert sleeps == [1.0, 2.0, 4.0]
        assert handle.error.is_transient

    def test_timeout_returns_unfinished_handle(self) -> None:
        """A handle that does not finish in time should be returned as is."""
        handle = MagicMock()
        handle.wait.return_value = False
        request = MagicMock(return_value=handle)

        assert retry_transfer(request, timeout=0.1, sleep=MagicMock()) is handle
        assert request.call_count == 1
