"""Shared fixtures: in-memory transport, recording observer, polling helper."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Generator, Iterator
from typing import Any

import pytest

from blobsync.core.config import TransferConfig
from blobsync.transfers import TransferInfo, TransferManager, TransferObserver

AttachmentKey = tuple[str, str, str]


def _key(info: TransferInfo) -> AttachmentKey:
    return (info.bucket_name, info.object_key, info.attribute_name)


class FakeTransport:
    """In-memory transport with per-attachment gates and injected failures.

    - downloads[key] lists the chunks receive() yields for an attachment
    - block(key) makes every chunk of that attachment wait on the returned event
    - fail(key, error, at_chunk) raises error instead of chunk ``at_chunk``
    """

    def __init__(self) -> None:
        self.sent: list[tuple[TransferInfo, bytes, int]] = []
        self.downloads: dict[AttachmentKey, list[bytes]] = {}
        self.closed: list[AttachmentKey] = []
        self._gates: dict[AttachmentKey, threading.Event] = {}
        self._entered: dict[AttachmentKey, threading.Event] = {}
        self._errors: dict[AttachmentKey, tuple[int, Exception]] = {}
        self._chunk_counts: dict[AttachmentKey, int] = {}
        self._lock = threading.Lock()

    def block(self, bucket: str, obj: str, attr: str) -> threading.Event:
        gate = threading.Event()
        self._gates[(bucket, obj, attr)] = gate
        self._entered[(bucket, obj, attr)] = threading.Event()
        return gate

    def wait_entered(self, bucket: str, obj: str, attr: str, timeout: float = 5.0) -> bool:
        return self._entered[(bucket, obj, attr)].wait(timeout)

    def fail(
        self, bucket: str, obj: str, attr: str, error: Exception, at_chunk: int = 0
    ) -> None:
        self._errors[(bucket, obj, attr)] = (at_chunk, error)

    def uploaded(self, bucket: str, obj: str, attr: str) -> bytes:
        with self._lock:
            return b"".join(
                chunk for info, chunk, _ in self.sent if _key(info) == (bucket, obj, attr)
            )

    def _checkpoint(self, key: AttachmentKey) -> None:
        with self._lock:
            index = self._chunk_counts.get(key, 0)
            self._chunk_counts[key] = index + 1
        entered = self._entered.get(key)
        if entered is not None:
            entered.set()
        gate = self._gates.get(key)
        if gate is not None:
            gate.wait(5.0)
        failure = self._errors.get(key)
        if failure is not None and failure[0] == index:
            raise failure[1]

    def send(self, info: TransferInfo, chunk: bytes, offset: int) -> None:
        key = _key(info)
        self._checkpoint(key)
        with self._lock:
            self.sent.append((info, chunk, offset))

    def receive(self, info: TransferInfo, expected_length: int | None) -> Iterator[bytes]:
        return self._stream(_key(info))

    def _stream(self, key: AttachmentKey) -> Iterator[bytes]:
        try:
            for chunk in self.downloads.get(key, []):
                self._checkpoint(key)
                yield chunk
        finally:
            with self._lock:
                self.closed.append(key)


class RecordingObserver(TransferObserver):
    """Records every event as (event name, info, extra)."""

    def __init__(self) -> None:
        self.events: list[tuple[str, TransferInfo, Any]] = []
        self._lock = threading.Lock()

    def _record(self, name: str, info: TransferInfo, extra: Any = None) -> None:
        with self._lock:
            self.events.append((name, info, extra))

    def names(self, obj: str | None = None) -> list[str]:
        with self._lock:
            return [
                name for name, info, _ in self.events if obj is None or info.object_key == obj
            ]

    def extras(self, name: str) -> list[Any]:
        with self._lock:
            return [extra for event, _, extra in self.events if event == name]

    def upload_started(self, info: TransferInfo) -> None:
        self._record("upload_started", info)

    def upload_progress(self, info: TransferInfo, increment: int) -> None:
        self._record("upload_progress", info, increment)

    def upload_successful(self, info: TransferInfo) -> None:
        self._record("upload_successful", info)

    def upload_failed(self, info: TransferInfo, error: Exception) -> None:
        self._record("upload_failed", info, error)

    def download_started(self, info: TransferInfo) -> None:
        self._record("download_started", info)

    def download_progress(self, info: TransferInfo, increment: int) -> None:
        self._record("download_progress", info, increment)

    def download_successful(self, info: TransferInfo) -> None:
        self._record("download_successful", info)

    def download_failed(self, info: TransferInfo, error: Exception) -> None:
        self._record("download_failed", info, error)


@pytest.fixture
def transport() -> FakeTransport:
    """In-memory transport."""
    return FakeTransport()


@pytest.fixture
def observer() -> RecordingObserver:
    """Observer recording every event."""
    return RecordingObserver()


@pytest.fixture
def make_manager(
    transport: FakeTransport, observer: RecordingObserver
) -> Generator[Callable[..., TransferManager], None, None]:
    """Factory for managers wired to the fake transport and observer.

    Managers are not started; every manager created is stopped at teardown.
    """
    managers: list[TransferManager] = []

    def factory(max_concurrent_transfers: int = 4, chunk_size: int = 512, **kwargs: Any) -> TransferManager:
        manager = TransferManager(
            transport,
            TransferConfig(
                max_concurrent_transfers=max_concurrent_transfers,
                chunk_size=chunk_size,
                stop_timeout=5.0,
            ),
            **kwargs,
        )
        manager.add_observer(observer)
        managers.append(manager)
        return manager

    yield factory

    for manager in managers:
        manager.stop()


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    """Poll a predicate until it holds or the timeout expires."""

    def poll(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()

    return poll
