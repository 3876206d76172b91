"""Shared fakes for transport, clock, and game-state listeners."""

from __future__ import annotations

import threading
import time

import pytest


class FakeTransport:
    """In-memory byte link. Inbound chunks are served in order."""

    def __init__(self, port: str = "fake", chunks: list[bytes] | None = None) -> None:
        self.port = port
        self._lock = threading.Lock()
        self._inbound = bytearray(b"".join(chunks or []))
        self.written: list[bytes] = []
        self.is_open = True
        self.read_error: Exception | None = None

    def feed(self, data: bytes) -> None:
        with self._lock:
            self._inbound += data

    def remaining(self) -> int:
        with self._lock:
            return len(self._inbound)

    def read(self, size: int = 1) -> bytes:
        if self.read_error is not None:
            raise self.read_error
        with self._lock:
            data = bytes(self._inbound[:size])
            del self._inbound[:size]
            return data

    def write(self, data: bytes) -> int:
        with self._lock:
            self.written.append(bytes(data))
        return len(data)

    def close(self) -> None:
        self.is_open = False

    def commands(self) -> list[tuple[int, int, int]]:
        """Written frames as (team, opcode, arg)."""
        return [(f[0], f[1], f[2]) for f in self.written]


class ManualClock:
    """Millisecond clock advanced by the test."""

    def __init__(self, start: int = 10_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingListener:
    def __init__(self) -> None:
        self.health: list[tuple[int, int]] = []
        self.statuses: list[str] = []

    def on_health_update(self, team: int, hp: int) -> None:
        self.health.append((team, hp))

    def on_status(self, text: str) -> None:
        self.statuses.append(text)


def wait_for(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll ``predicate`` until it is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()
