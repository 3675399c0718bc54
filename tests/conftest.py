"""Pytest configuration and fixtures for ping-telemetry tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Callable
from datetime import timedelta
from typing import Any

import pytest

from ping_telemetry.exceptions import StoreError
from ping_telemetry.models import (
    Measurement,
    PingExited,
    PingSuccess,
    ProbeEvent,
)


class FakeProbe:
    """Scripted probe yielding a fixed list of events.

    An exception instance in the list is raised when iteration reaches it.
    """

    def __init__(
        self,
        host: str,
        events: list[ProbeEvent | BaseException],
        fail: BaseException | None = None,
        delay: float = 0.0,
    ) -> None:
        self.host = host
        self.events = events
        self.fail = fail
        self.delay = delay
        self.entered = False
        self.exited = False
        self.yielded = 0

    async def __aenter__(self) -> FakeProbe:
        if self.fail is not None:
            raise self.fail
        self.entered = True
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.exited = True

    async def __aiter__(self) -> AsyncGenerator[ProbeEvent, None]:
        for event in self.events:
            await asyncio.sleep(self.delay)
            if isinstance(event, BaseException):
                raise event
            self.yielded += 1
            yield event


class FakeProbeFactory:
    """Probe factory mapping each host to scripted events or a start error."""

    def __init__(
        self,
        script: dict[str, list[ProbeEvent] | BaseException],
        delay: float = 0.0,
    ) -> None:
        self.script = script
        self.delay = delay
        self.probes: dict[str, FakeProbe] = {}
        self.intervals: dict[str, float] = {}

    def __call__(self, host: str, interval: float) -> FakeProbe:
        entry = self.script[host]
        if isinstance(entry, BaseException):
            probe = FakeProbe(host, [], fail=entry, delay=self.delay)
        else:
            probe = FakeProbe(host, list(entry), delay=self.delay)
        self.probes[host] = probe
        self.intervals[host] = interval
        return probe


class RecordingStore:
    """In-memory Store recording every call in order.

    Args:
        fail_on: Zero-based indexes of add_measurement calls that raise StoreError.
        flush_error: If set, flush raises StoreError with this message.
    """

    def __init__(self, fail_on: set[int] | None = None, flush_error: str | None = None) -> None:
        self.fail_on = fail_on or set()
        self.flush_error = flush_error
        self.calls: list[str] = []
        self.attempted: list[Measurement] = []
        self.buffer: list[Measurement] = []
        self.persisted: list[Measurement] = []
        self.flush_count = 0

    async def add_measurement(self, measurement: Measurement) -> None:
        index = len(self.attempted)
        self.calls.append("add")
        self.attempted.append(measurement)
        if index in self.fail_on:
            raise StoreError(f"simulated write failure on item {index}")
        self.buffer.append(measurement)

    async def flush(self) -> None:
        self.calls.append("flush")
        self.flush_count += 1
        if self.flush_error is not None:
            raise StoreError(self.flush_error)
        self.persisted.extend(self.buffer)
        self.buffer.clear()


def replies(*latencies_ms: float, exit_code: int | None = None) -> list[ProbeEvent]:
    """Build a list of success events, optionally ending with a process exit."""
    events: list[ProbeEvent] = [
        PingSuccess(duration=timedelta(milliseconds=ms), line=f"time={ms} ms")
        for ms in latencies_ms
    ]
    if exit_code is not None:
        events.append(PingExited(code=exit_code, stderr="ping: host unreachable"))
    return events


@pytest.fixture()
def probe_factory_cls() -> type[FakeProbeFactory]:
    """Provide the scripted probe factory class."""
    return FakeProbeFactory


@pytest.fixture()
def store_cls() -> type[RecordingStore]:
    """Provide the recording store class."""
    return RecordingStore


@pytest.fixture()
def recording_store() -> RecordingStore:
    """Provide a recording store that never fails."""
    return RecordingStore()


@pytest.fixture()
def make_replies() -> Callable[..., list[ProbeEvent]]:
    """Provide a builder for scripted success events."""
    return replies


@pytest.fixture()
def make_measurement() -> Callable[..., Measurement]:
    """Provide a builder for measurements."""

    def _make(host: str = "1.1.1.1", ms: float = 10.0, time: int = 1_700_000_000_000_000_000):
        return Measurement(host=host, time=time, duration=timedelta(milliseconds=ms))

    return _make
