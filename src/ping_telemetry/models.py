"""Domain models for the ping telemetry pipeline.

This module defines the latency sample carried through the pipeline and the
tagged probe events produced by a running ping probe.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

MEASUREMENT_NAME = "ping_measurement"


@dataclass(frozen=True, slots=True)
class Measurement:
    """One round-trip latency sample for a host.

    This dataclass is immutable (frozen=True) and uses slots for memory efficiency.

    Attributes:
        host: The probed target.
        time: Receipt timestamp in nanoseconds since the Unix epoch.
        duration: Observed round-trip time.
    """

    host: str
    time: int
    duration: timedelta

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("host must be a non-empty string")
        if self.duration < timedelta(0):
            raise ValueError("duration must be non-negative")

    @property
    def duration_ms(self) -> int:
        """Round-trip time in whole milliseconds (truncated)."""
        return self.duration // timedelta(milliseconds=1)

    @property
    def timestamp(self) -> datetime:
        """Receipt time as an aware UTC datetime (microsecond precision)."""
        return datetime.fromtimestamp(self.time / 1_000_000_000, tz=UTC)


@dataclass(frozen=True, slots=True)
class PingSuccess:
    """A reply was received.

    Attributes:
        duration: Round-trip time reported by the probe.
        line: The raw output line.
    """

    duration: timedelta
    line: str


@dataclass(frozen=True, slots=True)
class PingTimeout:
    """No reply arrived for a probe."""

    line: str


@dataclass(frozen=True, slots=True)
class PingUnrecognized:
    """The probe printed a line that could not be classified."""

    line: str


@dataclass(frozen=True, slots=True)
class PingExited:
    """The probe process ended; no further events will follow.

    Attributes:
        code: Process exit code (None if it could not be determined).
        stderr: Captured error output.
    """

    code: int | None
    stderr: str


ProbeEvent = PingSuccess | PingTimeout | PingUnrecognized | PingExited
