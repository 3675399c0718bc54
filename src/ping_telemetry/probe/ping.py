"""System ping probe running as an asyncio subprocess.

The probe launches the platform ``ping`` command without a count, so it keeps
emitting replies until the caller stops iterating. Each output line is turned
into a probe event by :func:`parse_ping_line`.
"""

from __future__ import annotations

import asyncio
import logging
import platform
import re
from collections.abc import AsyncGenerator, Callable, Sequence
from contextlib import suppress
from datetime import timedelta
from typing import Any, Protocol, Self

from ping_telemetry.exceptions import ProbeStartError
from ping_telemetry.models import (
    PingExited,
    PingSuccess,
    PingTimeout,
    PingUnrecognized,
    ProbeEvent,
)

logger = logging.getLogger(__name__)

PROBE_INTERVAL_SECONDS = 0.3
OUTPUT_LINE_LIMIT = 64 * 1024

_LESS_THAN_PATTERN = re.compile(r"time<(\d+(?:\.\d+)?)\s*ms", re.IGNORECASE)
_LATENCY_PATTERN = re.compile(r"time\s*=\s*(\d+(?:\.\d+)?)\s*ms", re.IGNORECASE)
_TIMEOUT_PATTERN = re.compile(
    r"no answer yet|request timeout|request timed out", re.IGNORECASE
)
_IGNORED_PATTERN = re.compile(
    r"^(PING |Pinging |--- .* ping statistics ---|Ping statistics for )"
    r"|packets transmitted|round-trip|round trip|rtt min/avg|Packets: Sent|Minimum = ",
    re.IGNORECASE,
)


def parse_ping_line(line: str) -> ProbeEvent | None:
    """Classify one line of ping output (pure function).

    Handles the common output formats:
    - Linux/macOS reply: "64 bytes from 1.1.1.1: icmp_seq=1 ttl=57 time=12.3 ms"
    - Windows reply: "Reply from 1.1.1.1: bytes=32 time=12ms TTL=57" or "time<1ms"
    - Timeouts: "no answer yet for icmp_seq=3", "Request timeout for icmp_seq 3",
      "Request timed out."

    Windows "time<Nms" is interpreted as N/2 ms (midpoint estimate).

    Args:
        line: One line of ping output, with or without the trailing newline.

    Returns:
        The matching probe event, or None for blank, header and summary lines.

    Examples:
        >>> parse_ping_line("time<1ms")
        PingSuccess(duration=datetime.timedelta(microseconds=500), line='time<1ms')
        >>> parse_ping_line("") is None
        True
    """
    text = line.strip()
    if not text or _IGNORED_PATTERN.search(text):
        return None

    match = _LESS_THAN_PATTERN.search(text)
    if match:
        return PingSuccess(
            duration=timedelta(milliseconds=float(match.group(1)) / 2.0),
            line=text,
        )

    match = _LATENCY_PATTERN.search(text)
    if match:
        return PingSuccess(duration=timedelta(milliseconds=float(match.group(1))), line=text)

    if _TIMEOUT_PATTERN.search(text):
        return PingTimeout(line=text)

    return PingUnrecognized(line=text)


def build_ping_command(
    host: str,
    interval: float = PROBE_INTERVAL_SECONDS,
    system: str | None = None,
) -> list[str]:
    """Build the platform-specific ping command.

    Args:
        host: Target host to ping.
        interval: Seconds between probes.
        system: Platform name as returned by ``platform.system()``.

    Returns:
        List of command arguments for the subprocess.
    """
    system = system or platform.system()
    if system == "Windows":
        # Windows ping has a fixed one second interval
        return ["ping", "-t", host]
    if system == "Linux":
        # -O reports missing replies instead of staying silent
        return ["ping", "-O", "-i", f"{interval:g}", host]
    return ["ping", "-i", f"{interval:g}", host]


class Probe(Protocol):
    """Interface of a running probe as consumed by ProbeWorker."""

    async def __aenter__(self) -> Any: ...

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None: ...

    def __aiter__(self) -> AsyncGenerator[ProbeEvent, None]: ...


ProbeFactory = Callable[[str, float], Probe]


class PingProbe:
    """Async context manager and iterator over ping events for one host.

    The subprocess is started on enter and killed on exit, whichever way the
    consumer leaves the ``async with`` block.

    Example:
        ```python
        async with PingProbe("1.1.1.1") as probe:
            async for event in probe:
                print(event)
        ```
    """

    def __init__(
        self,
        host: str,
        interval: float = PROBE_INTERVAL_SECONDS,
        command: Sequence[str] | None = None,
    ) -> None:
        """Initialize the probe.

        Args:
            host: Target host to ping.
            interval: Seconds between probes.
            command: Explicit command line; defaults to the platform ping.

        Raises:
            ValueError: If host is empty or interval is not positive.
        """
        if not host or not host.strip():
            raise ValueError("host must be a non-empty string")
        if interval <= 0:
            raise ValueError("interval must be positive")

        self._host = host
        self._interval = interval
        self._command = list(command) if command else build_ping_command(host, interval)
        self._process: asyncio.subprocess.Process | None = None

    @property
    def host(self) -> str:
        """Target host of this probe."""
        return self._host

    @property
    def command(self) -> list[str]:
        """Command line used to launch the probe."""
        return list(self._command)

    async def __aenter__(self) -> Self:
        """Launch the ping subprocess.

        Raises:
            ProbeStartError: If the command cannot be executed.
        """
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self._command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=OUTPUT_LINE_LIMIT,
            )
        except OSError as exc:
            raise ProbeStartError(self._host, str(exc)) from exc

        logger.debug("Started ping probe: host=%s, pid=%d", self._host, self._process.pid)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Kill the subprocess if it is still running and reap it."""
        await self.close()

    async def close(self) -> None:
        """Tear down the subprocess. Safe to call more than once."""
        process = self._process
        if process is None:
            return
        self._process = None

        if process.returncode is None:
            with suppress(ProcessLookupError):
                process.kill()
        await process.wait()
        logger.debug("Stopped ping probe: host=%s, returncode=%s", self._host, process.returncode)

    async def __aiter__(self) -> AsyncGenerator[ProbeEvent, None]:
        """Yield probe events until the process exits.

        The last event is always a PingExited once stdout reaches EOF. An
        output line longer than OUTPUT_LINE_LIMIT is reported as
        PingUnrecognized instead of ending the iteration.

        Raises:
            RuntimeError: If the probe has not been started.
        """
        process = self._process
        if process is None or process.stdout is None:
            raise RuntimeError("Probe is not running; use 'async with PingProbe(...)'")

        while True:
            try:
                raw = await process.stdout.readline()
            except ValueError:
                # The reader has already dropped the over-long data
                yield PingUnrecognized(
                    line=f"<output line longer than {OUTPUT_LINE_LIMIT} bytes discarded>"
                )
                continue
            if not raw:
                break
            event = parse_ping_line(raw.decode("utf-8", errors="replace"))
            if event is not None:
                yield event

        stderr = b""
        if process.stderr is not None:
            stderr = await process.stderr.read()
        code = await process.wait()
        yield PingExited(code=code, stderr=stderr.decode("utf-8", errors="replace").strip())
