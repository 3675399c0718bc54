"""ProbeWorker: drives one host's probe and forwards its measurements."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from contextlib import aclosing

from ping_telemetry.models import (
    Measurement,
    PingExited,
    PingSuccess,
    PingTimeout,
    PingUnrecognized,
)
from ping_telemetry.pipeline.channel import ChannelSender
from ping_telemetry.probe.ping import PROBE_INTERVAL_SECONDS, PingProbe, ProbeFactory


class ProbeWorker:
    """
    Consumes up to ``count`` probe events for one host.

    Every successful reply becomes a Measurement sent on the channel; the
    send may suspend the worker while the channel is full. Timeouts and
    unrecognized lines are logged and skipped. When the probe process exits
    the worker stops early instead of waiting for events that will never
    arrive.

    The probe and the send handle are both released when :meth:`run`
    returns, on every exit path.

    Args:
        host: Target host to probe.
        count: Maximum number of probe events to consume.
        sender: Send handle on the aggregator channel, owned by this worker.
        probe_factory: Callable building a probe for (host, interval).
        interval: Seconds between probes.
        logger: Logger receiving structured JSON events.
        clock: Nanosecond wall clock used to timestamp measurements.

    Example:
        ```python
        worker = ProbeWorker("1.1.1.1", count=10, sender=channel.sender())
        await worker.run()
        ```
    """

    def __init__(
        self,
        host: str,
        count: int,
        sender: ChannelSender,
        probe_factory: ProbeFactory = PingProbe,
        interval: float = PROBE_INTERVAL_SECONDS,
        logger: logging.Logger | None = None,
        clock: Callable[[], int] = time.time_ns,
    ) -> None:
        if not host:
            raise ValueError("host must be a non-empty string")
        if count < 1:
            raise ValueError("count must be at least 1")

        self._host = host
        self._count = count
        self._sender = sender
        self._probe_factory = probe_factory
        self._interval = interval
        self._logger = logger or logging.getLogger(f"ping_telemetry.worker.{host}")
        self._clock = clock
        self._last_time = 0
        self._observed = 0
        self._emitted = 0

    @property
    def host(self) -> str:
        """Target host of this worker."""
        return self._host

    @property
    def observed(self) -> int:
        """Number of probe events consumed so far."""
        return self._observed

    @property
    def emitted(self) -> int:
        """Number of measurements sent on the channel so far."""
        return self._emitted

    def _log_event(self, level: int, event: str, **fields: object) -> None:
        """Log a structured JSON entry."""
        log_entry = {"event": event, "host": self._host, **fields}
        self._logger.log(level, json.dumps(log_entry))

    def _now(self) -> int:
        # Clamp so a host's timestamps never go backwards if the wall clock steps
        self._last_time = max(self._clock(), self._last_time)
        return self._last_time

    async def run(self) -> None:
        """Run the probe loop until ``count`` events or the probe exits.

        Raises:
            ProbeStartError: If the probe cannot be launched.
        """
        async with self._sender:
            async with self._probe_factory(self._host, self._interval) as probe:
                async with aclosing(aiter(probe)) as events:
                    async for event in events:
                        if isinstance(event, PingExited):
                            self._log_event(
                                logging.ERROR,
                                "ping_exited",
                                code=event.code,
                                stderr=event.stderr,
                                observed=self._observed,
                            )
                            break

                        self._observed += 1

                        if isinstance(event, PingSuccess):
                            measurement = Measurement(
                                host=self._host,
                                time=self._now(),
                                duration=event.duration,
                            )
                            self._log_event(
                                logging.DEBUG,
                                "ping_reply",
                                duration_ms=event.duration.total_seconds() * 1000,
                            )
                            await self._sender.send(measurement)
                            self._emitted += 1
                        elif isinstance(event, PingTimeout):
                            self._log_event(logging.WARNING, "ping_timeout", line=event.line)
                        elif isinstance(event, PingUnrecognized):
                            self._log_event(logging.WARNING, "ping_unrecognized", line=event.line)

                        if self._observed >= self._count:
                            break

        self._log_event(
            logging.INFO,
            "worker_finished",
            observed=self._observed,
            emitted=self._emitted,
        )
