"""Collection run driver wiring probe workers, the channel and the writer.

Architecture:
    [ProbeWorker per host] → ChannelSender.send() → MeasurementChannel → BatchWriter → Store
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from ping_telemetry.config import CollectorConfig, HostFailurePolicy
from ping_telemetry.exceptions import CollectionAbortedError, ProbeStartError
from ping_telemetry.persistence.base import Store
from ping_telemetry.pipeline.channel import MeasurementChannel
from ping_telemetry.pipeline.writer import BatchWriter, WriterMetrics
from ping_telemetry.probe.ping import PingProbe, ProbeFactory
from ping_telemetry.probe.worker import ProbeWorker


@dataclass
class CollectionReport:
    """Outcome of one collection run.

    Attributes:
        emitted: Measurements sent on the channel, per host.
        failed_hosts: Hosts whose probe could not start, mapped to the reason.
        writer: Metrics reported by the BatchWriter.
    """

    emitted: dict[str, int] = field(default_factory=dict)
    failed_hosts: dict[str, str] = field(default_factory=dict)
    writer: WriterMetrics = field(default_factory=WriterMetrics)

    @property
    def total_emitted(self) -> int:
        """Measurements emitted across all hosts."""
        return sum(self.emitted.values())

    @property
    def ok(self) -> bool:
        """True when every host started, every write succeeded and the flush succeeded."""
        return not self.failed_hosts and self.writer.failed == 0 and self.writer.flushed


class PingCollector:
    """Runs one collection pass over all configured hosts.

    Spawns one ProbeWorker per host, all sharing the sending side of a
    bounded MeasurementChannel, and a single BatchWriter owning the receiving
    side and the store. Once every worker has finished the channel is closed,
    the writer drains it and flushes the store exactly once.

    A host whose probe cannot be started, or whose worker fails with any
    other error, is handled according to ``config.on_host_failure``:
    - SKIP: the failure is logged and listed in the report, other hosts go on.
    - ABORT: the other workers are cancelled, whatever was collected is still
      flushed, then CollectionAbortedError is raised.

    Args:
        config: Collector configuration.
        store: Store receiving the measurements; owned by the writer for the run.
        probe_factory: Callable building a probe for (host, interval).
        logger: Parent logger; workers and writer log to child loggers.
        clock: Nanosecond wall clock used to timestamp measurements.

    Example:
        ```python
        async with create_store(config) as store:
            report = await PingCollector(config, store).run()
        ```
    """

    def __init__(
        self,
        config: CollectorConfig,
        store: Store,
        probe_factory: ProbeFactory = PingProbe,
        logger: logging.Logger | None = None,
        clock: Callable[[], int] = time.time_ns,
    ) -> None:
        self._config = config
        self._store = store
        self._probe_factory = probe_factory
        self._logger = logger or logging.getLogger("ping_telemetry.collector")
        self._clock = clock

    def _log_event(self, level: int, event: str, **fields: object) -> None:
        """Log a structured JSON entry."""
        self._logger.log(level, json.dumps({"event": event, **fields}))

    async def _run_worker(self, worker: ProbeWorker, report: CollectionReport) -> None:
        try:
            await worker.run()
        except Exception as exc:
            if isinstance(exc, ProbeStartError):
                event, reason = "probe_start_failed", exc.reason
            else:
                event, reason = "worker_failed", f"{type(exc).__name__}: {exc}"
            report.failed_hosts[worker.host] = reason
            self._log_event(
                logging.ERROR,
                event,
                host=worker.host,
                reason=reason,
                policy=self._config.on_host_failure.value,
            )
            if self._config.on_host_failure == HostFailurePolicy.ABORT:
                raise
        finally:
            report.emitted[worker.host] = report.emitted.get(worker.host, 0) + worker.emitted

    async def run(self) -> CollectionReport:
        """Probe every host, persist the measurements and flush once.

        Returns:
            CollectionReport with per-host yields, failed hosts and writer metrics.

        Raises:
            CollectionAbortedError: If a worker fails under the ABORT policy.
        """
        config = self._config
        report = CollectionReport()
        channel = MeasurementChannel(capacity=config.channel_capacity)

        workers = [
            ProbeWorker(
                host=host,
                count=config.ping_count,
                sender=channel.sender(),
                probe_factory=self._probe_factory,
                interval=config.probe_interval,
                logger=self._logger.getChild(f"worker.{host}"),
                clock=self._clock,
            )
            for host in config.ping_targets
        ]
        writer = BatchWriter(channel, self._store, logger=self._logger.getChild("writer"))

        self._log_event(
            logging.INFO,
            "collection_started",
            hosts=list(config.ping_targets),
            ping_count=config.ping_count,
            channel_capacity=channel.capacity,
        )

        abort_error: Exception | None = None
        writer_task = asyncio.create_task(writer.run())
        try:
            async with asyncio.TaskGroup() as tg:
                for worker in workers:
                    tg.create_task(self._run_worker(worker, report))
        except* Exception as group:
            abort_error = group.exceptions[0]
        finally:
            # Workers cancelled before they started never released their sender
            await channel.close()
            report.writer = await writer_task

        self._log_event(
            logging.INFO,
            "collection_finished",
            emitted=report.emitted,
            failed_hosts=report.failed_hosts,
            stored=report.writer.stored,
            write_failures=report.writer.failed,
            flushed=report.writer.flushed,
            peak_channel_size=channel.peak_size,
        )

        if abort_error is not None:
            raise CollectionAbortedError(f"Run aborted: {abort_error}") from abort_error

        return report
