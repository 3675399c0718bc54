"""BatchWriter: the single consumer that persists measurements."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ping_telemetry.pipeline.channel import MeasurementChannel

if TYPE_CHECKING:
    from ping_telemetry.persistence.base import Store


@dataclass
class WriterMetrics:
    """Outcome of one BatchWriter run."""

    received: int = 0
    stored: int = 0
    failed: int = 0
    flushed: bool = False
    flush_error: str | None = field(default=None)


class BatchWriter:
    """
    Drains the aggregator channel into a Store and flushes once at the end.

    A failing ``add_measurement`` is logged and counted, and the next
    measurement is still attempted. After the channel closes, ``flush`` is
    called exactly once, no matter how many writes failed. A flush failure is
    logged and reported in the returned metrics, never retried.

    The writer is the only component that touches the store, so the store
    needs no locking.

    Args:
        channel: Receiving side of the aggregator channel.
        store: Backend receiving the measurements.
        logger: Logger receiving structured JSON events.
    """

    def __init__(
        self,
        channel: MeasurementChannel,
        store: Store,
        logger: logging.Logger | None = None,
    ) -> None:
        self._channel = channel
        self._store = store
        self._logger = logger or logging.getLogger("ping_telemetry.writer")
        self._metrics = WriterMetrics()

    @property
    def metrics(self) -> WriterMetrics:
        """Metrics of the current or last run."""
        return self._metrics

    def _log_event(self, level: int, event: str, **fields: object) -> None:
        """Log a structured JSON entry."""
        self._logger.log(level, json.dumps({"event": event, **fields}))

    async def run(self) -> WriterMetrics:
        """Receive until the channel closes, then flush the store.

        Returns:
            WriterMetrics: Counts of received, stored and failed measurements
            plus the flush outcome.
        """
        async for measurement in self._channel:
            self._metrics.received += 1
            try:
                await self._store.add_measurement(measurement)
            except Exception as exc:
                self._metrics.failed += 1
                self._log_event(
                    logging.ERROR,
                    "store_write_failed",
                    host=measurement.host,
                    time=measurement.time,
                    error=str(exc),
                )
            else:
                self._metrics.stored += 1

        try:
            await self._store.flush()
        except Exception as exc:
            self._metrics.flush_error = str(exc)
            self._log_event(
                logging.ERROR,
                "store_flush_failed",
                stored=self._metrics.stored,
                error=str(exc),
            )
        else:
            self._metrics.flushed = True
            self._log_event(logging.INFO, "store_flushed", stored=self._metrics.stored)

        return self._metrics
