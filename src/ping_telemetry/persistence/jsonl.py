"""JSONL file store with buffered async writes."""

import json
import os
from typing import Any, Self

import aiofiles

from ping_telemetry.config import JsonlConfig
from ping_telemetry.exceptions import StoreError
from ping_telemetry.models import MEASUREMENT_NAME, Measurement
from ping_telemetry.persistence.base import Store


def to_record(measurement: Measurement, origin: str) -> dict[str, Any]:
    """Convert a measurement into the flat record written by file backends."""
    return {
        "measurement": MEASUREMENT_NAME,
        "time": measurement.time,
        "duration": measurement.duration_ms,
        "target": measurement.host,
        "from": origin,
    }


class JsonlStore(Store):
    """JSONL file store with buffered async writes.

    Buffers one JSON line per measurement in memory and appends the whole
    buffer to the file on ``flush``, forcing it to disk with fsync. The file
    is opened in append mode so successive runs accumulate.

    Example:
        ```python
        async with JsonlStore(JsonlConfig(Path("pings.jsonl")), origin="probe-01") as store:
            await store.add_measurement(measurement)
            await store.flush()
        ```
    """

    def __init__(self, config: JsonlConfig, origin: str) -> None:
        """Initialize the JSONL store.

        Args:
            config: Store configuration.
            origin: Identity of the collecting machine.
        """
        self._config = config
        self._origin = origin
        self._buffer: list[str] = []
        self._file: Any = None
        self._closed = False

    async def __aenter__(self) -> Self:
        """Enter async context manager and open the file.

        Returns:
            Self for context manager protocol.
        """
        await self._open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager and close the file."""
        await self.close()

    async def _open(self) -> None:
        """Open the output file for appending."""
        try:
            self._file = await aiofiles.open(
                self._config.path,
                mode="a",
                encoding="utf-8",
                newline="\n",
            )
        except OSError as exc:
            raise StoreError(f"Cannot open {self._config.path}: {exc}") from exc

    @property
    def pending(self) -> int:
        """Number of records waiting for the next flush."""
        return len(self._buffer)

    async def add_measurement(self, measurement: Measurement) -> None:
        """Serialize a measurement and append it to the buffer."""
        if self._closed:
            raise StoreError("Cannot write to closed store")

        self._buffer.append(json.dumps(to_record(measurement, self._origin), ensure_ascii=False))

    async def flush(self) -> None:
        """Append all buffered records to the file and fsync.

        Raises:
            StoreError: If the store is closed or the file cannot be written.
        """
        if self._closed:
            raise StoreError("Cannot flush a closed store")
        if not self._buffer:
            return

        try:
            if self._file is None:
                await self._open()
            await self._file.write("".join(line + "\n" for line in self._buffer))
            await self._file.flush()
            os.fsync(self._file.fileno())
        except OSError as exc:
            raise StoreError(f"Failed to write {self._config.path}: {exc}") from exc

        self._buffer.clear()

    async def close(self) -> None:
        """Close the file handle. Unflushed records are discarded."""
        if self._closed:
            return

        self._closed = True

        if self._file:
            await self._file.close()
            self._file = None
