"""InfluxDB store writing line protocol over HTTP with httpx.AsyncClient."""

from __future__ import annotations

from typing import Any, Self

import httpx

from ping_telemetry.config import InfluxDBConfig
from ping_telemetry.exceptions import StoreError
from ping_telemetry.models import Measurement
from ping_telemetry.persistence.base import Store


def _escape_key(value: str) -> str:
    """Escape a measurement name, tag key or tag value for line protocol."""
    return value.replace("\\", "\\\\").replace(",", "\\,").replace("=", "\\=").replace(" ", "\\ ")


def to_line_protocol(measurement: Measurement, origin: str, series: str) -> str:
    """Encode one measurement as an InfluxDB line protocol point.

    The point carries the integer field ``duration`` (milliseconds), the tags
    ``target`` (probed host) and ``from`` (collecting machine), and a
    nanosecond timestamp.

    Args:
        measurement: The sample to encode.
        origin: Identity of the collecting machine.
        series: Measurement (series) name.

    Returns:
        A single line without trailing newline.

    Example:
        >>> to_line_protocol(m, "probe-01", "ping_measurement")
        'ping_measurement,from=probe-01,target=1.1.1.1 duration=12i 1700000000000000000'
    """
    measurement_name = series.replace("\\", "\\\\").replace(",", "\\,").replace(" ", "\\ ")
    # Tags sorted by key, as InfluxDB recommends
    tags = f"from={_escape_key(origin)},target={_escape_key(measurement.host)}"
    return f"{measurement_name},{tags} duration={measurement.duration_ms}i {measurement.time}"


class InfluxDBStore(Store):
    """InfluxDB backend with buffered batch writes.

    Points accumulate in memory on ``add_measurement`` and are posted to the
    ``/write`` endpoint in a single request on ``flush``. The buffer is only
    cleared when InfluxDB acknowledges the batch.

    Example:
        ```python
        config = InfluxDBConfig(host="http://localhost:8086", db="telemetry")
        async with InfluxDBStore(config, origin="probe-01") as store:
            await store.add_measurement(measurement)
            await store.flush()
        ```
    """

    def __init__(
        self,
        config: InfluxDBConfig,
        origin: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the InfluxDB store.

        Args:
            config: Connection parameters.
            origin: Identity of the collecting machine (``from`` tag).
            client: Optional preconfigured client; the store creates one otherwise.

        Raises:
            StoreError: If the configured host is not a valid URL.
        """
        self._config = config
        self._origin = origin
        self._buffer: list[str] = []
        self._owns_client = client is None

        headers = {"Content-Type": "text/plain; charset=utf-8"}
        if config.token:
            headers["Authorization"] = f"Token {config.token}"

        if client is None:
            try:
                client = httpx.AsyncClient(
                    base_url=config.host,
                    timeout=httpx.Timeout(config.timeout),
                )
            except httpx.InvalidURL as exc:
                raise StoreError(f"Invalid InfluxDB host {config.host!r}: {exc}") from exc
        self._client = client
        self._headers = headers

    @property
    def pending(self) -> int:
        """Number of points waiting for the next flush."""
        return len(self._buffer)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def add_measurement(self, measurement: Measurement) -> None:
        """Buffer one point for the next flush."""
        self._buffer.append(to_line_protocol(measurement, self._origin, self._config.measurement))

    async def flush(self) -> None:
        """Post all buffered points in one request.

        Raises:
            StoreError: If the request fails or InfluxDB rejects the batch.
        """
        if not self._buffer:
            return

        body = "\n".join(self._buffer) + "\n"
        try:
            response = await self._client.post(
                "/write",
                params={"db": self._config.db, "precision": "ns"},
                content=body.encode("utf-8"),
                headers=self._headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise StoreError(
                f"Failed to write data to InfluxDB: HTTP {exc.response.status_code} "
                f"{exc.response.text.strip()}"
            ) from exc
        except httpx.HTTPError as exc:
            raise StoreError(f"Failed to write data to InfluxDB: {exc}") from exc

        self._buffer.clear()

    async def close(self) -> None:
        """Close the HTTP client if the store created it."""
        if self._owns_client:
            await self._client.aclose()
