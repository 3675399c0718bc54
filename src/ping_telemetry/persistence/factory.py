"""Store construction from configuration."""

from ping_telemetry.config import CollectorConfig, StoreBackend
from ping_telemetry.persistence.influxdb import InfluxDBStore
from ping_telemetry.persistence.jsonl import JsonlStore
from ping_telemetry.persistence.sqlite import SqliteStore


def create_store(config: CollectorConfig) -> InfluxDBStore | JsonlStore | SqliteStore:
    """Create the store backend selected by ``config.backend``.

    The returned store is an async context manager; enter it before use.

    Args:
        config: Validated collector configuration.

    Returns:
        An unopened store instance.
    """
    if config.backend == StoreBackend.INFLUXDB and config.influxdb is not None:
        return InfluxDBStore(config.influxdb, origin=config.origin)
    if config.backend == StoreBackend.JSONL and config.jsonl is not None:
        return JsonlStore(config.jsonl, origin=config.origin)
    if config.backend == StoreBackend.SQLITE and config.sqlite is not None:
        return SqliteStore(config.sqlite, origin=config.origin)
    raise ValueError(f"No settings for backend {config.backend.value!r}")
