"""Ping latency telemetry collector.

Probes a set of hosts concurrently with the system ping, funnels the samples
through a bounded channel and persists them to a time-series store.
"""

from ping_telemetry.collector import CollectionReport, PingCollector
from ping_telemetry.config import CollectorConfig, HostFailurePolicy, load_config
from ping_telemetry.exceptions import (
    ChannelClosedError,
    CollectionAbortedError,
    ConfigError,
    PingTelemetryError,
    ProbeStartError,
    StoreError,
)
from ping_telemetry.models import (
    Measurement,
    PingExited,
    PingSuccess,
    PingTimeout,
    PingUnrecognized,
)
from ping_telemetry.persistence import InfluxDBStore, JsonlStore, SqliteStore, Store
from ping_telemetry.pipeline import BatchWriter, MeasurementChannel
from ping_telemetry.probe import PingProbe, ProbeWorker

__version__ = "0.1.0"

__all__ = [
    "BatchWriter",
    "ChannelClosedError",
    "CollectionAbortedError",
    "CollectionReport",
    "CollectorConfig",
    "ConfigError",
    "HostFailurePolicy",
    "InfluxDBStore",
    "JsonlStore",
    "Measurement",
    "MeasurementChannel",
    "PingCollector",
    "PingExited",
    "PingProbe",
    "PingSuccess",
    "PingTelemetryError",
    "PingTimeout",
    "PingUnrecognized",
    "ProbeStartError",
    "ProbeWorker",
    "SqliteStore",
    "Store",
    "StoreError",
    "load_config",
]
