"""Configuration for the ping telemetry collector.

Configuration is read from a TOML file and can be partially overridden by
environment variables:

- ``PING_TELEMETRY_CONFIG``: path of the TOML file (default ``./config.toml``)
- ``PING_TELEMETRY_PING_COUNT``: overrides ``ping_count``
- ``PING_TELEMETRY_INFLUXDB_TOKEN``: overrides ``[influxdb].token``
"""

from __future__ import annotations

import os
import socket
import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from ping_telemetry.exceptions import ConfigError
from ping_telemetry.models import MEASUREMENT_NAME
from ping_telemetry.pipeline.channel import DEFAULT_CHANNEL_CAPACITY
from ping_telemetry.probe.ping import PROBE_INTERVAL_SECONDS

DEFAULT_CONFIG_PATH = "./config.toml"
DEFAULT_PING_COUNT = 10


class HostFailurePolicy(str, Enum):
    """What the collector does when a host's probe cannot be started.

    Attributes:
        SKIP: Record the failure, keep probing the other hosts.
        ABORT: Stop the other workers and fail the whole run.
    """

    SKIP = "skip"
    ABORT = "abort"


class StoreBackend(str, Enum):
    """Available storage backends."""

    INFLUXDB = "influxdb"
    JSONL = "jsonl"
    SQLITE = "sqlite"


@dataclass(frozen=True, slots=True)
class InfluxDBConfig:
    """Connection parameters for the InfluxDB backend.

    Attributes:
        host: Base URL of the InfluxDB HTTP API.
        db: Database name.
        token: Optional authentication token.
        measurement: Series name for the written points.
        timeout: HTTP timeout in seconds.
    """

    host: str
    db: str
    token: str | None = None
    measurement: str = MEASUREMENT_NAME
    timeout: float = 10.0


@dataclass(frozen=True, slots=True)
class JsonlConfig:
    """Configuration for the JSONL file backend."""

    path: Path


@dataclass(frozen=True, slots=True)
class SqliteConfig:
    """Configuration for the SQLite backend."""

    path: Path
    table: str = MEASUREMENT_NAME


@dataclass(frozen=True, slots=True)
class CollectorConfig:
    """Top-level collector configuration.

    Attributes:
        ping_targets: Hosts to probe.
        ping_count: Probe events consumed per host and run.
        probe_interval: Seconds between probes.
        channel_capacity: Outstanding measurements before senders suspend.
        on_host_failure: Policy for hosts whose probe cannot start.
        fail_on_flush_error: Whether a failed flush fails the run.
        origin: Identity of the collecting machine, written as the ``from`` tag.
        backend: Which store backend to use.
        influxdb: InfluxDB settings (required for the influxdb backend).
        jsonl: JSONL settings (required for the jsonl backend).
        sqlite: SQLite settings (required for the sqlite backend).
    """

    ping_targets: tuple[str, ...]
    ping_count: int = DEFAULT_PING_COUNT
    probe_interval: float = PROBE_INTERVAL_SECONDS
    channel_capacity: int = DEFAULT_CHANNEL_CAPACITY
    on_host_failure: HostFailurePolicy = HostFailurePolicy.SKIP
    fail_on_flush_error: bool = False
    origin: str = field(default_factory=socket.gethostname)
    backend: StoreBackend = StoreBackend.INFLUXDB
    influxdb: InfluxDBConfig | None = None
    jsonl: JsonlConfig | None = None
    sqlite: SqliteConfig | None = None

    def __post_init__(self) -> None:
        if not self.ping_targets:
            raise ConfigError("ping_targets must list at least one host")
        for host in self.ping_targets:
            if not isinstance(host, str) or not host.strip():
                raise ConfigError(f"Invalid ping target: {host!r}")
        if self.ping_count < 1:
            raise ConfigError("ping_count must be a positive integer")
        if self.probe_interval <= 0:
            raise ConfigError("probe_interval must be positive")
        if self.channel_capacity < 1:
            raise ConfigError("channel_capacity must be at least 1")
        if not self.origin:
            raise ConfigError("origin must be a non-empty string")

        backend_settings = {
            StoreBackend.INFLUXDB: self.influxdb,
            StoreBackend.JSONL: self.jsonl,
            StoreBackend.SQLITE: self.sqlite,
        }
        if backend_settings[self.backend] is None:
            raise ConfigError(f"Missing [{self.backend.value}] section for the selected backend")


def _require_table(data: dict[str, Any], key: str) -> dict[str, Any] | None:
    section = data.get(key)
    if section is None:
        return None
    if not isinstance(section, dict):
        raise ConfigError(f"[{key}] must be a table")
    return section


def _int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _float(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


def config_from_dict(data: dict[str, Any]) -> CollectorConfig:
    """Build a CollectorConfig from parsed TOML data and the environment.

    Args:
        data: Parsed configuration mapping.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If a value is missing or malformed.
    """
    targets = data.get("ping_targets", data.get("ping_host"))
    if targets is None:
        raise ConfigError("Missing required key: ping_targets (or ping_host)")
    if isinstance(targets, str):
        targets = [targets]
    if not isinstance(targets, list):
        raise ConfigError("ping_targets must be a list of host names")

    ping_count = _int(
        os.getenv("PING_TELEMETRY_PING_COUNT", data.get("ping_count", DEFAULT_PING_COUNT)),
        "ping_count",
    )

    try:
        on_host_failure = HostFailurePolicy(data.get("on_host_failure", "skip"))
        backend = StoreBackend(data.get("backend", "influxdb"))
    except ValueError as exc:
        raise ConfigError(str(exc)) from None

    influxdb: InfluxDBConfig | None = None
    section = _require_table(data, "influxdb")
    if section is not None:
        if "host" not in section or "db" not in section:
            raise ConfigError("[influxdb] requires 'host' and 'db'")
        influxdb = InfluxDBConfig(
            host=str(section["host"]),
            db=str(section["db"]),
            token=os.getenv("PING_TELEMETRY_INFLUXDB_TOKEN", section.get("token")),
            measurement=str(section.get("measurement", MEASUREMENT_NAME)),
            timeout=_float(section.get("timeout", 10.0), "influxdb.timeout"),
        )

    jsonl: JsonlConfig | None = None
    section = _require_table(data, "jsonl")
    if section is not None:
        if "path" not in section:
            raise ConfigError("[jsonl] requires 'path'")
        jsonl = JsonlConfig(path=Path(section["path"]))

    sqlite: SqliteConfig | None = None
    section = _require_table(data, "sqlite")
    if section is not None:
        if "path" not in section:
            raise ConfigError("[sqlite] requires 'path'")
        sqlite = SqliteConfig(
            path=Path(section["path"]),
            table=str(section.get("table", MEASUREMENT_NAME)),
        )

    kwargs: dict[str, Any] = {}
    if "origin" in data:
        kwargs["origin"] = str(data["origin"])

    return CollectorConfig(
        ping_targets=tuple(targets),
        ping_count=ping_count,
        probe_interval=_float(
            data.get("probe_interval", PROBE_INTERVAL_SECONDS), "probe_interval"
        ),
        channel_capacity=_int(
            data.get("channel_capacity", DEFAULT_CHANNEL_CAPACITY), "channel_capacity"
        ),
        on_host_failure=on_host_failure,
        fail_on_flush_error=bool(data.get("fail_on_flush_error", False)),
        backend=backend,
        influxdb=influxdb,
        jsonl=jsonl,
        sqlite=sqlite,
        **kwargs,
    )


def load_config(path: str | Path | None = None) -> CollectorConfig:
    """Load the collector configuration from a TOML file.

    Args:
        path: Config file path; defaults to ``$PING_TELEMETRY_CONFIG`` or
            ``./config.toml``.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If the file is missing, unparsable or invalid.
    """
    config_path = Path(path or os.getenv("PING_TELEMETRY_CONFIG", DEFAULT_CONFIG_PATH))
    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {config_path}") from None
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {config_path}: {exc}") from None

    return config_from_dict(data)
