"""Unit tests for configuration loading."""

from __future__ import annotations

import socket
import tempfile
from pathlib import Path

import pytest

from ping_telemetry.config import (
    CollectorConfig,
    HostFailurePolicy,
    InfluxDBConfig,
    StoreBackend,
    config_from_dict,
    load_config,
)
from ping_telemetry.exceptions import ConfigError

MINIMAL_TOML = """
ping_host = ["1.1.1.1", "example.com"]

[influxdb]
host = "http://localhost:8086"
db = "telemetry"
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove configuration overrides from the environment."""
    for name in (
        "PING_TELEMETRY_CONFIG",
        "PING_TELEMETRY_PING_COUNT",
        "PING_TELEMETRY_INFLUXDB_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def temp_dir() -> Path:
    """Create a temporary directory for config files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


class TestLoadConfig:
    """Tests for reading TOML files."""

    def test_minimal_file_uses_defaults(self, temp_dir: Path) -> None:
        """Test defaults for every optional key."""
        path = temp_dir / "config.toml"
        path.write_text(MINIMAL_TOML)

        config = load_config(path)

        assert config.ping_targets == ("1.1.1.1", "example.com")
        assert config.ping_count == 10
        assert config.probe_interval == 0.3
        assert config.channel_capacity == 33
        assert config.on_host_failure == HostFailurePolicy.SKIP
        assert config.fail_on_flush_error is False
        assert config.origin == socket.gethostname()
        assert config.backend == StoreBackend.INFLUXDB
        assert config.influxdb == InfluxDBConfig(host="http://localhost:8086", db="telemetry")

    def test_path_from_environment(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that PING_TELEMETRY_CONFIG selects the file."""
        path = temp_dir / "other.toml"
        path.write_text(MINIMAL_TOML)
        monkeypatch.setenv("PING_TELEMETRY_CONFIG", str(path))

        assert load_config().ping_targets == ("1.1.1.1", "example.com")

    def test_missing_file(self, temp_dir: Path) -> None:
        """Test that a missing file is a ConfigError."""
        with pytest.raises(ConfigError, match="not found"):
            load_config(temp_dir / "nope.toml")

    def test_invalid_toml(self, temp_dir: Path) -> None:
        """Test that unparsable TOML is a ConfigError."""
        path = temp_dir / "bad.toml"
        path.write_text("ping_host = [")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(path)


class TestConfigFromDict:
    """Tests for validation and environment overrides."""

    def _data(self, **extra) -> dict:
        data = {
            "ping_targets": ["a"],
            "influxdb": {"host": "http://influx:8086", "db": "pings"},
        }
        data.update(extra)
        return data

    def test_full_configuration(self) -> None:
        """Test that every key is honored."""
        config = config_from_dict(
            self._data(
                ping_count=5,
                probe_interval=0.5,
                channel_capacity=4,
                on_host_failure="abort",
                fail_on_flush_error=True,
                origin="probe-01",
                influxdb={"host": "http://influx:8086", "db": "pings", "token": "t0k"},
            )
        )

        assert config.ping_count == 5
        assert config.probe_interval == 0.5
        assert config.channel_capacity == 4
        assert config.on_host_failure == HostFailurePolicy.ABORT
        assert config.fail_on_flush_error is True
        assert config.origin == "probe-01"
        assert config.influxdb is not None
        assert config.influxdb.token == "t0k"

    def test_ping_targets_preferred_over_ping_host(self) -> None:
        """Test that ping_targets wins when both aliases are present."""
        config = config_from_dict(self._data(ping_host=["legacy"]))
        assert config.ping_targets == ("a",)

    def test_single_string_target(self) -> None:
        """Test that a bare string is accepted as one host."""
        assert config_from_dict(self._data(ping_targets="solo")).ping_targets == ("solo",)

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test environment overrides for count and token."""
        monkeypatch.setenv("PING_TELEMETRY_PING_COUNT", "2")
        monkeypatch.setenv("PING_TELEMETRY_INFLUXDB_TOKEN", "from-env")

        config = config_from_dict(self._data(ping_count=9))

        assert config.ping_count == 2
        assert config.influxdb is not None
        assert config.influxdb.token == "from-env"

    def test_file_backends(self) -> None:
        """Test selecting the jsonl and sqlite backends."""
        jsonl = config_from_dict(
            {"ping_targets": ["a"], "backend": "jsonl", "jsonl": {"path": "out.jsonl"}}
        )
        sqlite = config_from_dict(
            {"ping_targets": ["a"], "backend": "sqlite", "sqlite": {"path": "out.db"}}
        )

        assert jsonl.jsonl is not None and jsonl.jsonl.path == Path("out.jsonl")
        assert sqlite.sqlite is not None and sqlite.sqlite.table == "ping_measurement"

    @pytest.mark.parametrize(
        ("extra", "message"),
        [
            ({"ping_targets": []}, "at least one host"),
            ({"ping_targets": ["ok", ""]}, "Invalid ping target"),
            ({"ping_targets": 5}, "list of host names"),
            ({"ping_count": 0}, "positive"),
            ({"ping_count": "ten"}, "integer"),
            ({"ping_count": True}, "integer"),
            ({"channel_capacity": 0}, "channel_capacity"),
            ({"probe_interval": 0}, "probe_interval"),
            ({"on_host_failure": "retry"}, "retry"),
            ({"backend": "graphite"}, "graphite"),
            ({"backend": "jsonl"}, r"\[jsonl\]"),
            ({"influxdb": {"host": "http://x"}}, "'host' and 'db'"),
            ({"influxdb": "http://x"}, "must be a table"),
        ],
    )
    def test_invalid_values(self, extra: dict, message: str) -> None:
        """Test that malformed input raises ConfigError."""
        with pytest.raises(ConfigError, match=message):
            config_from_dict(self._data(**extra))

    def test_missing_targets(self) -> None:
        """Test that a config without hosts is rejected."""
        with pytest.raises(ConfigError, match="ping_targets"):
            config_from_dict({"influxdb": {"host": "http://x", "db": "y"}})

    def test_dataclass_is_frozen(self) -> None:
        """Test that the loaded config cannot be mutated."""
        config = config_from_dict(self._data())
        assert isinstance(config, CollectorConfig)
        with pytest.raises(AttributeError):
            config.ping_count = 1  # type: ignore[misc]
