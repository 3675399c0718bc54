"""Ping probe and per-host probe workers."""

from ping_telemetry.probe.ping import (
    PROBE_INTERVAL_SECONDS,
    PingProbe,
    Probe,
    ProbeFactory,
    build_ping_command,
    parse_ping_line,
)
from ping_telemetry.probe.worker import ProbeWorker

__all__ = [
    "PROBE_INTERVAL_SECONDS",
    "PingProbe",
    "Probe",
    "ProbeFactory",
    "ProbeWorker",
    "build_ping_command",
    "parse_ping_line",
]
