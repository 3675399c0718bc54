"""Persistence and data storage module."""

from ping_telemetry.persistence.base import Store, StoreError
from ping_telemetry.persistence.factory import create_store
from ping_telemetry.persistence.influxdb import InfluxDBStore, to_line_protocol
from ping_telemetry.persistence.jsonl import JsonlStore
from ping_telemetry.persistence.sqlite import SqliteStore

__all__ = [
    "InfluxDBStore",
    "JsonlStore",
    "SqliteStore",
    "Store",
    "StoreError",
    "create_store",
    "to_line_protocol",
]
