"""Measurement hand-off and persistence pipeline."""

from ping_telemetry.pipeline.channel import (
    DEFAULT_CHANNEL_CAPACITY,
    ChannelSender,
    MeasurementChannel,
)
from ping_telemetry.pipeline.writer import BatchWriter, WriterMetrics

__all__ = [
    "DEFAULT_CHANNEL_CAPACITY",
    "BatchWriter",
    "ChannelSender",
    "MeasurementChannel",
    "WriterMetrics",
]
