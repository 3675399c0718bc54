"""Bounded multi-producer, single-consumer channel for measurements."""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator
from typing import Any, Self

from ping_telemetry.exceptions import ChannelClosedError
from ping_telemetry.models import Measurement

DEFAULT_CHANNEL_CAPACITY = 33

_CLOSED = object()


class ChannelSender:
    """Send handle held by exactly one producer.

    Releasing the last open handle closes the channel for the receiver.
    """

    def __init__(self, channel: MeasurementChannel) -> None:
        self._channel = channel
        self._released = False

    @property
    def is_released(self) -> bool:
        """Whether this handle has been released."""
        return self._released

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def send(self, measurement: Measurement) -> None:
        """Send a measurement, suspending while the channel is full.

        Args:
            measurement: The sample to hand off.

        Raises:
            ChannelClosedError: If this handle was released or the channel closed,
                including while this call was waiting for space.
        """
        if self._released:
            raise ChannelClosedError("Cannot send on a released sender")
        await self._channel._put(measurement)

    async def aclose(self) -> None:
        """Release this handle. Safe to call more than once."""
        if self._released:
            return
        self._released = True
        await self._channel._release_sender()


class MeasurementChannel:
    """
    Bounded FIFO hand-off between probe workers and the batch writer.

    Built on asyncio.Queue with a fixed maxsize so that senders are suspended
    (backpressure) instead of dropping measurements when the writer falls
    behind. The channel closes once every sender handle has been released or
    :meth:`close` is called; the receiver then drains what is left and its
    ``async for`` loop ends normally. Senders still waiting for space when
    the channel closes are woken and raise ChannelClosedError.

    Args:
        capacity: Maximum number of outstanding measurements. Default 33.

    Example:
        ```python
        channel = MeasurementChannel(capacity=33)
        sender = channel.sender()

        async def produce():
            async with sender:
                await sender.send(measurement)

        async def consume():
            async for measurement in channel:
                await store.add_measurement(measurement)
        ```
    """

    def __init__(self, capacity: int | None = None) -> None:
        if capacity is None:
            capacity = int(
                os.getenv("PING_TELEMETRY_CHANNEL_CAPACITY", str(DEFAULT_CHANNEL_CAPACITY))
            )
        self._capacity = capacity
        if self._capacity < 1:
            raise ValueError("capacity must be at least 1")

        # One extra slot keeps room for the close marker
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=self._capacity + 1)
        self._space_changed = asyncio.Condition()
        self._open_senders = 0
        self._closed = False
        self._peak_size = 0
        self._size = 0

    @property
    def capacity(self) -> int:
        """Maximum number of outstanding measurements."""
        return self._capacity

    @property
    def size(self) -> int:
        """Number of measurements currently buffered."""
        return self._size

    @property
    def peak_size(self) -> int:
        """Highest number of measurements buffered at once."""
        return self._peak_size

    @property
    def is_closed(self) -> bool:
        """Whether the channel no longer accepts measurements."""
        return self._closed

    @property
    def open_senders(self) -> int:
        """Number of sender handles not yet released."""
        return self._open_senders

    def sender(self) -> ChannelSender:
        """Create a new send handle.

        Raises:
            ChannelClosedError: If the channel is already closed.
        """
        if self._closed:
            raise ChannelClosedError("Cannot create a sender on a closed channel")
        self._open_senders += 1
        return ChannelSender(self)

    async def _put(self, measurement: Measurement) -> None:
        if self._closed:
            raise ChannelClosedError("Cannot send on a closed channel")

        async with self._space_changed:
            await self._space_changed.wait_for(
                lambda: self._closed or self._size < self._capacity
            )
            if self._closed:
                raise ChannelClosedError("Channel closed while waiting to send")

            self._queue.put_nowait(measurement)
            self._size += 1
            self._peak_size = max(self._peak_size, self._size)

    async def _release_sender(self) -> None:
        self._open_senders -= 1
        if self._open_senders <= 0:
            await self.close()

    async def close(self) -> None:
        """Close the channel for sending. Safe to call more than once.

        Measurements already buffered are still delivered to the receiver.
        """
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

        # Senders still waiting for space fail instead of hanging
        async with self._space_changed:
            self._space_changed.notify_all()

    async def recv(self) -> Measurement | None:
        """Receive the next measurement.

        Returns:
            The next measurement, or None once the channel is closed and drained.
        """
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker in place so later receives also see the end
            self._queue.put_nowait(_CLOSED)
            return None

        self._size -= 1
        async with self._space_changed:
            self._space_changed.notify_all()
        return item

    async def __aiter__(self) -> AsyncIterator[Measurement]:
        while True:
            measurement = await self.recv()
            if measurement is None:
                return
            yield measurement
