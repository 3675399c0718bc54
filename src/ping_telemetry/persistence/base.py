"""Base protocols for the persistence layer."""

from typing import Protocol, runtime_checkable

from ping_telemetry.exceptions import StoreError
from ping_telemetry.models import Measurement

__all__ = ["Store", "StoreError"]


@runtime_checkable
class Store(Protocol):
    """Protocol for measurement storage backends.

    Implementations raise StoreError when a write or flush fails.
    """

    async def add_measurement(self, measurement: Measurement) -> None:
        """Buffer or forward a single measurement."""
        ...

    async def flush(self) -> None:
        """Deliver all buffered writes in one batch.

        A no-op when nothing is buffered. The buffer is cleared only on success.
        """
        ...
