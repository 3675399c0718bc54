"""SQLite store with buffered async writes using aiosqlite."""

from typing import Any, Self

import aiosqlite

from ping_telemetry.config import SqliteConfig
from ping_telemetry.exceptions import StoreError
from ping_telemetry.models import Measurement
from ping_telemetry.persistence.base import Store


class SqliteStore(Store):
    """SQLite store with buffered async writes using aiosqlite.

    Buffers rows in memory and inserts them in a single transaction on
    ``flush``. On failure the transaction is rolled back and the rows stay
    buffered.

    Example:
        ```python
        async with SqliteStore(SqliteConfig(Path("pings.db")), origin="probe-01") as store:
            await store.add_measurement(measurement)
            await store.flush()
        ```
    """

    def __init__(self, config: SqliteConfig, origin: str) -> None:
        """Initialize the SQLite store.

        Args:
            config: Store configuration.
            origin: Identity of the collecting machine.

        Raises:
            ValueError: If the table name is not a valid identifier.
        """
        if not config.table.isidentifier():
            raise ValueError(f"Invalid table name: {config.table!r}")

        self._config = config
        self._origin = origin
        self._buffer: list[tuple[int, int, str, str]] = []
        self._db: aiosqlite.Connection | None = None
        self._closed = False

    async def __aenter__(self) -> Self:
        """Enter async context manager and open the database."""
        await self._open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager and close the database."""
        await self.close()

    @property
    def pending(self) -> int:
        """Number of rows waiting for the next flush."""
        return len(self._buffer)

    async def _open(self) -> None:
        """Open the SQLite database connection.

        Raises:
            StoreError: If the database cannot be opened or initialized.
        """
        try:
            self._db = await aiosqlite.connect(self._config.path, isolation_level=None)
            await self._db.execute("PRAGMA journal_mode = WAL")
            await self._db.execute("PRAGMA synchronous = NORMAL")
            await self._ensure_schema()
        except (aiosqlite.Error, OSError) as exc:
            raise StoreError(f"Cannot open {self._config.path}: {exc}") from exc

    async def _ensure_schema(self) -> None:
        """Create the table and indexes if they don't exist."""
        if self._db is None:
            raise RuntimeError("Database connection not open")

        table = self._config.table
        await self._db.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                time INTEGER NOT NULL,
                duration INTEGER NOT NULL,
                target TEXT NOT NULL,
                origin TEXT NOT NULL
            )
            """
        )
        await self._db.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_target ON {table}(target)")
        await self._db.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_time ON {table}(time)")

    async def add_measurement(self, measurement: Measurement) -> None:
        """Add a row to the buffer."""
        if self._closed:
            raise StoreError("Cannot write to closed store")

        self._buffer.append(
            (measurement.time, measurement.duration_ms, measurement.host, self._origin)
        )

    async def flush(self) -> None:
        """Insert all buffered rows in one transaction.

        Raises:
            StoreError: If the store is closed or the transaction fails.
        """
        if self._closed:
            raise StoreError("Cannot flush a closed store")
        if not self._buffer:
            return

        if self._db is None:
            await self._open()
        if self._db is None:
            raise RuntimeError("Database connection not open")

        try:
            await self._db.execute("BEGIN TRANSACTION")
            try:
                await self._db.executemany(
                    f"""
                    INSERT INTO {self._config.table} (time, duration, target, origin)
                    VALUES (?, ?, ?, ?)
                    """,
                    self._buffer,
                )
                await self._db.execute("COMMIT")
            except Exception:
                await self._db.execute("ROLLBACK")
                raise
        except (aiosqlite.Error, OSError) as exc:
            raise StoreError(f"Failed to write data to {self._config.path}: {exc}") from exc

        self._buffer.clear()

    async def close(self) -> None:
        """Close the database connection. Unflushed rows are discarded."""
        if self._closed:
            return

        self._closed = True

        if self._db:
            await self._db.close()
            self._db = None
