"""Fixtures for integration tests: a local InfluxDB write endpoint."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import Any

import pytest_asyncio
from aiohttp import web


@dataclass
class FakeInfluxDB:
    """Minimal InfluxDB ``/write`` endpoint recording every accepted batch.

    Requests are rejected with 401 when ``token`` is set and the
    Authorization header does not carry it, and with ``fail_status`` when
    that is set.
    """

    token: str | None = None
    fail_status: int | None = None
    host: str = "127.0.0.1"
    writes: list[dict[str, Any]] = field(default_factory=list)
    _runner: web.AppRunner | None = field(default=None, init=False)
    _bound_port: int | None = field(default=None, init=False)

    @property
    def base_url(self) -> str:
        """Base URL of the running server."""
        return f"http://{self.host}:{self._bound_port}"

    @property
    def lines(self) -> list[str]:
        """All accepted line-protocol lines, in arrival order."""
        return [line for write in self.writes for line in write["body"].splitlines()]

    async def handle_write(self, request: web.Request) -> web.Response:
        """Accept a line-protocol batch."""
        if self.fail_status is not None:
            return web.json_response({"error": "injected failure"}, status=self.fail_status)
        if self.token is not None and request.headers.get("Authorization") != f"Token {self.token}":
            return web.json_response({"error": "authorization failed"}, status=401)

        self.writes.append(
            {
                "db": request.query.get("db"),
                "precision": request.query.get("precision"),
                "body": await request.text(),
            }
        )
        return web.Response(status=204)

    async def start(self) -> None:
        """Start listening on an ephemeral port."""
        app = web.Application()
        app.router.add_post("/write", self.handle_write)
        self._runner = web.AppRunner(app)
        await self._runner.setup()

        site = web.TCPSite(self._runner, self.host, 0)
        await site.start()
        address = self._runner.addresses[0]
        self._bound_port = address[1]

    async def stop(self) -> None:
        """Stop the server."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None


@pytest_asyncio.fixture
async def influxdb_server() -> AsyncGenerator[FakeInfluxDB, None]:
    """Start a fake InfluxDB server for the duration of one test."""
    server = FakeInfluxDB(token="integration-token")
    await server.start()
    try:
        yield server
    finally:
        await server.stop()
