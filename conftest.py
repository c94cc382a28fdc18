"""Shared pytest fixtures for zkda tests.

Provides an in-memory ledger, the same ledger served over HTTP on a free
local port, a client bound to it, and a sleep recorder for backoff tests.
"""

from __future__ import annotations

import socket
from contextlib import closing
from typing import AsyncIterator, List

import pytest
import pytest_asyncio
from aiohttp import web

from zkda.config import LedgerConfig
from zkda.ledger.client import LedgerClient
from zkda.testing import InMemoryLedger, create_fake_ledger_app


def _find_free_port() -> int:
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class SleepRecorder:
    """Stands in for ``asyncio.sleep``; records delays without waiting."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def ledger() -> InMemoryLedger:
    """Empty ledger that publishes every transition with no propagation lag."""
    return InMemoryLedger()


@pytest.fixture
def fake_sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest_asyncio.fixture
async def ledger_url(ledger: InMemoryLedger) -> AsyncIterator[str]:
    """Base URL of ``ledger`` served by a local aiohttp site."""
    runner = web.AppRunner(create_fake_ledger_app(ledger))
    await runner.setup()

    port = _find_free_port()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    try:
        yield f"http://127.0.0.1:{port}"
    finally:
        await runner.cleanup()


@pytest_asyncio.fixture
async def client(ledger_url: str) -> AsyncIterator[LedgerClient]:
    async with LedgerClient(LedgerConfig(base_url=ledger_url, timeout_seconds=5.0)) as c:
        yield c
