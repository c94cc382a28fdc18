"""Tests for the zkda command-line client."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import socket
import threading
from contextlib import closing

import pytest
from aiohttp import web

from zkda.cli import build_parser, main
from zkda.retrieval.retriever import FAILURE_MESSAGE
from zkda.testing import InMemoryLedger, create_fake_ledger_app
from zkda.transition.accounts import AccountRecord, decode_account


@pytest.fixture(autouse=True)
def _isolate(monkeypatch):
    for key in list(os.environ):
        if key.startswith("ZKDA_"):
            monkeypatch.delenv(key, raising=False)
    yield
    root = logging.getLogger("zkda")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.propagate = True


@pytest.fixture
def served():
    """In-memory ledger served from a background event loop.

    ``main`` runs its own ``asyncio.run``, so the service cannot share the
    test's loop.
    """
    ledger = InMemoryLedger()
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()

    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    async def start() -> web.AppRunner:
        runner = web.AppRunner(create_fake_ledger_app(ledger))
        await runner.setup()
        await web.TCPSite(runner, "127.0.0.1", port).start()
        return runner

    runner = asyncio.run_coroutine_threadsafe(start(), loop).result(timeout=10)
    try:
        yield ledger, f"http://127.0.0.1:{port}"
    finally:
        asyncio.run_coroutine_threadsafe(runner.cleanup(), loop).result(timeout=10)
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout=10)
        loop.close()


def _account(ledger: InMemoryLedger, name: str):
    return decode_account(ledger.state.get(f"account:{name}"))


class TestParser:
    def test_transfer_arguments(self):
        args = build_parser().parse_args(["--json", "transfer", "alice", "bob", "100"])
        assert (args.command, args.sender, args.recipient, args.amount) == ("transfer", "alice", "bob", 100)
        assert args.json

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestCommands:
    def test_create_and_transfer(self, served, capsys):
        ledger, url = served

        assert main(["--base-url", url, "create-account", "alice", "1000"]) == 0
        assert main(["--base-url", url, "transfer", "alice", "bob", "100"]) == 0

        assert _account(ledger, "alice") == AccountRecord(900, 1)
        assert _account(ledger, "bob") == AccountRecord(100, 0)
        out = capsys.readouterr().out
        assert "✅ Transition #2, celestia height 101" in out

    def test_insufficient_balance_exit_code(self, served, capsys):
        ledger, url = served
        ledger.put_account("alice", 5)

        assert main(["--base-url", url, "transfer", "alice", "bob", "6"]) == 1
        assert "Insufficient balance: 5 < 6" in capsys.readouterr().out
        assert ledger.received_batches == []

    def test_account_lookup_json(self, served, capsys):
        ledger, url = served
        ledger.put_account("alice", 42, 7)

        assert main(["--base-url", url, "--json", "account", "alice"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert (payload["balance"], payload["nonce"]) == (42, 7)

    def test_missing_account(self, served, capsys):
        _, url = served
        assert main(["--base-url", url, "account", "ghost"]) == 1
        assert "not found" in capsys.readouterr().out

    def test_transition_fetch(self, served, capsys):
        _, url = served
        main(["--base-url", url, "create-account", "alice", "1"])
        capsys.readouterr()

        assert main(["--base-url", url, "--json", "transition", "100"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["sequence"] == 1
        assert payload["celestia_height"] == 100

    def test_transition_unavailable(self, served, capsys):
        _, url = served
        assert main(["--base-url", url, "transition", "999", "--attempts", "1"]) == 2
        assert FAILURE_MESSAGE in capsys.readouterr().out

    def test_verify_chain(self, served, capsys):
        ledger, url = served
        genesis = ledger.root()
        main(["--base-url", url, "create-account", "alice", "10"])
        main(["--base-url", url, "transfer", "alice", "bob", "4"])
        capsys.readouterr()

        assert main(["--base-url", url, "--json", "verify-chain", "100", "101", "--prev-root", genesis]) == 0
        report = json.loads(capsys.readouterr().out)
        assert report["transitions_checked"] == 2
        assert report["latest_root"] == ledger.root()

    def test_history(self, served, capsys):
        _, url = served
        main(["--base-url", url, "create-account", "alice", "10"])
        capsys.readouterr()

        assert main(["--base-url", url, "history"]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith("#1 ")
        assert lines[-1].endswith("local only")

    def test_bad_base_url(self, capsys):
        assert main(["--base-url", "not-a-url", "health"]) == 2
        assert "Invalid configuration" in capsys.readouterr().out

    def test_unreachable_service(self, capsys):
        with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as sock:
            sock.bind(("127.0.0.1", 0))
            port = sock.getsockname()[1]

        assert main(["--base-url", f"http://127.0.0.1:{port}", "health"]) == 1
        assert "unreachable" in capsys.readouterr().out


class TestTransitionOptions:
    def test_zero_attempts_rejected(self, served, capsys):
        _, url = served
        assert main(["--base-url", url, "transition", "100", "--attempts", "0"]) == 2
        assert "max_attempts must be >= 1" in capsys.readouterr().out
