"""Command-line client for the ledger service (accounts, transfers, proofs)."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import sys
from typing import Any, Awaitable, Callable

from zkda.config import ClientConfig, RetryPolicy
from zkda.errors import ZkdaError
from zkda.ledger.client import LedgerClient
from zkda.logging import configure_logging, load_logging_options_from_env
from zkda.retrieval.chain import sync_range
from zkda.retrieval.retriever import ConsistencyRetriever, RetrievalState, Selection
from zkda.session import Session
from zkda.transition.encoder import TransitionEncoder

SUCCESS = "✅"
STEP = "🚀"
WARN = "⚠️"
ERROR = "❌"

Command = Callable[[Session, argparse.Namespace], Awaitable[int]]


def _print_header(args: argparse.Namespace, title: str) -> None:
    if not args.json:
        print(f"{STEP} {title}")


def _emit(args: argparse.Namespace, payload: Any, text: str) -> None:
    if args.json:
        if dataclasses.is_dataclass(payload):
            payload = dataclasses.asdict(payload)
        print(json.dumps(payload, sort_keys=True, indent=2, default=_json_default))
    else:
        print(text)


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    if hasattr(value, "value"):
        return value.value
    return str(value)


def _load_config(args: argparse.Namespace) -> ClientConfig:
    config = ClientConfig.load(args.config)
    if args.base_url:
        config.ledger = dataclasses.replace(config.ledger, base_url=args.base_url)
    return config


def _run(command: Command) -> Callable[[argparse.Namespace], int]:
    """Wrap an async command: open a client, map client errors to exit codes."""

    def runner(args: argparse.Namespace) -> int:
        try:
            config = _load_config(args)
        except ValueError as exc:
            print(f"{ERROR} Invalid configuration: {exc}")
            return 2

        async def _main() -> int:
            async with LedgerClient(config.ledger) as client:
                session = Session.for_client(client, TransitionEncoder(client, config.encoder))
                args.client_config = config
                return await command(session, args)

        try:
            return asyncio.run(_main())
        except ZkdaError as exc:
            print(f"{ERROR} {exc.user_message}")
            return 1
        except ValueError as exc:
            print(f"{ERROR} Invalid argument: {exc}")
            return 2

    return runner


# =============================================================================
# Commands
# =============================================================================

async def _cmd_health(session: Session, args: argparse.Namespace) -> int:
    health = await session.client.health()
    _emit(args, health, f"{SUCCESS if health.ok else WARN} {health.status} (version {health.version})")
    return 0 if health.ok else 1


async def _cmd_status(session: Session, args: argparse.Namespace) -> int:
    status = await session.client.sync_status()
    height = status.last_celestia_height if status.last_celestia_height is not None else "-"
    _emit(
        args,
        status,
        f"Transition index: {status.transition_index}\n"
        f"Latest root:      {status.latest_root}\n"
        f"Celestia enabled: {status.celestia_enabled}\n"
        f"Last height:      {height}",
    )
    return 0


async def _cmd_account(session: Session, args: argparse.Namespace) -> int:
    tracked = await session.lookup_account(args.name)
    if tracked.state is None:
        _emit(args, {"name": args.name, "state": None, "root": tracked.root}, f"{WARN} Account {args.name!r} not found")
        return 1
    _emit(
        args,
        {"name": args.name, "balance": tracked.state.balance, "nonce": tracked.state.nonce, "root": tracked.root},
        f"{args.name}: balance={tracked.state.balance} nonce={tracked.state.nonce} (root {tracked.root})",
    )
    return 0


async def _cmd_create_account(session: Session, args: argparse.Namespace) -> int:
    _print_header(args, f"Creating account {args.name!r}")
    result = await session.create_account(args.name, args.balance)
    _emit(args, result, f"{SUCCESS} Transition #{result.sequence}, proof {result.proof_size_bytes} bytes")
    return 0


async def _cmd_transfer(session: Session, args: argparse.Namespace) -> int:
    _print_header(args, f"Transferring {args.amount} from {args.sender!r} to {args.recipient!r}")
    record = await session.transfer(args.sender, args.recipient, args.amount)
    height = record.celestia_height if record.celestia_height is not None else "pending"
    _emit(args, record, f"{SUCCESS} Transition #{record.sequence}, celestia height {height}")
    return 0


async def _cmd_mint(session: Session, args: argparse.Namespace) -> int:
    result = await session.mint(args.name, args.amount)
    _emit(args, result, f"{SUCCESS} Minted {args.amount} to {args.name!r} at transition #{result.sequence}")
    return 0


async def _cmd_burn(session: Session, args: argparse.Namespace) -> int:
    result = await session.burn(args.name, args.amount)
    _emit(args, result, f"{SUCCESS} Burned {args.amount} from {args.name!r} at transition #{result.sequence}")
    return 0


async def _cmd_history(session: Session, args: argparse.Namespace) -> int:
    entries = await session.refresh_history()
    if args.json:
        _emit(args, [dataclasses.asdict(e) for e in entries], "")
        return 0
    if not entries:
        print("No transitions yet")
    for entry in reversed(entries):
        height = entry.celestia_height if entry.celestia_height is not None else "local only"
        print(f"#{entry.sequence}  {entry.root}  {height}")
    return 0


async def _cmd_transition(session: Session, args: argparse.Namespace) -> int:
    config: ClientConfig = args.client_config
    policy = RetryPolicy(
        max_attempts=config.retry.max_attempts if args.attempts is None else args.attempts,
        base_delay_seconds=config.retry.base_delay_seconds if args.base_delay is None else args.base_delay,
    )

    def _progress(state: RetrievalState, selection: Selection) -> None:
        if state is RetrievalState.BACKOFF_WAIT and not args.json:
            print(f"{WARN} Attempt {selection.attempts} failed, retrying in {selection.waits[-1]:.0f}s")

    retriever = ConsistencyRetriever(session.client, policy, on_transition=_progress)
    selection = await retriever.select(args.height)

    if selection.state is RetrievalState.FAILED:
        print(f"{ERROR} {selection.error}")
        return 2

    record = selection.record
    _emit(
        args,
        record,
        f"{SUCCESS} Transition #{record.sequence} at height {record.celestia_height}\n"
        f"  {record.prev_root} -> {record.new_root}\n"
        f"  proof {record.proof_size_bytes} bytes, program {record.program_hash}",
    )
    return 0


async def _cmd_verify_chain(session: Session, args: argparse.Namespace) -> int:
    _print_header(args, f"Checking root chain for heights {args.from_height}..{args.to_height}")
    report = await sync_range(
        session.client,
        args.from_height,
        args.to_height,
        expected_prev_root=args.prev_root,
        expected_program_hash=args.program_hash,
    )
    if not args.json:
        for warning in report.warnings:
            print(f"{WARN} {warning}")
    _emit(
        args,
        report.to_dict(),
        f"{SUCCESS} {report.transitions_checked} transitions linked, root {report.first_root} -> {report.latest_root}",
    )
    return 0


# =============================================================================
# Parser
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Ledger service client",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--config", help="Path to TOML/JSON client config")
    parser.add_argument("--base-url", help="Ledger service URL (overrides config)")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("health", help="Check ledger service health").set_defaults(func=_run(_cmd_health))
    sub.add_parser("status", help="Show sync status").set_defaults(func=_run(_cmd_status))
    sub.add_parser("history", help="List accepted transitions").set_defaults(func=_run(_cmd_history))

    p_account = sub.add_parser("account", help="Look up an account")
    p_account.add_argument("name")
    p_account.set_defaults(func=_run(_cmd_account))

    p_create = sub.add_parser("create-account", help="Create an account with an initial balance")
    p_create.add_argument("name")
    p_create.add_argument("balance", type=int)
    p_create.set_defaults(func=_run(_cmd_create_account))

    p_transfer = sub.add_parser("transfer", help="Transfer funds between accounts")
    p_transfer.add_argument("sender")
    p_transfer.add_argument("recipient")
    p_transfer.add_argument("amount", type=int)
    p_transfer.set_defaults(func=_run(_cmd_transfer))

    p_mint = sub.add_parser("mint", help="Credit an existing account")
    p_mint.add_argument("name")
    p_mint.add_argument("amount", type=int)
    p_mint.set_defaults(func=_run(_cmd_mint))

    p_burn = sub.add_parser("burn", help="Debit an existing account")
    p_burn.add_argument("name")
    p_burn.add_argument("amount", type=int)
    p_burn.set_defaults(func=_run(_cmd_burn))

    p_transition = sub.add_parser("transition", help="Fetch a published transition, retrying until it propagates")
    p_transition.add_argument("height", type=int)
    p_transition.add_argument("--attempts", type=int, help="Override retry.max_attempts")
    p_transition.add_argument("--base-delay", type=float, help="Override retry.base_delay_seconds")
    p_transition.set_defaults(func=_run(_cmd_transition))

    p_chain = sub.add_parser("verify-chain", help="Check root continuity over a height range")
    p_chain.add_argument("from_height", type=int)
    p_chain.add_argument("to_height", type=int)
    p_chain.add_argument("--prev-root", help="Root the first transition must start from")
    p_chain.add_argument("--program-hash", help="Expected program hash")
    p_chain.set_defaults(func=_run(_cmd_verify_chain))

    return parser


def main(argv: list[str] | None = None) -> int:
    configure_logging(load_logging_options_from_env())
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
