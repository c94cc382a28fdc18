"""In-memory ledger service for tests and local demos.

``InMemoryLedger`` applies batches to a plain dict and fakes what the real
service adds around it: a state root per transition, a history, and a
publication height whose record only becomes fetchable after a configurable
number of lookups (``propagation_lag``). ``create_fake_ledger_app`` serves it
over the same HTTP routes as the real service; it also implements
``LedgerReader`` and ``TransitionSource`` directly for in-process use.

Roots are SHA-256 digests of the sorted state, not Merkle roots, and proofs
are opaque placeholder bytes.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from aiohttp import web

from zkda.encoding import b64encode
from zkda.errors import InvalidInput, NotYetAvailable
from zkda.ledger.models import TransitionRecord, ValueProof
from zkda.transition.accounts import account_key, encode_account
from zkda.transition.operations import OperationKind, TransitionBatch

FAKE_PROGRAM_HASH = hashlib.sha256(b"zkda-fake-transition-program").hexdigest()
FAKE_PROOF_SIZE = 256


@dataclass
class InMemoryLedger:
    """Key/value state plus history, published records, and failure knobs."""

    publish: bool = True
    propagation_lag: int = 0
    first_height: int = 100
    state: Dict[str, bytes] = field(default_factory=dict)
    history: List[Dict[str, Any]] = field(default_factory=list)
    published: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    pending_lookups: Dict[int, int] = field(default_factory=dict)
    received_batches: List[Dict[str, Any]] = field(default_factory=list)
    reads: List[str] = field(default_factory=list)
    fail_next_apply: Optional[str] = None

    def __post_init__(self):
        if not self.history:
            self.history.append({"sequence": 0, "root": self.root(), "celestia_height": None})
        self._next_height = self.first_height

    def root(self) -> str:
        digest = hashlib.sha256()
        for key in sorted(self.state):
            digest.update(key.encode("utf-8"))
            digest.update(b"\x00")
            digest.update(self.state[key])
        return digest.hexdigest()

    def put(self, key: str, value: bytes) -> None:
        """Seed state directly, bypassing history."""
        self.state[key] = value
        self.history[-1]["root"] = self.root()

    def put_account(self, name: str, balance: int, nonce: int = 0, prefix: str = "account") -> None:
        self.put(account_key(name, prefix), encode_account(balance, nonce))

    # -------------------------------------------------------------------------
    # Service semantics
    # -------------------------------------------------------------------------

    def value_response(self, key: str) -> Dict[str, Any]:
        value = self.state.get(key)
        return {
            "key": key,
            "value": b64encode(value),
            "root": self.root(),
            "proof": self.proof_response(key),
        }

    def proof_response(self, key: str) -> Dict[str, Any]:
        return {
            "key_hash": hashlib.sha256(key.encode("utf-8")).hexdigest(),
            "value": b64encode(self.state.get(key)),
            "siblings": [],
        }

    def apply(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Apply a ``POST /transition`` body and return the service's answer."""
        if self.fail_next_apply is not None:
            message, self.fail_next_apply = self.fail_next_apply, None
            raise InvalidInput(message)

        batch = TransitionBatch.from_wire(body)
        self.received_batches.append(body)

        prev_root = self.root()
        for op in batch.operations:
            if op.kind is OperationKind.INSERT:
                self.state[op.key] = op.value
            else:
                self.state.pop(op.key, None)
        new_root = self.root()

        sequence = len(self.history)
        height: Optional[int] = None
        proof = hashlib.sha256(f"{sequence}:{new_root}".encode()).digest() * (FAKE_PROOF_SIZE // 32)
        if self.publish:
            height = self._next_height
            self._next_height += 1
            self.published[height] = {
                "sequence": sequence,
                "prev_root": prev_root,
                "new_root": new_root,
                "public_inputs": b64encode(batch.public_inputs or b""),
                "proof": b64encode(proof),
                "proof_size_bytes": len(proof),
                "program_hash": FAKE_PROGRAM_HASH,
                "celestia_height": height,
            }
            self.pending_lookups[height] = self.propagation_lag

        self.history.append({"sequence": sequence, "root": new_root, "celestia_height": height})
        return {
            "sequence": sequence,
            "prev_root": prev_root,
            "new_root": new_root,
            "celestia_height": height,
            "proof_size_bytes": len(proof),
        }

    def lookup_transition(self, height: int) -> Optional[Dict[str, Any]]:
        """Record at ``height``, or None while it is still "propagating"."""
        if height not in self.published:
            return None
        remaining = self.pending_lookups.get(height, 0)
        if remaining > 0:
            self.pending_lookups[height] = remaining - 1
            return None
        return self.published[height]

    # -------------------------------------------------------------------------
    # In-process LedgerReader / TransitionSource
    # -------------------------------------------------------------------------

    async def get_value(self, key: str, encoding: str = "utf8") -> ValueProof:
        self.reads.append(key)
        return ValueProof.from_dict(self.value_response(key))

    async def celestia_transition(self, height: int) -> TransitionRecord:
        record = self.lookup_transition(height)
        if record is None:
            raise NotYetAvailable(height)
        return TransitionRecord.from_dict(record)

    async def celestia_transitions(self, from_height: int, to_height: int) -> List[TransitionRecord]:
        return [
            TransitionRecord.from_dict(self.published[h])
            for h in sorted(self.published)
            if from_height <= h <= to_height
        ]


def create_fake_ledger_app(ledger: InMemoryLedger) -> web.Application:
    """aiohttp application serving ``ledger`` on the ledger-service routes."""
    app = web.Application()

    def error(message: str, status: int) -> web.Response:
        return web.json_response({"error": message}, status=status)

    def decode_key(request: web.Request) -> str:
        key = request.query.get("key", "")
        if request.query.get("encoding") == "hex":
            try:
                return bytes.fromhex(key).decode("utf-8")
            except ValueError as e:
                raise web.HTTPBadRequest(
                    text=f'{{"error": "invalid hex key: {e}"}}',
                    content_type="application/json",
                ) from e
        return key

    async def health(request: web.Request) -> web.Response:
        return web.json_response({"status": "ok", "version": "0.0.0-fake"})

    async def latest_root(request: web.Request) -> web.Response:
        last = ledger.history[-1]
        return web.json_response(
            {
                "root": ledger.root(),
                "transition_index": len(ledger.history) - 1,
                "celestia_height": last["celestia_height"],
            }
        )

    async def value(request: web.Request) -> web.Response:
        return web.json_response(ledger.value_response(decode_key(request)))

    async def merkle_proof(request: web.Request) -> web.Response:
        return web.json_response(ledger.proof_response(decode_key(request)))

    async def sync_status(request: web.Request) -> web.Response:
        heights = [e["celestia_height"] for e in ledger.history if e["celestia_height"] is not None]
        return web.json_response(
            {
                "transition_index": len(ledger.history) - 1,
                "latest_root": ledger.root(),
                "celestia_enabled": ledger.publish,
                "last_celestia_height": heights[-1] if heights else None,
            }
        )

    async def history(request: web.Request) -> web.Response:
        return web.json_response({"entries": ledger.history})

    async def transition(request: web.Request) -> web.Response:
        try:
            body = await request.json()
            return web.json_response(ledger.apply(body))
        except InvalidInput as e:
            return error(e.user_message, 400)

    async def celestia_transition(request: web.Request) -> web.Response:
        try:
            height = int(request.query["height"])
        except (KeyError, ValueError):
            return error("height is required", 400)
        record = ledger.lookup_transition(height)
        if record is None:
            return error(f"No transition found at height {height}", 404)
        return web.json_response(record)

    async def celestia_transitions(request: web.Request) -> web.Response:
        try:
            lo = int(request.query["from_height"])
            hi = int(request.query["to_height"])
        except (KeyError, ValueError):
            return error("from_height and to_height are required", 400)
        records = [ledger.published[h] for h in sorted(ledger.published) if lo <= h <= hi]
        return web.json_response({"transitions": records})

    app.router.add_get("/health", health)
    app.router.add_get("/root/latest", latest_root)
    app.router.add_get("/value", value)
    app.router.add_get("/proof/merkle", merkle_proof)
    app.router.add_get("/sync/status", sync_status)
    app.router.add_get("/history", history)
    app.router.add_post("/transition", transition)
    app.router.add_get("/celestia/transition", celestia_transition)
    app.router.add_get("/celestia/transitions", celestia_transitions)
    return app
