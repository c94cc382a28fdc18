"""Process-local session: build, submit, and remember.

A ``Session`` ties the encoder to a ledger client and keeps a convenience
record of what this process has submitted and looked up. Nothing here is
persisted; after a restart, ``refresh_history`` re-reads the authoritative
history from the ledger service.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from zkda.ledger.client import LedgerClient
from zkda.ledger.models import ApplyTransitionResult, HistoryEntry, ValueProof
from zkda.transition.accounts import AccountRecord
from zkda.transition.encoder import TransitionEncoder
from zkda.transition.operations import TransitionBatch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackedTransfer:
    """A transfer this process submitted and the ledger accepted."""

    id: int
    from_name: str
    to_name: str
    amount: int
    sequence: int
    celestia_height: Optional[int]
    proof_size_bytes: int
    timestamp: float


@dataclass
class TrackedAccount:
    name: str
    state: Optional[AccountRecord]
    root: str
    observed: ValueProof


@dataclass
class Session:
    client: LedgerClient
    encoder: TransitionEncoder
    transfers: List[TrackedTransfer] = field(default_factory=list)
    accounts: Dict[str, TrackedAccount] = field(default_factory=dict)
    history: List[HistoryEntry] = field(default_factory=list)
    _next_id: int = field(default=1, init=False, repr=False)

    @classmethod
    def for_client(cls, client: LedgerClient, encoder: Optional[TransitionEncoder] = None) -> "Session":
        return cls(client=client, encoder=encoder or TransitionEncoder(client))

    async def submit(self, batch: TransitionBatch) -> ApplyTransitionResult:
        return await self.client.apply_transition(batch)

    async def lookup_account(self, name: str) -> TrackedAccount:
        """Read an account and remember the latest observation."""
        state, observed = await self.client.get_account(name, self.encoder.config.account_prefix)
        tracked = TrackedAccount(name=name, state=state, root=observed.root, observed=observed)
        self.accounts[name] = tracked
        return tracked

    async def create_account(self, name: str, initial_balance: int) -> ApplyTransitionResult:
        result = await self.submit(self.encoder.build_create_account(name, initial_balance))
        logger.info("Account %s created at transition #%d", name, result.sequence)
        await self.lookup_account(name)
        return result

    async def transfer(self, from_name: str, to_name: str, amount: int) -> TrackedTransfer:
        batch = await self.encoder.build_transfer(from_name, to_name, amount)
        result = await self.submit(batch)
        record = TrackedTransfer(
            id=self._next_id,
            from_name=from_name,
            to_name=to_name,
            amount=amount,
            sequence=result.sequence,
            celestia_height=result.celestia_height,
            proof_size_bytes=result.proof_size_bytes,
            timestamp=time.time(),
        )
        self._next_id += 1
        self.transfers.insert(0, record)
        return record

    async def mint(self, name: str, amount: int) -> ApplyTransitionResult:
        return await self.submit(await self.encoder.build_mint(name, amount))

    async def burn(self, name: str, amount: int) -> ApplyTransitionResult:
        return await self.submit(await self.encoder.build_burn(name, amount))

    async def refresh_history(self) -> List[HistoryEntry]:
        self.history = await self.client.history()
        return self.history

    def published_entries(self) -> List[HistoryEntry]:
        """History entries that have a publication height, newest first."""
        return [e for e in reversed(self.history) if e.is_published]
