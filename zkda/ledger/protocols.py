"""Interfaces the encoder and retriever depend on.

``LedgerClient`` implements both. Tests substitute in-memory fakes.
"""

from __future__ import annotations

from typing import List, Protocol

from zkda.ledger.models import TransitionRecord, ValueProof


class LedgerReader(Protocol):
    """Point lookups of proven state."""

    async def get_value(self, key: str, encoding: str = "utf8") -> ValueProof:
        """Return the current value of ``key`` and its inclusion proof.

        Raises:
            RemoteError: If the ledger service cannot answer
        """
        ...


class TransitionSource(Protocol):
    """Read access to transition records on the availability network."""

    async def celestia_transition(self, height: int) -> TransitionRecord:
        """Fetch the record published at ``height``.

        Raises:
            NotYetAvailable: If the record has not propagated yet
            RemoteError: On any other failure
        """
        ...

    async def celestia_transitions(self, from_height: int, to_height: int) -> List[TransitionRecord]:
        ...
