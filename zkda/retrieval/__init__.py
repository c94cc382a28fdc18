"""Reads from the availability network: bounded-retry lookups and chain checks."""

from .retriever import (
    FAILURE_MESSAGE,
    CancellationToken,
    ConsistencyRetriever,
    RetrievalState,
    Selection,
)
from .chain import ChainReport, check_chain, sync_range

__all__ = [
    "FAILURE_MESSAGE",
    "CancellationToken",
    "ConsistencyRetriever",
    "RetrievalState",
    "Selection",
    "ChainReport",
    "check_chain",
    "sync_range",
]
