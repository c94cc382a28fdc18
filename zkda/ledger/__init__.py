"""Ledger-service access: HTTP client, response models, and the read interfaces."""

from .models import (
    ApplyTransitionResult,
    HealthStatus,
    HistoryEntry,
    MerkleProofView,
    RootInfo,
    SyncStatus,
    TransitionRecord,
    ValueProof,
)
from .protocols import LedgerReader, TransitionSource
from .client import LedgerClient

__all__ = [
    "ApplyTransitionResult",
    "HealthStatus",
    "HistoryEntry",
    "MerkleProofView",
    "RootInfo",
    "SyncStatus",
    "TransitionRecord",
    "ValueProof",
    "LedgerReader",
    "TransitionSource",
    "LedgerClient",
]
