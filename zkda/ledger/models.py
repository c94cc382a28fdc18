"""Typed views of ledger-service responses.

Roots and hashes stay hex strings as the service sends them. Base64 byte
fields are decoded to ``bytes`` on the way in. A missing field, a
non-integer count or height, or bad base64 raises ``RemoteError``: a bad
response is the service's fault, never the caller's.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from zkda.encoding import b64decode
from zkda.errors import InvalidInput, RemoteError

MALFORMED = "Malformed response from ledger service"


def _require(obj: Dict[str, Any], name: str) -> Any:
    try:
        return obj[name]
    except (KeyError, TypeError) as e:
        raise RemoteError(MALFORMED, internal_details=f"missing field {name!r} in {obj!r}") from e


def _get(obj: Any, name: str, default: Any = None) -> Any:
    if not isinstance(obj, dict):
        raise RemoteError(MALFORMED, internal_details=f"expected object for {name!r}, got {type(obj).__name__}")
    return obj.get(name, default)


def _to_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise RemoteError(MALFORMED, internal_details=f"field {name!r} is a bool")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise RemoteError(MALFORMED, internal_details=f"field {name!r} is not an integer: {value!r}") from e


def _int_field(obj: Dict[str, Any], name: str) -> int:
    return _to_int(_require(obj, name), name)


def _optional_int_field(obj: Dict[str, Any], name: str) -> Optional[int]:
    value = _get(obj, name)
    return None if value is None else _to_int(value, name)


def _bytes_field(obj: Dict[str, Any], name: str) -> Optional[bytes]:
    """Decode an optional base64 field; bad base64 is the service's fault."""
    try:
        return b64decode(_get(obj, name), name)
    except InvalidInput as e:
        raise RemoteError(MALFORMED, internal_details=e.user_message) from e


@dataclass(frozen=True)
class MerkleProofView:
    """Inclusion (or exclusion) proof for one key. Not verified client-side."""

    key_hash: str
    value: Optional[bytes]
    siblings: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "MerkleProofView":
        return cls(
            key_hash=_require(obj, "key_hash"),
            value=_bytes_field(obj, "value"),
            siblings=list(_get(obj, "siblings") or []),
        )


@dataclass(frozen=True)
class ValueProof:
    """Result of ``GET /value``: the current value plus its proof."""

    key: str
    value: Optional[bytes]
    root: str
    proof: MerkleProofView

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "ValueProof":
        return cls(
            key=_require(obj, "key"),
            value=_bytes_field(obj, "value"),
            root=_require(obj, "root"),
            proof=MerkleProofView.from_dict(_require(obj, "proof")),
        )

    @classmethod
    def absent(cls, key: str, root: str = "") -> "ValueProof":
        return cls(key=key, value=None, root=root, proof=MerkleProofView(key_hash="", value=None))


@dataclass(frozen=True)
class ApplyTransitionResult:
    sequence: int
    prev_root: str
    new_root: str
    celestia_height: Optional[int]
    proof_size_bytes: int = 0

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "ApplyTransitionResult":
        return cls(
            sequence=_int_field(obj, "sequence"),
            prev_root=_require(obj, "prev_root"),
            new_root=_require(obj, "new_root"),
            celestia_height=_optional_int_field(obj, "celestia_height"),
            proof_size_bytes=_optional_int_field(obj, "proof_size_bytes") or 0,
        )


@dataclass(frozen=True)
class HistoryEntry:
    """One accepted batch. ``celestia_height`` is None until published."""

    sequence: int
    root: str
    celestia_height: Optional[int]

    @property
    def is_published(self) -> bool:
        return self.celestia_height is not None

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "HistoryEntry":
        return cls(
            sequence=_int_field(obj, "sequence"),
            root=_require(obj, "root"),
            celestia_height=_optional_int_field(obj, "celestia_height"),
        )


@dataclass(frozen=True)
class TransitionRecord:
    """Externally verifiable artifact of one accepted batch."""

    sequence: int
    prev_root: str
    new_root: str
    public_inputs: bytes
    proof: bytes
    proof_size_bytes: int
    program_hash: str
    celestia_height: int

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "TransitionRecord":
        return cls(
            sequence=_int_field(obj, "sequence"),
            prev_root=_require(obj, "prev_root"),
            new_root=_require(obj, "new_root"),
            public_inputs=_bytes_field(obj, "public_inputs") or b"",
            proof=_bytes_field(obj, "proof") or b"",
            proof_size_bytes=_int_field(obj, "proof_size_bytes"),
            program_hash=_require(obj, "program_hash"),
            celestia_height=_int_field(obj, "celestia_height"),
        )


@dataclass(frozen=True)
class RootInfo:
    root: str
    transition_index: int
    celestia_height: Optional[int]

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "RootInfo":
        return cls(
            root=_require(obj, "root"),
            transition_index=_int_field(obj, "transition_index"),
            celestia_height=_optional_int_field(obj, "celestia_height"),
        )


@dataclass(frozen=True)
class SyncStatus:
    transition_index: int
    latest_root: str
    celestia_enabled: bool
    last_celestia_height: Optional[int]

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "SyncStatus":
        return cls(
            transition_index=_int_field(obj, "transition_index"),
            latest_root=_require(obj, "latest_root"),
            celestia_enabled=bool(_get(obj, "celestia_enabled", False)),
            last_celestia_height=_optional_int_field(obj, "last_celestia_height"),
        )


@dataclass(frozen=True)
class HealthStatus:
    status: str
    version: str

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "HealthStatus":
        return cls(status=_require(obj, "status"), version=_get(obj, "version", ""))
