"""Transition batch data model and its JSON wire form.

A batch has two parallel lists:

- ``operations``: the plain key/value writes the ledger applies.
- ``verifiable_operations``: one descriptor per write, carrying the old and
  new value and the ``witness_index`` the prover's circuit reads it from.

Byte fields are base64 on the wire. The descriptor's ``op_type`` uses the
ledger's externally tagged form, e.g. ``{"Transfer": {"from": ..., ...}}``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from zkda.encoding import b64decode, b64encode
from zkda.errors import InvalidInput


# =============================================================================
# Plain operations
# =============================================================================

class OperationKind(str, Enum):
    INSERT = "insert"
    DELETE = "delete"


@dataclass(frozen=True)
class Operation:
    """A plain write: insert ``value`` under ``key``, or delete ``key``."""

    kind: OperationKind
    key: str
    value: Optional[bytes] = None

    def __post_init__(self):
        if self.kind is OperationKind.INSERT and self.value is None:
            raise InvalidInput(f"insert of {self.key!r} requires a value")
        if self.kind is OperationKind.DELETE and self.value is not None:
            raise InvalidInput(f"delete of {self.key!r} cannot carry a value")

    @classmethod
    def insert(cls, key: str, value: bytes) -> "Operation":
        return cls(OperationKind.INSERT, key, value)

    @classmethod
    def delete(cls, key: str) -> "Operation":
        return cls(OperationKind.DELETE, key)

    def to_wire(self) -> Dict[str, Any]:
        return {"type": self.kind.value, "key": self.key, "value": b64encode(self.value)}

    @classmethod
    def from_wire(cls, obj: Dict[str, Any]) -> "Operation":
        try:
            kind = OperationKind(obj.get("type"))
        except ValueError as e:
            raise InvalidInput(f"Unknown operation type: {obj.get('type')!r}") from e
        return cls(kind, obj["key"], b64decode(obj.get("value"), "operation.value"))


# =============================================================================
# Operation types (closed sum)
# =============================================================================

@dataclass(frozen=True)
class SetOp:
    """Unconstrained write."""

    def to_wire(self) -> Any:
        return "Set"


@dataclass(frozen=True)
class CreateAccount:
    initial_balance: int

    def to_wire(self) -> Any:
        return {"CreateAccount": {"initial_balance": self.initial_balance}}


@dataclass(frozen=True)
class Transfer:
    from_key: str
    to_key: str
    amount: int

    def to_wire(self) -> Any:
        return {"Transfer": {"from": self.from_key, "to": self.to_key, "amount": self.amount}}


@dataclass(frozen=True)
class Mint:
    amount: int

    def to_wire(self) -> Any:
        return {"Mint": {"amount": self.amount}}


@dataclass(frozen=True)
class Burn:
    amount: int

    def to_wire(self) -> Any:
        return {"Burn": {"amount": self.amount}}


OperationType = Union[SetOp, CreateAccount, Transfer, Mint, Burn]


def operation_type_from_wire(obj: Any) -> OperationType:
    """Parse the externally tagged ``op_type`` object.

    Raises:
        InvalidInput: On an unknown tag or a malformed payload
    """
    if obj == "Set":
        return SetOp()
    if not isinstance(obj, dict) or len(obj) != 1:
        raise InvalidInput(f"Malformed op_type: {obj!r}")

    (tag, payload), = obj.items()
    try:
        if tag == "CreateAccount":
            return CreateAccount(initial_balance=int(payload["initial_balance"]))
        if tag == "Transfer":
            return Transfer(
                from_key=payload["from"],
                to_key=payload["to"],
                amount=int(payload["amount"]),
            )
        if tag == "Mint":
            return Mint(amount=int(payload["amount"]))
        if tag == "Burn":
            return Burn(amount=int(payload["amount"]))
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidInput(f"Malformed {tag} payload", str(e)) from e

    raise InvalidInput(f"Unknown op_type: {tag!r}")


# =============================================================================
# Verifiable operations and batches
# =============================================================================

@dataclass(frozen=True)
class VerifiableOperation:
    """Everything the prover needs for one write beyond the write itself."""

    op_type: OperationType
    key: str
    old_value: Optional[bytes]
    new_value: Optional[bytes]
    witness_index: int

    def to_wire(self) -> Dict[str, Any]:
        return {
            "op_type": self.op_type.to_wire(),
            "key": self.key,
            "old_value": b64encode(self.old_value),
            "new_value": b64encode(self.new_value),
            "witness_index": self.witness_index,
        }

    @classmethod
    def from_wire(cls, obj: Dict[str, Any]) -> "VerifiableOperation":
        return cls(
            op_type=operation_type_from_wire(obj.get("op_type")),
            key=obj["key"],
            old_value=b64decode(obj.get("old_value"), "old_value"),
            new_value=b64decode(obj.get("new_value"), "new_value"),
            witness_index=int(obj["witness_index"]),
        )


@dataclass(frozen=True)
class TransitionBatch:
    """One atomic set of writes, submitted and proven together."""

    operations: List[Operation] = field(default_factory=list)
    verifiable_operations: List[VerifiableOperation] = field(default_factory=list)
    public_inputs: Optional[bytes] = None
    private_inputs: Optional[bytes] = None

    def descriptor_for(self, key: str) -> VerifiableOperation:
        for vop in self.verifiable_operations:
            if vop.key == key:
                return vop
        raise KeyError(key)

    def to_wire(self) -> Dict[str, Any]:
        """Body for ``POST /transition``; absent optional inputs are omitted."""
        body: Dict[str, Any] = {
            "operations": [op.to_wire() for op in self.operations],
            "verifiable_operations": [vop.to_wire() for vop in self.verifiable_operations],
        }
        if self.public_inputs is not None:
            body["public_inputs"] = b64encode(self.public_inputs)
        if self.private_inputs is not None:
            body["private_inputs"] = b64encode(self.private_inputs)
        return body

    @classmethod
    def from_wire(cls, obj: Dict[str, Any]) -> "TransitionBatch":
        return cls(
            operations=[Operation.from_wire(o) for o in obj.get("operations", [])],
            verifiable_operations=[
                VerifiableOperation.from_wire(v) for v in obj.get("verifiable_operations", [])
            ],
            public_inputs=b64decode(obj.get("public_inputs"), "public_inputs"),
            private_inputs=b64decode(obj.get("private_inputs"), "private_inputs"),
        )
