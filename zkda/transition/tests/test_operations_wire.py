"""Tests for the transition batch wire form."""

from __future__ import annotations

import base64

import pytest

from zkda.errors import InvalidInput
from zkda.transition.operations import (
    Burn,
    CreateAccount,
    Mint,
    Operation,
    OperationKind,
    SetOp,
    Transfer,
    TransitionBatch,
    VerifiableOperation,
    operation_type_from_wire,
)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class TestOperation:
    def test_insert_wire(self):
        assert Operation.insert("k", b"\x01\x02").to_wire() == {
            "type": "insert",
            "key": "k",
            "value": _b64(b"\x01\x02"),
        }

    def test_delete_wire_has_null_value(self):
        assert Operation.delete("k").to_wire() == {"type": "delete", "key": "k", "value": None}

    def test_insert_requires_value(self):
        with pytest.raises(InvalidInput):
            Operation(OperationKind.INSERT, "k")

    def test_delete_rejects_value(self):
        with pytest.raises(InvalidInput):
            Operation(OperationKind.DELETE, "k", b"x")

    def test_unknown_type_rejected(self):
        with pytest.raises(InvalidInput, match="Unknown operation type"):
            Operation.from_wire({"type": "upsert", "key": "k", "value": None})


class TestOperationType:
    @pytest.mark.parametrize(
        "op_type, wire",
        [
            (SetOp(), "Set"),
            (CreateAccount(initial_balance=1000), {"CreateAccount": {"initial_balance": 1000}}),
            (
                Transfer(from_key="account:alice", to_key="account:bob", amount=100),
                {"Transfer": {"from": "account:alice", "to": "account:bob", "amount": 100}},
            ),
            (Mint(amount=5), {"Mint": {"amount": 5}}),
            (Burn(amount=7), {"Burn": {"amount": 7}}),
        ],
    )
    def test_externally_tagged_form(self, op_type, wire):
        assert op_type.to_wire() == wire
        assert operation_type_from_wire(wire) == op_type

    @pytest.mark.parametrize(
        "wire",
        [
            "Delete",
            {"Swap": {"amount": 1}},
            {"Mint": {"amount": 1}, "Burn": {"amount": 1}},
            {"Transfer": {"from": "a"}},
            {"Mint": {"amount": "lots"}},
            None,
        ],
    )
    def test_malformed_rejected(self, wire):
        with pytest.raises(InvalidInput):
            operation_type_from_wire(wire)


class TestTransitionBatch:
    def _transfer_batch(self, **kwargs) -> TransitionBatch:
        op_type = Transfer(from_key="account:alice", to_key="account:bob", amount=1)
        return TransitionBatch(
            operations=[Operation.insert("account:alice", b"a"), Operation.insert("account:bob", b"b")],
            verifiable_operations=[
                VerifiableOperation(op_type, "account:alice", b"old", b"a", 0),
                VerifiableOperation(op_type, "account:bob", None, b"b", 1),
            ],
            **kwargs,
        )

    def test_optional_inputs_omitted(self):
        body = self._transfer_batch().to_wire()
        assert set(body) == {"operations", "verifiable_operations"}

    def test_optional_inputs_encoded_when_present(self):
        body = self._transfer_batch(public_inputs=b"pub", private_inputs=b"priv").to_wire()
        assert body["public_inputs"] == _b64(b"pub")
        assert body["private_inputs"] == _b64(b"priv")

    def test_descriptor_wire(self):
        body = self._transfer_batch().to_wire()
        recipient = body["verifiable_operations"][1]
        assert recipient == {
            "op_type": {"Transfer": {"from": "account:alice", "to": "account:bob", "amount": 1}},
            "key": "account:bob",
            "old_value": None,
            "new_value": _b64(b"b"),
            "witness_index": 1,
        }

    def test_from_wire_restores_batch(self):
        batch = self._transfer_batch(public_inputs=b"pub")
        assert TransitionBatch.from_wire(batch.to_wire()) == batch

    def test_descriptor_for(self):
        batch = self._transfer_batch()
        assert batch.descriptor_for("account:bob").witness_index == 1
        with pytest.raises(KeyError):
            batch.descriptor_for("account:carol")

    def test_invalid_base64_rejected(self):
        body = self._transfer_batch().to_wire()
        body["operations"][0]["value"] = "not base64!"
        with pytest.raises(InvalidInput, match="base64"):
            TransitionBatch.from_wire(body)
