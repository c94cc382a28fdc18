"""Transition batch construction.

Turns account-level intents into operation batches plus the verifiable
operation descriptors the prover consumes.
"""

from .accounts import (
    ACCOUNT_RECORD_SIZE,
    AccountRecord,
    account_key,
    decode_account,
    encode_account,
)
from .operations import (
    Burn,
    CreateAccount,
    Mint,
    Operation,
    OperationKind,
    OperationType,
    SetOp,
    Transfer,
    TransitionBatch,
    VerifiableOperation,
    operation_type_from_wire,
)
from .encoder import RECIPIENT_WITNESS_INDEX, SENDER_WITNESS_INDEX, TransitionEncoder

__all__ = [
    "ACCOUNT_RECORD_SIZE",
    "AccountRecord",
    "account_key",
    "decode_account",
    "encode_account",
    "Burn",
    "CreateAccount",
    "Mint",
    "Operation",
    "OperationKind",
    "OperationType",
    "SetOp",
    "Transfer",
    "TransitionBatch",
    "VerifiableOperation",
    "operation_type_from_wire",
    "RECIPIENT_WITNESS_INDEX",
    "SENDER_WITNESS_INDEX",
    "TransitionEncoder",
]
