"""Transition encoder: user intents to transition batches.

The encoder reads the current proven value of every key it is about to
write, derives the new values, and emits both the plain writes and the
verifiable-operation descriptors the prover consumes.

Witness ordering contract:
    Descriptors are numbered 0..n-1 in the order the prover's circuit
    expects. For a transfer that is always sender (0) then recipient (1),
    independent of how the two account names sort.

Concurrency:
    The two account reads of a transfer are issued concurrently and joined
    before any write is derived. They are not a consistent snapshot, and no
    compare-and-swap happens at submit time; ``old_value`` is carried in the
    descriptor but this client does not rely on the service enforcing it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional, Tuple

from zkda.config import EncoderConfig
from zkda.errors import AccountNotFound, InsufficientBalance, InvalidInput
from zkda.transition.accounts import (
    U64_MAX,
    AccountRecord,
    account_key,
    decode_account,
    encode_account,
    require_u64,
)
from zkda.transition.operations import (
    Burn,
    CreateAccount,
    Mint,
    Operation,
    SetOp,
    Transfer,
    TransitionBatch,
    VerifiableOperation,
)

if TYPE_CHECKING:
    from zkda.ledger.models import ValueProof
    from zkda.ledger.protocols import LedgerReader

logger = logging.getLogger(__name__)

SENDER_WITNESS_INDEX = 0
RECIPIENT_WITNESS_INDEX = 1


class TransitionEncoder:
    """Builds transition batches against a ledger reader.

    ``build_create_account`` needs no state and is synchronous. Every other
    builder observes current values first and is a coroutine.
    """

    def __init__(self, reader: Optional["LedgerReader"] = None, config: Optional[EncoderConfig] = None):
        self._reader = reader
        self._config = config or EncoderConfig()

    @property
    def config(self) -> EncoderConfig:
        return self._config

    def key_for(self, name: str) -> str:
        return account_key(name, self._config.account_prefix)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _require_reader(self) -> "LedgerReader":
        if self._reader is None:
            raise InvalidInput("This operation needs a ledger reader")
        return self._reader

    async def _observe(self, key: str) -> Tuple[Optional[bytes], Optional[AccountRecord]]:
        observed: ValueProof = await self._require_reader().get_value(key)
        return observed.value, decode_account(observed.value)

    def _public_inputs(self, *parts: object) -> Optional[bytes]:
        if not self._config.tag_public_inputs:
            return None
        return ":".join(str(p) for p in parts).encode("utf-8")

    # -------------------------------------------------------------------------
    # Builders
    # -------------------------------------------------------------------------

    def build_create_account(self, name: str, initial_balance: int) -> TransitionBatch:
        """Batch creating ``name`` with ``initial_balance`` and nonce 0.

        Raises:
            InvalidInput: If the balance is not a non-negative u64 or name is empty
        """
        require_u64(initial_balance, "initial_balance")
        key = self.key_for(name)
        value = encode_account(initial_balance, 0)

        return TransitionBatch(
            operations=[Operation.insert(key, value)],
            verifiable_operations=[
                VerifiableOperation(
                    op_type=CreateAccount(initial_balance=initial_balance),
                    key=key,
                    old_value=None,
                    new_value=value,
                    witness_index=0,
                )
            ],
            public_inputs=self._public_inputs("create_account", name),
        )

    async def build_transfer(self, from_name: str, to_name: str, amount: int) -> TransitionBatch:
        """Batch moving ``amount`` from ``from_name`` to ``to_name``.

        An absent recipient is treated as a zero-balance account that this
        transfer materializes.

        Raises:
            InvalidInput: Bad amount or names (before any read), self-transfer
                when disallowed, or recipient balance overflow
            AccountNotFound: Sender has no account value
            InsufficientBalance: Sender balance below ``amount``
            RemoteError: A read failed
        """
        require_u64(amount, "amount", positive=True)
        from_key = self.key_for(from_name)
        to_key = self.key_for(to_name)
        if from_key == to_key and not self._config.allow_self_transfer:
            raise InvalidInput("Sender and recipient must be different accounts")

        (from_raw, sender), (to_raw, recipient) = await asyncio.gather(
            self._observe(from_key),
            self._observe(to_key),
        )

        if sender is None:
            raise AccountNotFound(from_name)
        if sender.balance < amount:
            raise InsufficientBalance(sender.balance, amount)

        if from_key == to_key:
            # Net balance unchanged; the debit still consumes a nonce.
            new_from = AccountRecord(sender.balance, sender.nonce + 1)
            new_to = new_from
        else:
            new_from = AccountRecord(sender.balance - amount, sender.nonce + 1)
            to_balance = (recipient.balance if recipient else 0) + amount
            if to_balance > U64_MAX:
                raise InvalidInput("Recipient balance would exceed the 64-bit range")
            new_to = AccountRecord(to_balance, recipient.nonce if recipient else 0)

        from_value = new_from.encode()
        to_value = new_to.encode()
        op_type = Transfer(from_key=from_key, to_key=to_key, amount=amount)

        logger.debug(
            "Built transfer batch",
            extra={"context": {"from": from_key, "to": to_key, "amount": amount}},
        )
        return TransitionBatch(
            operations=[
                Operation.insert(from_key, from_value),
                Operation.insert(to_key, to_value),
            ],
            verifiable_operations=[
                VerifiableOperation(
                    op_type=op_type,
                    key=from_key,
                    old_value=from_raw,
                    new_value=from_value,
                    witness_index=SENDER_WITNESS_INDEX,
                ),
                VerifiableOperation(
                    op_type=op_type,
                    key=to_key,
                    old_value=to_raw,
                    new_value=to_value,
                    witness_index=RECIPIENT_WITNESS_INDEX,
                ),
            ],
            public_inputs=self._public_inputs("transfer", from_name, to_name, amount),
        )

    async def build_set(self, key: str, value: bytes) -> TransitionBatch:
        """Batch writing raw ``value`` under ``key`` with no business constraint."""
        if not isinstance(key, str) or not key:
            raise InvalidInput("key must be a non-empty string")
        if not isinstance(value, (bytes, bytearray)):
            raise InvalidInput("value must be bytes")

        old_value, _ = await self._observe(key)
        value = bytes(value)
        return TransitionBatch(
            operations=[Operation.insert(key, value)],
            verifiable_operations=[
                VerifiableOperation(
                    op_type=SetOp(),
                    key=key,
                    old_value=old_value,
                    new_value=value,
                    witness_index=0,
                )
            ],
            public_inputs=self._public_inputs("set", key),
        )

    async def build_mint(self, name: str, amount: int) -> TransitionBatch:
        """Batch crediting ``amount`` to an existing account. Nonce is unchanged."""
        require_u64(amount, "amount", positive=True)
        key = self.key_for(name)
        old_value, account = await self._observe(key)
        if account is None:
            raise AccountNotFound(name, role="Target")
        if account.balance + amount > U64_MAX:
            raise InvalidInput("Balance would exceed the 64-bit range")

        new_value = encode_account(account.balance + amount, account.nonce)
        return self._single_account_batch(Mint(amount=amount), key, old_value, new_value, ("mint", name, amount))

    async def build_burn(self, name: str, amount: int) -> TransitionBatch:
        """Batch debiting ``amount`` from an existing account. Nonce is unchanged."""
        require_u64(amount, "amount", positive=True)
        key = self.key_for(name)
        old_value, account = await self._observe(key)
        if account is None:
            raise AccountNotFound(name, role="Target")
        if account.balance < amount:
            raise InsufficientBalance(account.balance, amount)

        new_value = encode_account(account.balance - amount, account.nonce)
        return self._single_account_batch(Burn(amount=amount), key, old_value, new_value, ("burn", name, amount))

    def _single_account_batch(self, op_type, key, old_value, new_value, tag) -> TransitionBatch:
        return TransitionBatch(
            operations=[Operation.insert(key, new_value)],
            verifiable_operations=[
                VerifiableOperation(
                    op_type=op_type,
                    key=key,
                    old_value=old_value,
                    new_value=new_value,
                    witness_index=0,
                )
            ],
            public_inputs=self._public_inputs(*tag),
        )
