"""Account record encoding.

An account value on the ledger is exactly 16 bytes: ``balance`` then
``nonce``, each a little-endian u64. The ledger itself treats values as opaque
bytes; only this module gives them meaning.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional

from zkda.errors import InvalidInput

ACCOUNT_RECORD_SIZE = 16
U64_MAX = (1 << 64) - 1

_ACCOUNT_STRUCT = struct.Struct("<QQ")


@dataclass(frozen=True)
class AccountRecord:
    """Decoded account value."""

    balance: int
    nonce: int = 0

    def encode(self) -> bytes:
        return encode_account(self.balance, self.nonce)


def require_u64(value: object, field_name: str, *, positive: bool = False) -> int:
    """Return ``value`` if it is an int in the u64 range, else raise InvalidInput.

    ``bool`` is rejected even though it subclasses ``int``.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{field_name} must be an integer")
    if positive and value <= 0:
        raise InvalidInput(f"{field_name} must be a positive integer")
    if value < 0:
        raise InvalidInput(f"{field_name} must be a non-negative integer")
    if value > U64_MAX:
        raise InvalidInput(f"{field_name} exceeds the 64-bit range")
    return value


def encode_account(balance: int, nonce: int) -> bytes:
    """Encode an account as 16 bytes (balance, nonce; little-endian u64).

    Raises:
        InvalidInput: If either field is not a u64
    """
    require_u64(balance, "balance")
    require_u64(nonce, "nonce")
    return _ACCOUNT_STRUCT.pack(balance, nonce)


def decode_account(data: Optional[bytes]) -> Optional[AccountRecord]:
    """Decode an account value.

    Returns None when ``data`` is None or shorter than 16 bytes, which is how
    "key absent" and "not an account" both look to the client.
    """
    if data is None or len(data) < ACCOUNT_RECORD_SIZE:
        return None
    balance, nonce = _ACCOUNT_STRUCT.unpack_from(data, 0)
    return AccountRecord(balance=balance, nonce=nonce)


def account_key(name: str, prefix: str = "account") -> str:
    """Ledger key for an account name, e.g. ``account:alice``."""
    if not isinstance(name, str) or not name.strip():
        raise InvalidInput("Account name must be a non-empty string")
    return f"{prefix}:{name}"
