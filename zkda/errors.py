"""Error taxonomy for the ledger client.

Every failure carries a ``user_message`` that is safe to show as-is. Internal
details (raw response bodies, transport exceptions) are kept separately and
only ever logged.
"""

from __future__ import annotations

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class ZkdaError(Exception):
    """Base class for all client errors."""

    def __init__(self, user_message: str, internal_details: Optional[str] = None):
        """
        Args:
            user_message: Safe message to show to users
            internal_details: Internal details for logging only
        """
        super().__init__(user_message)
        self.user_message = user_message
        self.internal_details = internal_details

        if internal_details:
            logger.debug("%s internal: %s", type(self).__name__, internal_details)


class InvalidInput(ZkdaError):
    """Malformed amount, balance, key or call sequence. Raised before any I/O."""


class AccountNotFound(ZkdaError):
    """The account that must be debited (or minted into) does not exist."""

    def __init__(self, name: str, role: str = "Sender"):
        self.name = name
        super().__init__(f'{role} account "{name}" does not exist')


class InsufficientBalance(ZkdaError):
    """The account balance does not cover the requested amount."""

    def __init__(self, balance: int, amount: int):
        self.balance = balance
        self.amount = amount
        super().__init__(f"Insufficient balance: {balance} < {amount}")


class NotYetAvailable(ZkdaError):
    """No transition record has propagated to the availability network yet."""

    def __init__(self, height: int, internal_details: Optional[str] = None):
        self.height = height
        super().__init__(
            f"No transition found at height {height}",
            internal_details,
        )


class RemoteError(ZkdaError):
    """The ledger service answered non-2xx, or could not be reached."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        internal_details: Optional[str] = None,
    ):
        self.status = status
        super().__init__(message, internal_details)


class ChainBrokenError(ZkdaError):
    """Transition records do not link ``prev_root`` to the previous ``new_root``."""

    def __init__(self, sequence: int, expected_root: str, actual_root: str):
        self.sequence = sequence
        self.expected_root = expected_root
        self.actual_root = actual_root
        super().__init__(
            f"Root chain broken at transition {sequence}: "
            f"expected {expected_root}, got {actual_root}"
        )
