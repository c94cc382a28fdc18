"""Root-chain continuity checks over published transition records.

Each record's ``prev_root`` must equal the previous record's ``new_root``.
This is structural checking only; proofs themselves are not verified here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from zkda.errors import ChainBrokenError, InvalidInput, NotYetAvailable
from zkda.ledger.models import TransitionRecord
from zkda.ledger.protocols import TransitionSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainReport:
    """Outcome of a continuity check. Warnings are non-fatal."""

    transitions_checked: int
    first_root: str
    latest_root: str
    first_height: int
    last_height: int
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transitions_checked": self.transitions_checked,
            "first_root": self.first_root,
            "latest_root": self.latest_root,
            "first_height": self.first_height,
            "last_height": self.last_height,
            "warnings": list(self.warnings),
        }


def check_chain(
    records: Iterable[TransitionRecord],
    expected_prev_root: Optional[str] = None,
    expected_program_hash: Optional[str] = None,
) -> ChainReport:
    """Check that ``records`` form an unbroken root chain.

    Records are ordered by sequence first. A record whose program hash differs
    from ``expected_program_hash`` is skipped with a warning and does not
    advance the chain.

    Args:
        records: Transition records, any order
        expected_prev_root: Root the first record must start from; defaults
            to the first record's own ``prev_root``
        expected_program_hash: Program hash every record must carry

    Returns:
        ChainReport

    Raises:
        InvalidInput: If ``records`` is empty
        ChainBrokenError: At the first record that does not link
    """
    ordered = sorted(records, key=lambda r: r.sequence)
    if not ordered:
        raise InvalidInput("No transition records to check")

    current_root = (expected_prev_root or ordered[0].prev_root).lower()
    first_root = current_root
    first_height = ordered[0].celestia_height
    last_height = first_height
    warnings: List[str] = []
    checked = 0

    for record in ordered:
        if expected_program_hash and record.program_hash.lower() != expected_program_hash.lower():
            warnings.append(f"Transition {record.sequence} has unexpected program hash")
            continue

        if record.prev_root.lower() != current_root:
            raise ChainBrokenError(record.sequence, current_root, record.prev_root)

        if not record.proof:
            warnings.append(f"Transition {record.sequence} has no proof")
        elif record.proof_size_bytes != len(record.proof):
            warnings.append(
                f"Transition {record.sequence} reports {record.proof_size_bytes} proof bytes "
                f"but carries {len(record.proof)}"
            )

        current_root = record.new_root.lower()
        last_height = record.celestia_height
        checked += 1

    logger.info(
        "Chain check complete: %d transitions, root %s -> %s",
        checked,
        first_root,
        current_root,
    )
    return ChainReport(
        transitions_checked=checked,
        first_root=first_root,
        latest_root=current_root,
        first_height=first_height,
        last_height=last_height,
        warnings=warnings,
    )


async def sync_range(
    source: TransitionSource,
    from_height: int,
    to_height: int,
    expected_prev_root: Optional[str] = None,
    expected_program_hash: Optional[str] = None,
) -> ChainReport:
    """Fetch records in ``[from_height, to_height]`` and check their chain.

    Raises:
        NotYetAvailable: If nothing has been published in the range yet
        ChainBrokenError: If the fetched records do not link
    """
    records = await source.celestia_transitions(from_height, to_height)
    if not records:
        raise NotYetAvailable(from_height, internal_details=f"empty range {from_height}..{to_height}")
    return check_chain(records, expected_prev_root, expected_program_hash)
