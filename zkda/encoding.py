"""Base64 helpers shared by the batch encoder and the response models."""

from __future__ import annotations

import base64
import binascii
from typing import Optional

from zkda.errors import InvalidInput


def b64encode(data: Optional[bytes]) -> Optional[str]:
    if data is None:
        return None
    return base64.b64encode(data).decode("ascii")


def b64decode(data: Optional[str], field_name: str = "value") -> Optional[bytes]:
    """Strictly decode a base64 field; None passes through.

    Raises:
        InvalidInput: If ``data`` is not valid base64
    """
    if data is None:
        return None
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, TypeError, ValueError) as e:
        raise InvalidInput(f"Invalid base64 in {field_name}", str(e)) from e
