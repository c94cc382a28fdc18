"""Logging setup for the ``zkda`` logger hierarchy.

Library modules only call ``logging.getLogger(__name__)``; handlers are
installed by ``configure_logging`` (the CLI does this from ``ZKDA_LOG_*``).

Structured fields go in ``extra={"context": {...}}``. Before a record reaches
any sink, ``RedactionFilter`` masks credentials and ``private_inputs`` and
shortens proof and value blobs.
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

LOG_FORMATS = ("text", "json")
REDACTED = "[REDACTED]"

_TEXT_FORMAT = "%(levelname)s %(name)s: %(message)s"
_FILE_TEXT_FORMAT = "%(asctime)s " + _TEXT_FORMAT
_FILE_MAX_BYTES = 10 * 1024 * 1024
_FILE_BACKUPS = 3


@dataclass(frozen=True)
class LoggingOptions:
    level: str = "INFO"
    format: str = "text"
    file: Optional[str] = None
    redact: bool = True
    max_blob_chars: int = 64

    def __post_init__(self):
        if self.format.strip().lower() not in LOG_FORMATS:
            raise ValueError(f"Invalid log format: {self.format}")
        if self.max_blob_chars < 1:
            raise ValueError("max_blob_chars must be positive")

    @property
    def numeric_level(self) -> int:
        level = logging.getLevelName(self.level.strip().upper())
        return level if isinstance(level, int) else logging.INFO


# =============================================================================
# Redaction
# =============================================================================

# Header and field names under which the ledger API key can appear.
_CREDENTIAL_MARKERS = ("api_key", "apikey", "x-api-key", "authorization", "bearer", "token")

# Batch fields that never reach a sink.
_PRIVATE_FIELDS = frozenset({"private_inputs"})

# Base64 payloads: shortened, not hidden.
_BLOB_FIELDS = frozenset({"proof", "public_inputs", "value", "old_value", "new_value"})

_INLINE_CREDENTIAL = re.compile(
    r"(?P<name>x-api-key|api[_-]?key|token|authorization)\s*[:=]\s*[^\s,;]+",
    flags=re.IGNORECASE,
)


def _is_credential(name: str) -> bool:
    name = name.lower()
    return any(marker in name for marker in _CREDENTIAL_MARKERS)


def _scrub_text(text: str) -> str:
    return _INLINE_CREDENTIAL.sub(lambda m: f"{m.group('name')}={REDACTED}", text)


def _clip(value: Any, limit: int) -> Any:
    if isinstance(value, str) and len(value) > limit:
        return f"{value[:limit]}...({len(value)} chars)"
    return value


class RedactionFilter(logging.Filter):
    """Scrub ``record.msg`` and ``record.context`` in place. Never drops records."""

    def __init__(self, *, max_depth: int = 6, max_blob_chars: int = 64):
        super().__init__()
        self._max_depth = max_depth
        self._max_blob_chars = max_blob_chars

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _scrub_text(record.msg)
        context = getattr(record, "context", None)
        if isinstance(context, MutableMapping):
            record.context = self._scrub(context, 0)
        return True

    def _scrub(self, value: Any, depth: int) -> Any:
        """
        Postconditions:
            - Credential-like keys and ``private_inputs`` map to REDACTED
            - Blob fields longer than ``max_blob_chars`` are clipped
            - Raw ``bytes`` are replaced by their length
            - Anything nested deeper than ``max_depth`` is REDACTED
        """
        if depth > self._max_depth:
            return REDACTED
        if isinstance(value, str):
            return _scrub_text(value)
        if isinstance(value, (bytes, bytearray)):
            return f"<{len(value)} bytes>"
        if isinstance(value, Mapping):
            out: Dict[Any, Any] = {}
            for key, item in value.items():
                if isinstance(key, str):
                    if key in _PRIVATE_FIELDS or _is_credential(key):
                        out[key] = REDACTED
                        continue
                    if key in _BLOB_FIELDS:
                        item = _clip(item, self._max_blob_chars)
                out[key] = self._scrub(item, depth + 1)
            return out
        if isinstance(value, (list, tuple)):
            return [self._scrub(item, depth + 1) for item in value]
        return value


# =============================================================================
# Formatting and setup
# =============================================================================

class JSONFormatter(logging.Formatter):
    """One JSON object per line: level, logger, message, context, exception."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if getattr(record, "context", None) is not None:
            entry["context"] = record.context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def load_logging_options_from_env() -> LoggingOptions:
    """Read ``ZKDA_LOG_LEVEL``, ``ZKDA_LOG_FORMAT``, ``ZKDA_LOG_FILE`` and
    ``ZKDA_LOG_REDACT`` ("0"/"false" disables redaction)."""
    return LoggingOptions(
        level=os.getenv("ZKDA_LOG_LEVEL", "INFO"),
        format=os.getenv("ZKDA_LOG_FORMAT", "text"),
        file=os.getenv("ZKDA_LOG_FILE"),
        redact=os.getenv("ZKDA_LOG_REDACT", "1").lower() not in {"0", "false"},
    )


def configure_logging(options: LoggingOptions) -> None:
    """Replace the handlers on the ``zkda`` logger according to ``options``.

    Records go to stderr, and also to a rotating file when ``options.file``
    is set. The ``zkda`` logger stops propagating to the root logger.
    """
    as_json = options.format.strip().lower() == "json"

    root = logging.getLogger("zkda")
    root.setLevel(options.numeric_level)
    root.handlers.clear()
    root.propagate = False

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    handlers[0].setFormatter(JSONFormatter() if as_json else logging.Formatter(_TEXT_FORMAT))

    if options.file:
        file_handler = RotatingFileHandler(options.file, maxBytes=_FILE_MAX_BYTES, backupCount=_FILE_BACKUPS)
        file_handler.setFormatter(JSONFormatter() if as_json else logging.Formatter(_FILE_TEXT_FORMAT))
        handlers.append(file_handler)

    for handler in handlers:
        if options.redact:
            handler.addFilter(RedactionFilter(max_blob_chars=options.max_blob_chars))
        root.addHandler(handler)
