"""
Client configuration.

Configuration hierarchy (highest to lowest priority):
1. Environment variables (ZKDA_<SECTION>_<FIELD>)
2. Config file (TOML or JSON)
3. Default values

Example:
    config = ClientConfig.load("zkda.toml")
    print(config.ledger.base_url)

    # ZKDA_RETRY_MAX_ATTEMPTS=3 overrides retry.max_attempts
"""

from __future__ import annotations

import json
import logging
import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:16000"


# =============================================================================
# Configuration Sections
# =============================================================================

@dataclass
class LedgerConfig:
    """Where and how to reach the ledger service."""
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = 30.0
    api_key: Optional[str] = None

    def __post_init__(self):
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got {self.base_url!r}")
        self.base_url = self.base_url.rstrip("/")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")


@dataclass
class RetryPolicy:
    """Backoff policy for availability-network lookups.

    Attempt ``i`` (0-based) that fails is followed by a wait of
    ``base_delay_seconds * 2**i`` unless it was the last attempt.
    """
    max_attempts: int = 5
    base_delay_seconds: float = 1.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must be >= 0")

    def delay_for(self, attempt: int) -> float:
        return self.base_delay_seconds * (2 ** attempt)


@dataclass
class EncoderConfig:
    """Batch construction policy."""
    account_prefix: str = "account"
    allow_self_transfer: bool = False
    tag_public_inputs: bool = False

    def __post_init__(self):
        if not self.account_prefix or ":" in self.account_prefix:
            raise ValueError(f"Invalid account_prefix: {self.account_prefix!r}")


# =============================================================================
# Main Configuration
# =============================================================================

@dataclass
class ClientConfig:
    """All client configuration sections."""
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    encoder: EncoderConfig = field(default_factory=EncoderConfig)

    @classmethod
    def load(
        cls,
        config_file: Optional[Union[str, Path]] = None,
        env_prefix: str = "ZKDA",
    ) -> "ClientConfig":
        """Load configuration with hierarchy: env vars > config file > defaults.

        Args:
            config_file: Path to config file (TOML or JSON)
            env_prefix: Prefix for environment variables

        Returns:
            Loaded and validated configuration
        """
        config_dict: Dict[str, Any] = {}
        if config_file:
            config_dict = cls._load_file(Path(config_file))
        config_dict = cls._apply_env_overrides(config_dict, env_prefix)
        return cls.from_dict(config_dict)

    @classmethod
    def _load_file(cls, path: Path) -> Dict[str, Any]:
        if not path.exists():
            logger.warning("Config file not found: %s", path)
            return {}

        content = path.read_text()
        if path.suffix == ".json":
            return json.loads(content)
        if path.suffix == ".toml":
            return tomllib.loads(content)

        logger.warning("Unknown config file format: %s", path.suffix)
        return {}

    @classmethod
    def _apply_env_overrides(cls, config: Dict[str, Any], prefix: str) -> Dict[str, Any]:
        sections = {"ledger", "retry", "encoder"}
        for key, value in os.environ.items():
            if not key.startswith(f"{prefix}_"):
                continue

            # ZKDA_LEDGER_BASE_URL -> ledger.base_url
            parts = key[len(prefix) + 1:].lower().split("_")
            if len(parts) < 2 or parts[0] not in sections:
                continue

            section = config.setdefault(parts[0], {})
            section["_".join(parts[1:])] = cls._parse_env_value(value)

        return config

    @staticmethod
    def _parse_env_value(value: str) -> Any:
        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        return value

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "ClientConfig":
        return cls(
            ledger=LedgerConfig(**config_dict.get("ledger", {})),
            retry=RetryPolicy(**config_dict.get("retry", {})),
            encoder=EncoderConfig(**config_dict.get("encoder", {})),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if data["ledger"].get("api_key"):
            data["ledger"]["api_key"] = "[REDACTED]"
        return data
