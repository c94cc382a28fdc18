"""
Async HTTP client for the ledger service.

Endpoints:
- GET  /health
- GET  /root/latest
- GET  /value?key=&encoding=
- GET  /proof/merkle?key=&encoding=
- GET  /sync/status
- GET  /history
- POST /transition
- GET  /celestia/transition?height=
- GET  /celestia/transitions?from_height=&to_height=

The client never retries. A 404 from ``/celestia/transition`` is raised as
``NotYetAvailable`` so the retriever can back off; every other failure is a
``RemoteError`` carrying the service's own ``error`` string when present.

Usage:
    async with LedgerClient(LedgerConfig(base_url="http://127.0.0.1:16000")) as client:
        state, proof = await client.get_account("alice")
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

import aiohttp

from zkda.config import LedgerConfig
from zkda.errors import InvalidInput, NotYetAvailable, RemoteError
from zkda.ledger.models import (
    ApplyTransitionResult,
    HealthStatus,
    HistoryEntry,
    MerkleProofView,
    RootInfo,
    SyncStatus,
    TransitionRecord,
    ValueProof,
)
from zkda.transition.accounts import AccountRecord, account_key, decode_account
from zkda.transition.operations import TransitionBatch

logger = logging.getLogger(__name__)

_KEY_ENCODINGS = ("utf8", "hex")


class LedgerClient:
    """Typed access to every ledger-service endpoint.

    Implements both ``LedgerReader`` and ``TransitionSource``.
    """

    def __init__(
        self,
        config: Optional[LedgerConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._config = config or LedgerConfig()
        self._session = session
        self._owns_session = session is None

    @property
    def base_url(self) -> str:
        return self._config.base_url

    async def __aenter__(self) -> "LedgerClient":
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.close()
        return False

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"Accept": "application/json"}
            if self._config.api_key:
                headers["X-API-Key"] = self._config.api_key
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.timeout_seconds),
                headers=headers,
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        not_found_height: Optional[int] = None,
    ) -> Dict[str, Any]:
        session = self._ensure_session()
        url = f"{self._config.base_url}{path}"
        query = {k: str(v) for k, v in (params or {}).items()}

        try:
            async with session.request(method, url, params=query, json=json_body) as resp:
                if resp.status == 404 and not_found_height is not None:
                    detail = await _error_message(resp)
                    raise NotYetAvailable(not_found_height, internal_details=detail)
                if resp.status >= 400:
                    detail = await _error_message(resp)
                    raise RemoteError(
                        detail or f"{method} {path} failed: {resp.status}",
                        status=resp.status,
                    )
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RemoteError(
                f"Ledger service unreachable: {method} {path}",
                internal_details=f"{type(e).__name__}: {e}",
            ) from e
        except ValueError as e:
            raise RemoteError(
                "Malformed response from ledger service",
                internal_details=f"{method} {path}: {e}",
            ) from e

        if not isinstance(data, dict):
            raise RemoteError(
                "Malformed response from ledger service",
                internal_details=f"{method} {path}: expected object, got {type(data).__name__}",
            )
        return data

    # -------------------------------------------------------------------------
    # Status reads
    # -------------------------------------------------------------------------

    async def health(self) -> HealthStatus:
        return HealthStatus.from_dict(await self._request("GET", "/health"))

    async def latest_root(self) -> RootInfo:
        return RootInfo.from_dict(await self._request("GET", "/root/latest"))

    async def sync_status(self) -> SyncStatus:
        return SyncStatus.from_dict(await self._request("GET", "/sync/status"))

    async def history(self) -> List[HistoryEntry]:
        """Accepted batches, ascending by sequence."""
        data = await self._request("GET", "/history")
        entries = [HistoryEntry.from_dict(e) for e in data.get("entries", [])]
        entries.sort(key=lambda e: e.sequence)
        return entries

    # -------------------------------------------------------------------------
    # State reads
    # -------------------------------------------------------------------------

    async def get_value(self, key: str, encoding: str = "utf8") -> ValueProof:
        _check_encoding(encoding)
        data = await self._request("GET", "/value", params={"key": key, "encoding": encoding})
        return ValueProof.from_dict(data)

    async def get_merkle_proof(self, key: str, encoding: str = "utf8") -> MerkleProofView:
        _check_encoding(encoding)
        data = await self._request("GET", "/proof/merkle", params={"key": key, "encoding": encoding})
        return MerkleProofView.from_dict(data)

    async def get_account(
        self, name: str, prefix: str = "account"
    ) -> Tuple[Optional[AccountRecord], ValueProof]:
        """Decoded account state (None if absent) plus the raw proven value."""
        observed = await self.get_value(account_key(name, prefix))
        return decode_account(observed.value), observed

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def apply_transition(self, batch: TransitionBatch) -> ApplyTransitionResult:
        """Submit a batch. The service proves it before answering."""
        body = batch.to_wire()
        logger.info(
            "Submitting transition",
            extra={"context": {"operations": len(batch.operations)}},
        )
        data = await self._request("POST", "/transition", json_body=body)
        result = ApplyTransitionResult.from_dict(data)
        logger.info(
            "Transition accepted",
            extra={"context": {"sequence": result.sequence, "celestia_height": result.celestia_height}},
        )
        return result

    # -------------------------------------------------------------------------
    # Availability network (proxied)
    # -------------------------------------------------------------------------

    async def celestia_transition(self, height: int) -> TransitionRecord:
        data = await self._request(
            "GET",
            "/celestia/transition",
            params={"height": height},
            not_found_height=height,
        )
        return TransitionRecord.from_dict(data)

    async def celestia_transitions(self, from_height: int, to_height: int) -> List[TransitionRecord]:
        if from_height > to_height:
            raise InvalidInput("from_height must not exceed to_height")
        data = await self._request(
            "GET",
            "/celestia/transitions",
            params={"from_height": from_height, "to_height": to_height},
        )
        return [TransitionRecord.from_dict(t) for t in data.get("transitions", [])]


def _check_encoding(encoding: str) -> None:
    if encoding not in _KEY_ENCODINGS:
        raise InvalidInput(f"encoding must be one of {_KEY_ENCODINGS}")


async def _error_message(resp: aiohttp.ClientResponse) -> Optional[str]:
    """The service's ``{"error": ...}`` string, if the body has one."""
    try:
        body = await resp.json(content_type=None)
    except (aiohttp.ContentTypeError, ValueError):
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return None
