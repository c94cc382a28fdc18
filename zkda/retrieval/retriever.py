"""
Consistency retriever - bounded-retry lookup of published transition records.

The ledger service reports a publication height as soon as it posts a proof
blob, but the availability network serves it only after propagation. The
retriever absorbs that window with exponential backoff and always ends in a
terminal state the caller can act on.

States (per selection):
    IDLE -> FETCHING -> SUCCESS
                     -> BACKOFF_WAIT -> FETCHING (repeat)
                     -> FAILED -> FETCHING (manual retry only)

With the default policy a selection makes at most 5 attempts and waits
1s, 2s, 4s, 8s between them.

Superseding:
    Selecting another height cancels the current selection's token. No signal
    reaches the outstanding lookup; when it completes, its result is dropped
    because the token is checked after every suspension point.

Usage:
    retriever = ConsistencyRetriever(client)
    selection = await retriever.select(entry.celestia_height)
    if selection.state is RetrievalState.FAILED:
        selection = await retriever.retry()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from zkda.config import RetryPolicy
from zkda.errors import InvalidInput, ZkdaError
from zkda.ledger.models import TransitionRecord
from zkda.ledger.protocols import TransitionSource

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = (
    "Transition data not yet available on the availability network. "
    "The proof may still be propagating. Please try again in a moment."
)

SleepFn = Callable[[float], Awaitable[None]]
TransitionCallback = Callable[["RetrievalState", "Selection"], None]


class RetrievalState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    BACKOFF_WAIT = "backoff_wait"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RetrievalState.SUCCESS, RetrievalState.FAILED)


class CancellationToken:
    """Set once a selection is superseded. Checked, never awaited."""

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class Selection:
    """Retrieval state for one user-selected height."""

    height: int
    generation: int
    state: RetrievalState = RetrievalState.IDLE
    attempts: int = 0
    record: Optional[TransitionRecord] = None
    error: Optional[str] = None
    last_error: Optional[ZkdaError] = None
    waits: List[float] = field(default_factory=list)
    superseded: bool = False


class ConsistencyRetriever:
    """Drives one selection at a time against a ``TransitionSource``."""

    def __init__(
        self,
        source: TransitionSource,
        policy: Optional[RetryPolicy] = None,
        *,
        sleep: SleepFn = asyncio.sleep,
        on_transition: Optional[TransitionCallback] = None,
    ):
        self._source = source
        self._policy = policy or RetryPolicy()
        self._sleep = sleep
        self._on_transition = on_transition
        self._current: Optional[Selection] = None
        self._token: Optional[CancellationToken] = None
        self._generation = 0

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def current(self) -> Optional[Selection]:
        return self._current

    def is_current(self, selection: Selection) -> bool:
        return self._current is selection and not selection.superseded

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def select(self, height: int) -> Selection:
        """Discard any in-flight selection and retrieve ``height`` from scratch.

        Returns the selection once it reaches a terminal state, or as soon as
        it is superseded by a later ``select``.
        """
        if isinstance(height, bool) or not isinstance(height, int) or height < 0:
            raise InvalidInput("height must be a non-negative integer")

        if self._token is not None:
            self._token.cancel()
        if self._current is not None:
            self._current.superseded = True
            logger.debug("Selection for height %d superseded", self._current.height)

        self._generation += 1
        selection = Selection(height=height, generation=self._generation)
        token = CancellationToken()
        self._current = selection
        self._token = token

        await self._run(selection, token)
        return selection

    def start(self, height: int) -> "asyncio.Task[Selection]":
        """Schedule ``select(height)`` without waiting for it."""
        return asyncio.create_task(self.select(height))

    async def retry(self) -> Selection:
        """Manual retry of the current selection after it failed.

        Resets the attempt counter and clears the failure message.

        Raises:
            InvalidInput: If there is no current selection or it has not failed
        """
        selection = self._current
        if selection is None or selection.state is not RetrievalState.FAILED:
            raise InvalidInput("Only a failed retrieval can be retried")

        selection.attempts = 0
        selection.error = None
        selection.last_error = None
        selection.waits.clear()

        token = CancellationToken()
        self._token = token
        await self._run(selection, token)
        return selection

    # -------------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------------

    def _transition(self, selection: Selection, state: RetrievalState) -> None:
        selection.state = state
        if self._on_transition is not None:
            self._on_transition(state, selection)

    async def _run(self, selection: Selection, token: CancellationToken) -> None:
        max_attempts = self._policy.max_attempts

        for attempt in range(max_attempts):
            if token.cancelled:
                return

            selection.attempts = attempt + 1
            self._transition(selection, RetrievalState.FETCHING)

            try:
                record = await self._source.celestia_transition(selection.height)
            except ZkdaError as e:
                if token.cancelled:
                    logger.debug("Dropping stale failure for height %d", selection.height)
                    return

                selection.last_error = e
                logger.warning(
                    "Failed to fetch transition (attempt %d/%d): %s",
                    attempt + 1,
                    max_attempts,
                    e.user_message,
                )
                if attempt == max_attempts - 1:
                    break

                delay = self._policy.delay_for(attempt)
                selection.waits.append(delay)
                self._transition(selection, RetrievalState.BACKOFF_WAIT)
                logger.info("Retrying height %d in %.1fs", selection.height, delay)
                await self._sleep(delay)
                continue

            if token.cancelled:
                logger.debug("Dropping stale record for height %d", selection.height)
                return

            selection.record = record
            selection.error = None
            self._transition(selection, RetrievalState.SUCCESS)
            return

        selection.error = FAILURE_MESSAGE
        logger.error(
            "Transition at height %d unavailable after %d attempts",
            selection.height,
            max_attempts,
        )
        self._transition(selection, RetrievalState.FAILED)
