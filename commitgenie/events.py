"""Stage progress events for commit message generation.

The orchestrator emits one event per pipeline transition plus per-file
summarizer progress. Listeners are purely informational: they are called
fire-and-forget and can never change the outcome of a run.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class StageEventType(StrEnum):
    """Types of progress events emitted during a run."""

    SUMMARIZE_START = "summarize_start"
    SUMMARIZE_PROGRESS = "summarize_progress"
    EXTRACT_POLICY = "extract_policy"
    CLASSIFY_DRAFT = "classify_draft"
    VALIDATE_FIX = "validate_fix"
    STRICT_CHECK = "strict_check"
    STRICT_FIX = "strict_fix"
    ENFORCE_LANGUAGE = "enforce_language"
    DONE = "done"
    CANCELLED = "cancelled"


class StageEvent(BaseModel):
    """A single progress event."""

    type: StageEventType = Field(description="Event type")
    timestamp: float = Field(
        default_factory=time.time,
        description="Unix timestamp when the event occurred",
    )
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Event payload, varies by event type",
    )


# Type alias for event listener callbacks
StageListener = Callable[[StageEvent], Any]


class StageEventEmitter:
    """Broadcasts stage events to registered listeners.

    Listeners can be sync or async callables. Sync listeners run inline;
    coroutines returned by async listeners are scheduled as background
    tasks and never awaited by the emitter. Listener exceptions are logged
    but never propagate.
    """

    def __init__(self) -> None:
        self._listeners: list[StageListener] = []
        self._history: list[StageEvent] = []
        self._pending: set[asyncio.Task[Any]] = set()

    @property
    def history(self) -> list[StageEvent]:
        """All events emitted so far."""
        return list(self._history)

    def add_listener(self, listener: StageListener) -> None:
        """Register a listener to receive stage events."""
        self._listeners.append(listener)

    def remove_listener(self, listener: StageListener) -> None:
        """Remove a previously registered listener."""
        self._listeners = [ln for ln in self._listeners if ln is not listener]

    def emit(self, event_type: StageEventType, **data: Any) -> None:
        """Emit a stage event to all registered listeners."""
        event = StageEvent(type=event_type, data=data)
        self._history.append(event)

        for listener in self._listeners:
            try:
                result = listener(event)
            except Exception:
                logger.exception("Stage listener error for %s", event_type)
                continue
            if asyncio.iscoroutine(result):
                self._schedule(result, event_type)

    def _schedule(self, coro: Any, event_type: StageEventType) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            # No running loop: nothing can drive the coroutine
            coro.close()
            return
        self._pending.add(task)
        task.add_done_callback(lambda t: self._finish(t, event_type))

    def _finish(self, task: asyncio.Task[Any], event_type: StageEventType) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Async stage listener error for %s: %s", event_type, exc)
