"""Cooperative cancellation shared by every stage of a run."""

from __future__ import annotations

import asyncio

from commitgenie.errors import Cancelled


class CancellationToken:
    """A one-shot cancellation signal threaded through a pipeline run.

    Stages poll ``raise_if_cancelled()`` before each unit of work; the
    executor also waits on ``wait()`` so an in-flight model call is
    abandoned as soon as the token fires.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled()

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        await self._event.wait()
