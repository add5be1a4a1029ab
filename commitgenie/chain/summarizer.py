"""Concurrent per-file diff summarization.

Fans the diffs out over a small pool of worker tasks sharing one queue,
then joins on every worker before returning. A file whose summary cannot
be produced gets a placeholder instead of failing the batch.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from commitgenie.cancellation import CancellationToken
from commitgenie.chain.executor import StructuredCallExecutor
from commitgenie.chain.messages import build_summarize_messages
from commitgenie.errors import SchemaExhausted, UpstreamFailure
from commitgenie.events import StageEventEmitter, StageEventType
from commitgenie.schemas.commit import DiffRecord, FileSummary
from commitgenie.schemas.requests import RequestKind

logger = logging.getLogger(__name__)

# Worker pool bounds
MIN_WORKERS = 4
MAX_WORKERS = 8

FALLBACK_SUMMARY = "minor update"


def resolve_worker_count(configured: int | None, diff_count: int) -> int:
    """Clamp the configured pool size to [4, 8], never above the diff count."""
    requested = configured if configured is not None else MIN_WORKERS
    bounded = min(max(requested, MIN_WORKERS), MAX_WORKERS)
    return max(1, min(bounded, diff_count))


def fallback_summary(diff: DiffRecord) -> FileSummary:
    """Deterministic placeholder for a file the model could not summarize."""
    return FileSummary(
        file=diff.file_name,
        status=diff.status,
        summary=FALLBACK_SUMMARY,
        breaking=False,
    )


@dataclass
class SummaryBatch:
    """Summaries of one run plus the files that fell back."""

    summaries: list[FileSummary] = field(default_factory=list)
    fallbacks: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.fallbacks)


class DiffSummarizer:
    """Summarizes every diff with a bounded pool of concurrent workers."""

    def __init__(
        self,
        executor: StructuredCallExecutor,
        emitter: StageEventEmitter | None = None,
    ) -> None:
        self._executor = executor
        self._emitter = emitter

    async def summarize(
        self,
        diffs: list[DiffRecord],
        concurrency: int | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> SummaryBatch:
        """Summarize all diffs; returns one summary per diff in completion order.

        Raises:
            Cancelled: If the token fires; partial summaries are discarded.
        """
        batch = SummaryBatch()
        if not diffs:
            return batch

        queue: asyncio.Queue[DiffRecord] = asyncio.Queue()
        for diff in diffs:
            queue.put_nowait(diff)

        total = len(diffs)
        worker_count = resolve_worker_count(concurrency, total)
        logger.info("Summarizing %d files with %d workers", total, worker_count)

        workers = [
            asyncio.create_task(self._worker(queue, batch, total, cancel_token))
            for _ in range(worker_count)
        ]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise

        if batch.fallbacks:
            logger.warning(
                "%d of %d files fell back to a placeholder summary",
                len(batch.fallbacks), total,
            )
        return batch

    async def _worker(
        self,
        queue: asyncio.Queue[DiffRecord],
        batch: SummaryBatch,
        total: int,
        cancel_token: CancellationToken | None,
    ) -> None:
        while True:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            try:
                diff = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            summary = await self._summarize_one(diff)
            if summary is None:
                summary = fallback_summary(diff)
                batch.fallbacks.append(diff.file_name)
            batch.summaries.append(summary)

            if self._emitter is not None:
                self._emitter.emit(
                    StageEventType.SUMMARIZE_PROGRESS,
                    current=len(batch.summaries),
                    total=total,
                    file=diff.file_name,
                )

    async def _summarize_one(self, diff: DiffRecord) -> FileSummary | None:
        messages = build_summarize_messages(diff)
        try:
            result = await self._executor.execute(messages, RequestKind.SUMMARY)
        except (SchemaExhausted, UpstreamFailure) as e:
            logger.warning("Summary failed for %s: %s", diff.file_name, e)
            return None
        # Keep the model's wording but pin the identity to the input record
        return result.model_copy(update={"file": diff.file_name})
