"""Shared fixtures: a scripted ChatProvider and config factories."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from commitgenie.providers.base import ChatProvider
from commitgenie.schemas.commit import ChangeStatus, DiffRecord
from commitgenie.schemas.messages import Conversation, RawReply
from commitgenie.schemas.pipeline import ModelConfig, PipelineConfig
from commitgenie.schemas.requests import RequestKind


def make_model_config(**overrides) -> ModelConfig:
    defaults = {
        "provider": "test",
        "model": "test-model-v1",
        "display_name": "Test Model",
        "api_key_env": "TEST_API_KEY",
        "context_window": 128000,
        "supports_structured": False,
        "cost_input": 1.00,
        "cost_output": 2.00,
    }
    defaults.update(overrides)
    return ModelConfig(**defaults)


class ScriptedProvider(ChatProvider):
    """ChatProvider replaying canned replies per request kind.

    Each kind has a queue of replies; the last one repeats once the queue
    is drained. An Exception instance in the queue is raised instead of
    returned. A ``handler`` overrides the queues entirely.
    """

    def __init__(
        self,
        replies: dict[RequestKind, list[Any]] | None = None,
        handler: Callable[[Conversation, RequestKind], Any] | None = None,
    ) -> None:
        super().__init__(make_model_config())
        self._replies = {k: list(v) for k, v in (replies or {}).items()}
        self._handler = handler
        self.calls: list[tuple[RequestKind, Conversation]] = []

    def calls_for(self, kind: RequestKind) -> list[Conversation]:
        return [conv for k, conv in self.calls if k == kind]

    async def chat(
        self, conversation: Conversation, request_kind: RequestKind | None = None,
    ) -> RawReply:
        self.calls.append((request_kind, [dict(t) for t in conversation]))
        self.record_usage(100, 20, request_kind)
        await asyncio.sleep(0)

        if self._handler is not None:
            reply = self._handler(conversation, request_kind)
            if asyncio.iscoroutine(reply):
                reply = await reply
        else:
            queue = self._replies.get(request_kind)
            if not queue:
                raise AssertionError(f"No scripted reply for {request_kind}")
            reply = queue.pop(0) if len(queue) > 1 else queue[0]

        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def make_provider():
    return ScriptedProvider


@pytest.fixture
def make_diffs():
    def _make(*names: str, status: ChangeStatus = ChangeStatus.MODIFIED) -> list[DiffRecord]:
        return [
            DiffRecord(file_name=name, status=status, raw_diff=f"--- a/{name}\n+++ b/{name}\n+x")
            for name in names
        ]
    return _make


@pytest.fixture
def pipeline_config():
    def _make(**overrides) -> PipelineConfig:
        return PipelineConfig(**overrides)
    return _make
