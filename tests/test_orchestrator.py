"""Tests for commitgenie.orchestrator: the full synthesis pipeline."""

from __future__ import annotations

import json
import re
from unittest.mock import patch

import pytest

from commitgenie.cancellation import CancellationToken
from commitgenie.errors import (
    Cancelled,
    GenieError,
    MalformedCommitMessage,
    SchemaExhausted,
)
from commitgenie.events import StageEventEmitter, StageEventType
from commitgenie.orchestrator import PipelineOrchestrator, run_pipeline
from commitgenie.schemas.pipeline import PipelineInputs, PipelineState
from commitgenie.schemas.requests import RequestKind

_DRAFT_MESSAGE = "feat: add X\n\n- feat: wire X into the client"
_CLEAN_MESSAGE = "feat: add X\n\n- wire X into the client"
_HEADER_RE = re.compile(r"^[a-z]+(\([A-Za-z0-9_.-]+\))?!?:\s.+$")


def _summary_reply(conversation) -> str:
    prompt = conversation[1]["content"]
    name = prompt.split("file: ", 1)[1].split("\n", 1)[0].strip()
    return json.dumps({"file": name, "status": "modified", "summary": f"Update {name}"})


def _make_handler(**overrides):
    """Reply per request kind; overrides map a kind value to a reply or callable."""
    defaults = {
        RequestKind.DRAFT: json.dumps({
            "type": "feat",
            "description": "add X",
            "commitMessage": _DRAFT_MESSAGE,
            "notes": "single feature",
        }),
        RequestKind.FIX: json.dumps({"status": "valid", "commitMessage": _DRAFT_MESSAGE}),
        RequestKind.TEMPLATE_POLICY: json.dumps({"header": {"requireScope": True}}),
        RequestKind.STRICT_FIX: json.dumps({"commitMessage": "feat: add X"}),
        RequestKind.LANGUAGE_FIX: json.dumps({"commitMessage": "feat: 添加 X 功能支持"}),
        RequestKind.COMMIT_MESSAGE: json.dumps({"commitMessage": "fix: handle empty diff"}),
    }
    replies = {**defaults, **{RequestKind(k): v for k, v in overrides.items()}}

    def _handler(conversation, kind):
        reply = replies.get(kind)
        if reply is None:
            return _summary_reply(conversation)
        return reply(conversation) if callable(reply) else reply

    return _handler


def _inputs(make_diffs, *names: str, **overrides) -> PipelineInputs:
    return PipelineInputs(diffs=make_diffs(*(names or ("src/x.py", "README.md"))), **overrides)


def _event_types(emitter: StageEventEmitter) -> list[str]:
    return [e.type.value for e in emitter.history if e.type != StageEventType.SUMMARIZE_PROGRESS]


class TestChainRun:
    async def test_full_run(self, make_provider, make_diffs, pipeline_config):
        provider = make_provider(handler=_make_handler())
        emitter = StageEventEmitter()
        orchestrator = PipelineOrchestrator(provider, pipeline_config(), emitter)

        output = await orchestrator.run(_inputs(make_diffs))

        assert output.commit_message == _CLEAN_MESSAGE
        assert len(output.file_summaries) == 2
        assert output.raw.draft == _DRAFT_MESSAGE
        assert output.raw.classification_notes == "single feature"
        assert output.raw.template_policy is None
        assert output.degraded is False
        assert output.degraded_stages == []
        assert orchestrator.state == PipelineState.DONE
        assert _event_types(emitter) == [
            "summarize_start",
            "classify_draft",
            "validate_fix",
            "strict_check",
            "enforce_language",
            "done",
        ]
        assert emitter.history[0].data["total"] == 2

    async def test_usage_is_summed(self, make_provider, make_diffs, pipeline_config):
        provider = make_provider(handler=_make_handler())

        output = await PipelineOrchestrator(provider, pipeline_config()).run(_inputs(make_diffs))

        # 2 summaries + draft + validate, 120 tokens each in the fake
        assert len(provider.calls) == 4
        assert output.total_tokens == 480
        assert output.total_cost == pytest.approx(sum(u.cost for u in provider.usage))
        assert output.duration_seconds >= 0

    async def test_empty_diffs_rejected(self, make_provider, pipeline_config):
        provider = make_provider(handler=_make_handler())

        with pytest.raises(GenieError, match="No changes"):
            await PipelineOrchestrator(provider, pipeline_config()).run(PipelineInputs(diffs=[]))
        assert provider.calls == []

    async def test_validator_exhaustion_degrades(self, make_provider, make_diffs, pipeline_config):
        provider = make_provider(handler=_make_handler(fix='{"status": "valid"}'))
        config = pipeline_config(max_retries=2)

        output = await PipelineOrchestrator(provider, config).run(_inputs(make_diffs))

        assert len(provider.calls_for(RequestKind.FIX)) == 3
        assert output.commit_message == _CLEAN_MESSAGE
        assert output.raw.validation_notes == "validation skipped"
        assert output.degraded is True
        assert output.degraded_stages == ["validate"]

    async def test_summary_fallback_degrades(self, make_provider, make_diffs, pipeline_config):
        provider = make_provider(handler=_make_handler(summary="garbage"))

        output = await PipelineOrchestrator(provider, pipeline_config()).run(
            _inputs(make_diffs, "a.py"),
        )

        assert output.file_summaries[0].summary == "minor update"
        assert "summarize" in output.degraded_stages

    async def test_draft_exhaustion_fails_run(self, make_provider, make_diffs, pipeline_config):
        provider = make_provider(handler=_make_handler(draft='{"notes": "?"}'))

        with pytest.raises(SchemaExhausted):
            await PipelineOrchestrator(provider, pipeline_config()).run(_inputs(make_diffs))

    async def test_strict_fix_repairs_header(self, make_provider, make_diffs, pipeline_config):
        provider = make_provider(
            handler=_make_handler(fix=json.dumps({"status": "fixed", "commitMessage": "Add X"})),
        )
        emitter = StageEventEmitter()

        output = await PipelineOrchestrator(provider, pipeline_config(), emitter).run(
            _inputs(make_diffs),
        )

        assert output.commit_message == "feat: add X"
        assert len(provider.calls_for(RequestKind.STRICT_FIX)) == 1
        assert "strict_fix" in _event_types(emitter)

    async def test_malformed_result_raises(self, make_provider, make_diffs, pipeline_config):
        provider = make_provider(
            handler=_make_handler(
                fix=json.dumps({"status": "fixed", "commitMessage": "Add X"}),
                strict_fix=json.dumps({"commitMessage": "still bad"}),
            ),
        )

        with pytest.raises(MalformedCommitMessage) as exc_info:
            await PipelineOrchestrator(provider, pipeline_config()).run(_inputs(make_diffs))
        assert exc_info.value.problems

    async def test_template_policy_extracted(self, make_provider, make_diffs, pipeline_config):
        provider = make_provider(handler=_make_handler())
        emitter = StageEventEmitter()

        output = await PipelineOrchestrator(provider, pipeline_config(), emitter).run(
            _inputs(make_diffs, user_template="<type>(<scope>): <subject>"),
        )

        assert output.raw.template_policy is not None
        assert output.raw.template_policy.header.require_scope is True
        assert "extract_policy" in _event_types(emitter)
        draft_prompt = provider.calls_for(RequestKind.DRAFT)[0][-1]["content"]
        assert "requireScope" in draft_prompt

    async def test_language_enforced(self, make_provider, make_diffs, pipeline_config):
        provider = make_provider(handler=_make_handler())

        output = await PipelineOrchestrator(provider, pipeline_config()).run(
            _inputs(make_diffs, target_language="zh"),
        )

        assert output.commit_message == "feat: 添加 X 功能支持"
        assert len(provider.calls_for(RequestKind.LANGUAGE_FIX)) == 1

    async def test_config_language_used_as_default(
        self, make_provider, make_diffs, pipeline_config,
    ):
        provider = make_provider(handler=_make_handler())

        output = await PipelineOrchestrator(
            provider, pipeline_config(target_language="zh"),
        ).run(_inputs(make_diffs))

        assert output.commit_message == "feat: 添加 X 功能支持"

    async def test_language_already_matching_makes_no_call(
        self, make_provider, make_diffs, pipeline_config,
    ):
        message = "feat: 添加重试机制"
        provider = make_provider(
            handler=_make_handler(
                draft=json.dumps({"type": "feat", "description": "添加重试机制"}),
                fix=json.dumps({"commitMessage": message}),
            ),
        )

        output = await PipelineOrchestrator(provider, pipeline_config()).run(
            _inputs(make_diffs, target_language="zh"),
        )

        assert output.commit_message == message
        assert provider.calls_for(RequestKind.LANGUAGE_FIX) == []

    async def test_leading_whitespace_is_normalized(
        self, make_provider, make_diffs, pipeline_config,
    ):
        padded = "  feat: add X"
        provider = make_provider(
            handler=_make_handler(
                draft=json.dumps({"type": "feat", "description": "add X", "commitMessage": padded}),
                fix=json.dumps({"status": "valid", "commitMessage": padded}),
            ),
        )

        output = await PipelineOrchestrator(provider, pipeline_config()).run(_inputs(make_diffs))

        assert output.commit_message == "feat: add X"
        assert _HEADER_RE.match(output.commit_message.split("\n", 1)[0])
        assert provider.calls_for(RequestKind.STRICT_FIX) == []
        assert output.degraded is False

    async def test_unlisted_type_is_corrected(self, make_provider, make_diffs, pipeline_config):
        provider = make_provider(
            handler=_make_handler(
                draft=json.dumps({"type": "feature", "description": "add X"}),
                fix=json.dumps({"status": "valid", "commitMessage": "feature: add X"}),
            ),
        )

        output = await PipelineOrchestrator(provider, pipeline_config()).run(_inputs(make_diffs))

        assert output.commit_message == "feat: add X"
        strict_calls = provider.calls_for(RequestKind.STRICT_FIX)
        assert len(strict_calls) == 1
        assert "Type 'feature' is not allowed" in strict_calls[0][-1]["content"]

    async def test_unlisted_type_left_unfixed_fails_run(
        self, make_provider, make_diffs, pipeline_config,
    ):
        provider = make_provider(
            handler=_make_handler(
                draft=json.dumps({"type": "feature", "description": "add X"}),
                fix=json.dumps({"status": "valid", "commitMessage": "feature: add X"}),
                strict_fix=json.dumps({"commitMessage": "feature: add X"}),
            ),
        )

        with pytest.raises(MalformedCommitMessage) as exc_info:
            await PipelineOrchestrator(provider, pipeline_config()).run(_inputs(make_diffs))
        assert any("feature" in p for p in exc_info.value.problems)

    async def test_policy_type_accepted(self, make_provider, make_diffs, pipeline_config):
        provider = make_provider(
            handler=_make_handler(
                template_policy=json.dumps({"types": {"allowed": ["release"]}}),
                draft=json.dumps({"type": "release", "description": "cut 1.2"}),
                fix=json.dumps({"status": "valid", "commitMessage": "release: cut 1.2"}),
            ),
        )

        output = await PipelineOrchestrator(provider, pipeline_config()).run(
            _inputs(make_diffs, user_template="<type>: <subject>"),
        )

        assert output.commit_message == "release: cut 1.2"
        assert provider.calls_for(RequestKind.STRICT_FIX) == []


class TestSingleShot:
    async def test_single_call(self, make_provider, make_diffs, pipeline_config):
        provider = make_provider(handler=_make_handler())
        config = pipeline_config(chain_enabled=False)

        output = await PipelineOrchestrator(provider, config).run(_inputs(make_diffs))

        assert output.commit_message == "fix: handle empty diff"
        assert [kind for kind, _ in provider.calls] == [RequestKind.COMMIT_MESSAGE]
        prompt = provider.calls[0][1][-1]["content"]
        assert "src/x.py" in prompt

    async def test_strict_fix_applies(self, make_provider, make_diffs, pipeline_config):
        provider = make_provider(
            handler=_make_handler(commit_message=json.dumps({"commitMessage": "Add X"})),
        )
        config = pipeline_config(chain_enabled=False)

        output = await PipelineOrchestrator(provider, config).run(_inputs(make_diffs))

        assert output.commit_message == "feat: add X"

    async def test_unlisted_type_corrected(self, make_provider, make_diffs, pipeline_config):
        provider = make_provider(
            handler=_make_handler(commit_message=json.dumps({"commitMessage": "feature: add X"})),
        )
        config = pipeline_config(chain_enabled=False)

        output = await PipelineOrchestrator(provider, config).run(_inputs(make_diffs))

        assert output.commit_message == "feat: add X"
        assert len(provider.calls_for(RequestKind.STRICT_FIX)) == 1


class TestCancellation:
    async def test_cancel_before_run(self, make_provider, make_diffs, pipeline_config):
        provider = make_provider(handler=_make_handler())
        emitter = StageEventEmitter()
        token = CancellationToken()
        token.cancel()

        with pytest.raises(Cancelled):
            await PipelineOrchestrator(provider, pipeline_config(), emitter).run(
                _inputs(make_diffs), token,
            )

        assert provider.calls == []
        assert emitter.history[-1].type == StageEventType.CANCELLED

    async def test_cancel_during_draft(self, make_provider, make_diffs, pipeline_config):
        token = CancellationToken()
        emitter = StageEventEmitter()

        def _cancel_on_draft(conversation):
            token.cancel()
            return json.dumps({"type": "feat", "description": "add X"})

        provider = make_provider(handler=_make_handler(draft=_cancel_on_draft))
        orchestrator = PipelineOrchestrator(provider, pipeline_config(), emitter)

        with pytest.raises(Cancelled):
            await orchestrator.run(_inputs(make_diffs), token)

        assert orchestrator.state == PipelineState.DRAFTING
        assert provider.calls_for(RequestKind.FIX) == []
        cancelled = emitter.history[-1]
        assert cancelled.type == StageEventType.CANCELLED
        assert cancelled.data["state"] == "drafting"


class TestRunPipeline:
    async def test_builds_provider_for_resolved_model(
        self, make_provider, make_diffs, pipeline_config,
    ):
        provider = make_provider(handler=_make_handler())

        with patch("commitgenie.orchestrator.LiteLLMProvider", return_value=provider) as cls:
            output = await run_pipeline(
                _inputs(make_diffs),
                config=pipeline_config(model="gpt-4o", temperature=0.2, default_timeout=30),
            )

        model_config = cls.call_args.args[0]
        assert model_config.model == "gpt-4o"
        assert cls.call_args.kwargs == {"temperature": 0.2, "timeout": 30}
        assert output.commit_message == _CLEAN_MESSAGE

    async def test_unknown_model_raises(self, make_diffs, pipeline_config):
        with pytest.raises(ValueError, match="Unknown model"):
            await run_pipeline(_inputs(make_diffs), config=pipeline_config(model="nope"))
