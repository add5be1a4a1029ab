"""Tests for commitgenie.chain.validator: fail-open rule validation."""

from __future__ import annotations

import json

from commitgenie.chain.executor import StructuredCallExecutor
from commitgenie.chain.validator import SKIPPED_NOTE, Validator
from commitgenie.errors import UpstreamFailure
from commitgenie.schemas.commit import ValidationStatus
from commitgenie.schemas.requests import RequestKind

_DRAFT = "feat: add X\n\n- wire X into the client"


class TestValidateAndFix:
    async def test_valid_message_kept(self, make_provider):
        reply = json.dumps({"status": "valid", "commitMessage": _DRAFT})
        provider = make_provider({RequestKind.FIX: [reply]})

        result, degraded = await Validator(StructuredCallExecutor(provider)).validate_and_fix(_DRAFT)

        assert result.status == ValidationStatus.VALID
        assert result.commit_message == _DRAFT
        assert degraded is False

    async def test_fixed_message_replaces_draft(self, make_provider):
        reply = json.dumps({
            "status": "fixed",
            "commitMessage": "feat: add X",
            "violations": ["body bullets restate header", None],
        })
        provider = make_provider({RequestKind.FIX: [reply]})

        result, degraded = await Validator(StructuredCallExecutor(provider)).validate_and_fix(_DRAFT)

        assert result.status == ValidationStatus.FIXED
        assert result.commit_message == "feat: add X"
        assert result.violations == ["body bullets restate header"]
        assert degraded is False

    async def test_exhaustion_fails_open(self, make_provider):
        provider = make_provider({RequestKind.FIX: ['{"status": "valid"}']})
        validator = Validator(StructuredCallExecutor(provider, max_attempts=3))

        result, degraded = await validator.validate_and_fix(_DRAFT)

        assert len(provider.calls) == 3
        assert result.status == ValidationStatus.VALID
        assert result.commit_message == _DRAFT
        assert result.notes == SKIPPED_NOTE
        assert degraded is True

    async def test_upstream_failure_fails_open(self, make_provider):
        provider = make_provider({RequestKind.FIX: [UpstreamFailure("down")]})

        result, degraded = await Validator(StructuredCallExecutor(provider)).validate_and_fix(_DRAFT)

        assert result.commit_message == _DRAFT
        assert degraded is True

    async def test_default_checklist_used_when_blank(self, make_provider):
        reply = json.dumps({"commitMessage": _DRAFT})
        provider = make_provider({RequestKind.FIX: [reply]})

        await Validator(StructuredCallExecutor(provider), max_header_length=50).validate_and_fix(
            _DRAFT, checklist="",
        )

        prompt = provider.calls_for(RequestKind.FIX)[0][-1]["content"]
        assert "50" in prompt
        assert _DRAFT in prompt

    async def test_custom_checklist_passed_through(self, make_provider):
        reply = json.dumps({"commitMessage": _DRAFT})
        provider = make_provider({RequestKind.FIX: [reply]})

        await Validator(StructuredCallExecutor(provider)).validate_and_fix(
            _DRAFT, checklist="- Header must mention a ticket",
        )

        prompt = provider.calls_for(RequestKind.FIX)[0][-1]["content"]
        assert "Header must mention a ticket" in prompt
