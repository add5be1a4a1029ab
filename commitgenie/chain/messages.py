"""Conversation builders for every chain stage.

Each builder pairs a short system prompt with a rendered Markdown user
prompt and returns a fresh conversation list.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime

from commitgenie.prompts import render_prompt
from commitgenie.schemas.commit import (
    STANDARD_COMMIT_TYPES,
    DiffRecord,
    FileSummary,
    TemplatePolicy,
)
from commitgenie.schemas.messages import ChatRole, Conversation, turn

SUMMARIZE_SYSTEM_PROMPT = """\
<role>
You are a senior software engineer helping generate high-quality Conventional Commit messages.
Analyze a single unified git diff and return a strict JSON summary.
</role>

<critical>
No commentary. Return ONLY JSON.
</critical>"""

POLICY_SYSTEM_PROMPT = """\
<role>
You convert commit message templates into machine-readable policies.
</role>

<critical>
Return STRICT JSON only. Do not invent constraints the template does not state.
</critical>"""

DRAFT_SYSTEM_PROMPT = """\
<role>
You are an expert on Conventional Commits.
</role>

<critical>
Return STRICT JSON only.
Follow the provided rules and examples EXACTLY.
No markdown in values.
If a user template is provided, follow it with HIGHEST PRIORITY while maintaining Conventional Commits structure.
</critical>"""

VALIDATE_SYSTEM_PROMPT = """\
<role>
You are a strict Conventional Commits validator and fixer.
</role>

<critical>
Output ONLY JSON.
Do not include markdown.
Apply minimal edits when fixing.
If a user template is provided, follow it with HIGHEST PRIORITY while maintaining Conventional Commits structure.
</critical>"""

STRICT_FIX_SYSTEM_PROMPT = """\
<critical>
Return STRICT JSON only.
Fix the commit message to satisfy Conventional Commits exactly.
If a user template is provided, follow it with HIGHEST PRIORITY while maintaining Conventional Commits structure.
</critical>"""

LANGUAGE_SYSTEM_PROMPT = """\
<role>
You are a precise editor for Conventional Commit messages.
</role>

<critical>
Return STRICT JSON only; do not include markdown or code fences.
If a user template is provided, follow it with HIGHEST PRIORITY while maintaining Conventional Commits structure.
</critical>"""

SINGLE_SHOT_SYSTEM_PROMPT = """\
<role>
You are an expert on Conventional Commits writing a commit message for staged changes.
</role>

<critical>
Return STRICT JSON only. No markdown or code fences in the message.
</critical>"""


def _policy_json(policy: TemplatePolicy | None) -> str:
    if policy is None or policy.is_empty():
        return ""
    return policy.model_dump_json(by_alias=True, exclude_defaults=True)


def _allowed_types(policy: TemplatePolicy | None) -> list[str]:
    return policy.allowed_types() if policy else list(STANDARD_COMMIT_TYPES)


def default_checklist(
    policy: TemplatePolicy | None = None, max_header_length: int = 72,
) -> str:
    """Render the built-in validation rules."""
    return render_prompt(
        "validation_checklist",
        allowed_types=_allowed_types(policy),
        max_header_length=max_header_length,
    ).strip()


def build_summarize_messages(diff: DiffRecord) -> Conversation:
    user = render_prompt(
        "summarize_file",
        file_name=diff.file_name,
        status=diff.status.value,
        raw_diff=diff.raw_diff,
    )
    return [turn(ChatRole.SYSTEM, SUMMARIZE_SYSTEM_PROMPT), turn(ChatRole.USER, user)]


def build_policy_messages(user_template: str) -> Conversation:
    user = render_prompt("extract_policy", user_template=user_template)
    return [turn(ChatRole.SYSTEM, POLICY_SYSTEM_PROMPT), turn(ChatRole.USER, user)]


def build_draft_messages(
    summaries: list[FileSummary],
    *,
    policy: TemplatePolicy | None = None,
    repo_context: str = "",
    target_language: str = "",
    user_template: str = "",
    current_time: str = "",
    max_header_length: int = 72,
) -> Conversation:
    payload = {
        "now": current_time or datetime.now(UTC).isoformat(),
        "file_summaries": [s.model_dump(mode="json") for s in summaries],
        "target_language": target_language,
        "repo_context": repo_context,
    }
    user = render_prompt(
        "classify_draft",
        payload_json=json.dumps(payload, indent=2, ensure_ascii=False),
        repo_context=repo_context,
        policy_json=_policy_json(policy),
        user_template=user_template.strip(),
        allowed_types=_allowed_types(policy),
        target_language=target_language,
        max_header_length=max_header_length,
    )
    return [turn(ChatRole.SYSTEM, DRAFT_SYSTEM_PROMPT), turn(ChatRole.USER, user)]


def build_validate_messages(
    commit_message: str,
    checklist: str,
    *,
    policy: TemplatePolicy | None = None,
    user_template: str = "",
) -> Conversation:
    user = render_prompt(
        "validate_fix",
        commit_message=commit_message,
        checklist=checklist,
        policy_json=_policy_json(policy),
        user_template=user_template.strip(),
        allowed_types=_allowed_types(policy),
    )
    return [turn(ChatRole.SYSTEM, VALIDATE_SYSTEM_PROMPT), turn(ChatRole.USER, user)]


def build_strict_fix_messages(
    current: str,
    problems: list[str],
    *,
    policy: TemplatePolicy | None = None,
    user_template: str = "",
    max_header_length: int = 72,
) -> Conversation:
    user = render_prompt(
        "strict_fix",
        current=current,
        problems_json=json.dumps(problems, ensure_ascii=False),
        allowed_types=_allowed_types(policy),
        user_template=user_template.strip(),
        max_header_length=max_header_length,
    )
    return [turn(ChatRole.SYSTEM, STRICT_FIX_SYSTEM_PROMPT), turn(ChatRole.USER, user)]


def build_language_messages(
    commit_message: str, language: str, *, user_template: str = "",
) -> Conversation:
    user = render_prompt(
        "enforce_language",
        commit_message=commit_message,
        language=language,
        user_template=user_template.strip(),
    )
    return [turn(ChatRole.SYSTEM, LANGUAGE_SYSTEM_PROMPT), turn(ChatRole.USER, user)]


def build_single_shot_messages(
    diffs: list[DiffRecord],
    checklist: str,
    *,
    user_template: str = "",
    target_language: str = "",
    repo_context: str = "",
    current_time: str = "",
) -> Conversation:
    payload = {
        "diffs": [d.model_dump(mode="json", by_alias=True) for d in diffs],
        "current-time": current_time or datetime.now(UTC).isoformat(),
        "repository-analysis": repo_context,
        "target-language": target_language,
    }
    user = render_prompt(
        "single_shot",
        payload_json=json.dumps(payload, indent=2, ensure_ascii=False),
        checklist=checklist,
        user_template=user_template.strip(),
        target_language=target_language,
    )
    return [turn(ChatRole.SYSTEM, SINGLE_SHOT_SYSTEM_PROMPT), turn(ChatRole.USER, user)]
