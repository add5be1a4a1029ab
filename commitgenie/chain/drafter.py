"""Commit classification and drafting from file summaries.

The drafter asks the model for a structured draft. When the reply carries
the structured fields but no assembled message, the message is rebuilt
deterministically from those fields.
"""

from __future__ import annotations

import logging
import re

from commitgenie.chain.executor import StructuredCallExecutor
from commitgenie.chain.messages import build_draft_messages
from commitgenie.schemas.commit import (
    STANDARD_COMMIT_TYPES,
    DraftResult,
    FileSummary,
    TemplatePolicy,
)
from commitgenie.schemas.requests import RequestKind

logger = logging.getLogger(__name__)

BREAKING_FOOTER_TOKEN = "BREAKING CHANGE"
DEFAULT_BREAKING_DETAIL = "Please see description for details."

# A header that already carries the breaking-change marker
_BANG_HEADER_RE = re.compile(r"!:\s")


def build_header(draft: DraftResult) -> str:
    """``type(scope)!: description`` from the structured fields."""
    scope = (draft.scope or "").strip()
    bang = "!" if draft.breaking else ""
    scope_part = f"({scope})" if scope else ""
    return f"{draft.type.strip()}{scope_part}{bang}: {draft.description.strip()}"


def reconstruct_commit_message(draft: DraftResult) -> str:
    """Assemble the full commit message from a draft's structured fields.

    Header, then a blank line and the body if any, then a blank line and
    the ``Token: value`` footers. A breaking draft whose header lacks the
    ``!`` marker gets a BREAKING CHANGE footer when none was provided.
    """
    header = build_header(draft)
    parts = [header]

    body = (draft.body or "").strip()
    if body:
        parts.extend(["", body])

    footers: list[str] = []
    for footer in draft.footers:
        if footer.token and footer.value is not None:
            footers.append(f"{footer.token.strip()}: {footer.value.strip()}")

    has_breaking_footer = any(
        line.startswith((f"{BREAKING_FOOTER_TOKEN}:", "BREAKING-CHANGE:")) for line in footers
    )
    if draft.breaking and not _BANG_HEADER_RE.search(header) and not has_breaking_footer:
        footers.append(f"{BREAKING_FOOTER_TOKEN}: {DEFAULT_BREAKING_DETAIL}")

    if footers:
        parts.extend(["", *footers])

    return "\n".join(parts)


class Drafter:
    """Classifies the change set and drafts the commit message."""

    def __init__(self, executor: StructuredCallExecutor, max_header_length: int = 72) -> None:
        self._executor = executor
        self._max_header_length = max_header_length

    async def draft(
        self,
        summaries: list[FileSummary],
        policy: TemplatePolicy | None = None,
        repo_context: str = "",
        target_language: str = "",
        *,
        user_template: str = "",
        current_time: str = "",
    ) -> DraftResult:
        """Return a draft whose ``commit_message`` is always populated.

        Raises:
            SchemaExhausted: If the model never produced a valid draft.
        """
        messages = build_draft_messages(
            summaries,
            policy=policy,
            repo_context=repo_context,
            target_language=target_language,
            user_template=user_template,
            current_time=current_time,
            max_header_length=self._max_header_length,
        )
        result = await self._executor.execute(messages, RequestKind.DRAFT)

        allowed = policy.allowed_types() if policy else list(STANDARD_COMMIT_TYPES)
        if result.type.strip() not in allowed:
            logger.warning("Draft used commit type %r outside %s", result.type, allowed)

        if not result.commit_message:
            logger.info("Draft omitted the assembled message, rebuilding from fields")
            result = result.model_copy(
                update={"commit_message": reconstruct_commit_message(result)},
            )
        return result
