"""Rule validation of the drafted commit message."""

from __future__ import annotations

import logging

from commitgenie.chain.executor import StructuredCallExecutor
from commitgenie.chain.messages import build_validate_messages, default_checklist
from commitgenie.errors import SchemaExhausted, UpstreamFailure
from commitgenie.schemas.commit import TemplatePolicy, ValidationResult, ValidationStatus
from commitgenie.schemas.requests import RequestKind

logger = logging.getLogger(__name__)

SKIPPED_NOTE = "validation skipped"


class Validator:
    """Checks the draft against the formatting rules and applies fixes.

    Fail-open: when no valid reply can be obtained, the original message
    is returned unchanged and the result is reported as degraded.
    """

    def __init__(self, executor: StructuredCallExecutor, max_header_length: int = 72) -> None:
        self._executor = executor
        self._max_header_length = max_header_length

    async def validate_and_fix(
        self,
        commit_message: str,
        checklist: str = "",
        policy: TemplatePolicy | None = None,
        *,
        user_template: str = "",
    ) -> tuple[ValidationResult, bool]:
        """Return the validation result and whether the stage degraded."""
        rules = checklist.strip() or default_checklist(policy, self._max_header_length)
        messages = build_validate_messages(
            commit_message, rules, policy=policy, user_template=user_template,
        )
        try:
            result = await self._executor.execute(messages, RequestKind.FIX)
        except (SchemaExhausted, UpstreamFailure) as e:
            logger.warning("Validation failed, keeping the draft unchanged: %s", e)
            skipped = ValidationResult(
                status=ValidationStatus.VALID,
                commit_message=commit_message,
                notes=SKIPPED_NOTE,
            )
            return skipped, True

        if result.status == ValidationStatus.FIXED:
            logger.info("Validator fixed %d violations", len(result.violations))
        return result, False
