"""Template policy extraction from a free-form user template."""

from __future__ import annotations

import logging

from commitgenie.chain.executor import StructuredCallExecutor
from commitgenie.chain.messages import build_policy_messages
from commitgenie.errors import SchemaExhausted, UpstreamFailure
from commitgenie.schemas.commit import TemplatePolicy
from commitgenie.schemas.requests import RequestKind

logger = logging.getLogger(__name__)


class TemplatePolicyExtractor:
    """Turns a user's commit template into a structured TemplatePolicy.

    The policy is None when no template is given, when the model extracts
    nothing beyond the defaults, or when extraction fails; the pipeline
    then drafts without a policy.
    """

    def __init__(self, executor: StructuredCallExecutor) -> None:
        self._executor = executor

    async def extract(self, user_template: str) -> tuple[TemplatePolicy | None, bool]:
        """Return the extracted policy and whether extraction failed."""
        if not user_template or not user_template.strip():
            return None, False

        messages = build_policy_messages(user_template)
        try:
            policy = await self._executor.execute(messages, RequestKind.TEMPLATE_POLICY)
        except (SchemaExhausted, UpstreamFailure) as e:
            logger.warning("Template policy extraction failed, continuing without: %s", e)
            return None, True

        if policy.is_empty():
            logger.info("User template produced no constraints beyond the defaults")
            return None, False
        return policy, False
