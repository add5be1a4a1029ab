"""Local Conventional Commits header checks and the strict-fix escalation."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from commitgenie.chain.executor import StructuredCallExecutor
from commitgenie.chain.messages import build_strict_fix_messages
from commitgenie.errors import SchemaExhausted, UpstreamFailure
from commitgenie.schemas.commit import StrictCheckResult, TemplatePolicy
from commitgenie.schemas.requests import RequestKind

logger = logging.getLogger(__name__)

HEADER_RE = re.compile(r"^(?P<type>[a-z]+)(\([A-Za-z0-9_.-]+\))?!?:\s.+$")
FOOTER_TOKEN_RE = re.compile(r"^(BREAKING CHANGE|[A-Za-z][A-Za-z-]+):\s")
BULLET_RE = re.compile(r"^\s*([-*])\s+(.*)$")
_BODY_TYPE_PREFIX_RE = re.compile(
    r"^(feat|fix|docs|style|refactor|perf|test|build|ci|chore)(\([^)]+\))?(!)?:\s*",
    re.IGNORECASE,
)

HEADER_SHAPE_PROBLEM = "Header must match <type>[optional scope][!]: <description>."


def first_line(message: str) -> str:
    return message.split("\n", 1)[0]


def check_header(
    message: str,
    max_length: int = 72,
    allowed_types: Sequence[str] | None = None,
) -> StrictCheckResult:
    """Check the first line of ``message`` against the header rules. No I/O.

    Leading whitespace is a shape failure; callers normalize the message
    before checking. With ``allowed_types`` an off-vocabulary type is
    reported as well.
    """
    header = first_line(message).rstrip()
    problems: list[str] = []
    match = HEADER_RE.match(header)
    if not match:
        problems.append(HEADER_SHAPE_PROBLEM)
    elif allowed_types is not None and match.group("type") not in allowed_types:
        problems.append(
            f"Type '{match.group('type')}' is not allowed; use one of: "
            f"{', '.join(allowed_types)}."
        )
    if len(header) > max_length:
        problems.append(f"Header length must be <= {max_length} characters.")
    return StrictCheckResult(ok=not problems, problems=problems)


def body_bounds(lines: list[str]) -> tuple[int, int]:
    """Return ``(body_start, footers_start)`` line indexes of a message.

    The body starts after the first blank line following the header and
    ends at the first ``Token: value`` footer line.
    """
    i = 1
    while i < len(lines) and lines[i].strip():
        i += 1
    body_start = i + 1

    footers_start = len(lines)
    for j in range(body_start, len(lines)):
        if FOOTER_TOKEN_RE.match(lines[j]):
            footers_start = j
            break
    return body_start, footers_start


def sanitize_body_type_prefixes(message: str) -> str:
    """Strip commit-type prefixes such as ``feat:`` leaked into body bullets."""
    lines = message.split("\n")
    body_start, footers_start = body_bounds(lines)
    if body_start >= len(lines):
        return message

    for j in range(body_start, footers_start):
        m = BULLET_RE.match(lines[j])
        if not m:
            continue
        bullet, content = m.group(1), m.group(2)
        stripped = _BODY_TYPE_PREFIX_RE.sub("", content, count=1).strip()
        if stripped != content:
            lines[j] = f"{bullet} {stripped}"
    return "\n".join(lines)


class StrictFixer:
    """One-shot model escalation for a header that fails the local check."""

    def __init__(self, executor: StructuredCallExecutor, max_header_length: int = 72) -> None:
        self._executor = executor
        self._max_header_length = max_header_length

    async def fix(
        self,
        message: str,
        problems: list[str],
        policy: TemplatePolicy | None = None,
        *,
        user_template: str = "",
    ) -> tuple[str, bool]:
        """Return the fixed message and whether the escalation failed.

        On failure the input message is returned unchanged.
        """
        messages = build_strict_fix_messages(
            message,
            problems,
            policy=policy,
            user_template=user_template,
            max_header_length=self._max_header_length,
        )
        try:
            reply = await self._executor.execute(
                messages, RequestKind.STRICT_FIX, max_attempts=1,
            )
        except (SchemaExhausted, UpstreamFailure) as e:
            logger.warning("Strict fix failed, keeping the current message: %s", e)
            return message, True
        return reply.commit_message.strip(), False
