"""Request kinds and the reply schema each one is bound to.

Every structured model call names a RequestKind. The kind selects exactly
one pydantic schema, so the executor validates replies without a
string-keyed lookup table.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel

from commitgenie.schemas.commit import (
    CommitMessageReply,
    DraftResult,
    FileSummary,
    TemplatePolicy,
    ValidationResult,
)


class RequestKind(StrEnum):
    """Discriminator for the reply shape expected from a model call."""

    SUMMARY = "summary"
    TEMPLATE_POLICY = "template_policy"
    DRAFT = "draft"
    FIX = "fix"
    STRICT_FIX = "strict_fix"
    LANGUAGE_FIX = "language_fix"
    COMMIT_MESSAGE = "commit_message"

    @property
    def schema(self) -> type[BaseModel]:
        """The pydantic model a reply of this kind must validate against."""
        match self:
            case RequestKind.SUMMARY:
                return FileSummary
            case RequestKind.TEMPLATE_POLICY:
                return TemplatePolicy
            case RequestKind.DRAFT:
                return DraftResult
            case RequestKind.FIX:
                return ValidationResult
            case RequestKind.STRICT_FIX | RequestKind.LANGUAGE_FIX | RequestKind.COMMIT_MESSAGE:
                return CommitMessageReply
        raise AssertionError(f"Unhandled request kind: {self!r}")

    @property
    def label(self) -> str:
        """Short label used in logs and usage reports."""
        match self:
            case RequestKind.SUMMARY:
                return "summarize"
            case RequestKind.TEMPLATE_POLICY:
                return "extract-policy"
            case RequestKind.DRAFT:
                return "draft"
            case RequestKind.FIX:
                return "validate-fix"
            case RequestKind.STRICT_FIX:
                return "strict-fix"
            case RequestKind.LANGUAGE_FIX:
                return "lang-fix"
            case RequestKind.COMMIT_MESSAGE:
                return "build-commit-msg"
        raise AssertionError(f"Unhandled request kind: {self!r}")
