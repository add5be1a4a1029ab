"""Commit message schemas exchanged between pipeline stages and the model.

Defines the per-file diff input, the file summary produced by the fan-out
stage, the template policy extracted from a user template, and the structured
replies of the draft, validation and fix stages. Every model accepts both the
camelCase keys the model is asked to emit and the snake_case field names.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Commit types every draft may use regardless of template policy
STANDARD_COMMIT_TYPES: tuple[str, ...] = (
    "feat",
    "fix",
    "docs",
    "style",
    "refactor",
    "perf",
    "test",
    "build",
    "ci",
    "chore",
)


class _CamelModel(BaseModel):
    """Base model accepting camelCase aliases alongside field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChangeStatus(StrEnum):
    """Change status of a file in the working tree."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    UNTRACKED = "untracked"
    IGNORED = "ignored"


class DiffRecord(_CamelModel):
    """One changed file and its raw unified diff."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True,
    )

    file_name: str = Field(min_length=1, description="Path of the changed file")
    status: ChangeStatus = Field(description="How the file changed")
    raw_diff: str = Field(default="", description="Unified diff text for this file")


class FileSummary(_CamelModel):
    """Short model-written summary of a single file change."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True,
    )

    file: str = Field(min_length=1, description="Path of the summarized file")
    status: ChangeStatus = Field(description="Change status of the file")
    summary: str = Field(
        min_length=1, description="Concise change summary (at most 18 words)",
    )
    breaking: bool = Field(
        default=False, description="Whether this change may break consumers",
    )


# ── Template policy ─────────────────────────────────────────────


class ScopeDerivation(StrEnum):
    """How a required scope should be derived."""

    DIRECTORY = "directory"
    REPO = "repo"
    NONE = "none"


class BulletStyle(StrEnum):
    DASH = "dash"
    ASTERISK = "asterisk"


class BulletContentMode(StrEnum):
    PLAIN = "plain"
    FILE_PREFIXED = "file-prefixed"
    TYPE_PREFIXED = "type-prefixed"


class Tone(StrEnum):
    IMPERATIVE = "imperative"
    NEUTRAL = "neutral"
    FRIENDLY = "friendly"


class HeaderPolicy(_CamelModel):
    """Header constraints from a user template."""

    require_scope: bool = Field(default=False, description="Scope is mandatory")
    scope_derivation: ScopeDerivation | None = Field(
        default=None, description="Where the scope comes from",
    )
    prefer_bang_for_breaking: bool = Field(
        default=False, description="Mark breaking changes with '!' in the header",
    )
    also_require_breaking_footer: bool = Field(
        default=False, description="Require a BREAKING CHANGE footer even with '!'",
    )


class TypesPolicy(_CamelModel):
    """Commit type vocabulary constraints."""

    allowed: list[str] = Field(
        default_factory=list, description="Extra commit types the template permits",
    )
    preferred: str | None = Field(default=None, description="Preferred commit type")
    use_standard_types: bool = Field(
        default=True, description="Whether the standard types remain allowed",
    )


class BulletRule(_CamelModel):
    section: str = Field(min_length=1, description="Body section the rule applies to")
    max_bullets: int | None = Field(default=None, ge=1, description="Bullet cap")
    style: BulletStyle | None = Field(default=None, description="Bullet marker")


class BodyPolicy(_CamelModel):
    """Body structure constraints."""

    always_include: bool = Field(default=False, description="Body is mandatory")
    ordered_sections: list[str] = Field(
        default_factory=list, description="Body sections in required order",
    )
    bullet_rules: list[BulletRule] = Field(
        default_factory=list, description="Per-section bullet rules",
    )
    bullet_content_mode: BulletContentMode | None = Field(
        default=None, description="What each bullet starts with",
    )


class Footer(_CamelModel):
    """A single 'Token: value' trailer line."""

    token: str | None = Field(default=None, description="Footer token, e.g. 'Refs'")
    value: str | None = Field(default=None, description="Footer value")


class FooterPolicy(_CamelModel):
    required: list[str] = Field(
        default_factory=list, description="Footer tokens that must be present",
    )
    defaults: list[Footer] = Field(
        default_factory=list, description="Footers added when the draft has none",
    )


class LexiconPolicy(_CamelModel):
    prefer: list[str] = Field(default_factory=list, description="Preferred wording")
    avoid: list[str] = Field(default_factory=list, description="Wording to avoid")
    tone: Tone = Field(default=Tone.IMPERATIVE, description="Narrative tone")


class TemplatePolicy(_CamelModel):
    """Structured constraints extracted from a free-form user template.

    Every section has defaults so a partial extraction still validates;
    ``is_empty`` tells whether anything beyond the defaults was extracted.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True,
    )

    header: HeaderPolicy = Field(default_factory=HeaderPolicy)
    types: TypesPolicy = Field(default_factory=TypesPolicy)
    body: BodyPolicy = Field(default_factory=BodyPolicy)
    footers: FooterPolicy = Field(default_factory=FooterPolicy)
    lexicon: LexiconPolicy = Field(default_factory=LexiconPolicy)

    def is_empty(self) -> bool:
        """True when the policy carries no constraint beyond the defaults."""
        return self == TemplatePolicy()

    def allowed_types(self) -> list[str]:
        """Commit types a draft may use under this policy."""
        extra = [t for t in self.types.allowed if t not in STANDARD_COMMIT_TYPES]
        if not self.types.use_standard_types and self.types.allowed:
            return list(self.types.allowed)
        return [*STANDARD_COMMIT_TYPES, *extra]


# ── Stage replies ───────────────────────────────────────────────


class DraftResult(_CamelModel):
    """Classification and draft returned by the drafting stage."""

    type: str = Field(min_length=1, description="Conventional Commits type token")
    scope: str | None = Field(default=None, description="Optional header scope")
    breaking: bool = Field(default=False, description="Whether the change is breaking")
    description: str = Field(min_length=1, description="Header description")
    body: str | None = Field(default=None, description="Optional body text")
    footers: list[Footer] = Field(default_factory=list, description="Trailer lines")
    commit_message: str | None = Field(
        default=None, description="Fully assembled commit message",
    )
    notes: str | None = Field(default=None, description="Classification notes")

    @field_validator("scope", "body", "commit_message", "notes", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("footers", mode="before")
    @classmethod
    def _null_footers(cls, value: object) -> object:
        return [] if value is None else value


class ValidationStatus(StrEnum):
    VALID = "valid"
    FIXED = "fixed"


class ValidationResult(_CamelModel):
    """Outcome of the validate-and-fix stage."""

    status: ValidationStatus = Field(
        default=ValidationStatus.VALID, description="Whether the message was changed",
    )
    commit_message: str = Field(min_length=1, description="Validated commit message")
    violations: list[str] = Field(
        default_factory=list, description="Rule violations found in the input",
    )
    notes: str | None = Field(default=None, description="Validator notes")

    @field_validator("violations", mode="before")
    @classmethod
    def _drop_null_violations(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, list):
            return [v for v in value if v is not None]
        return value


class CommitMessageReply(_CamelModel):
    """Bare commit message reply used by the fix and single-shot calls."""

    commit_message: str = Field(min_length=1, description="The commit message")


class StrictCheckResult(BaseModel):
    """Result of the local Conventional Commits header check."""

    ok: bool = Field(description="Whether the header satisfies every rule")
    problems: list[str] = Field(
        default_factory=list, description="Human-readable rule violations",
    )
