"""Pipeline configuration, input and result schemas.

Defines the model registry entry, the explicit configuration struct handed
to the orchestrator, the inputs of one generation run, and the result with
its audit trail.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

from commitgenie.schemas.commit import DiffRecord, FileSummary, TemplatePolicy


class PipelineState(StrEnum):
    """States of the commit message synthesis pipeline."""

    INIT = "init"
    SUMMARIZING = "summarizing"
    POLICY_EXTRACTION = "policy_extraction"
    DRAFTING = "drafting"
    VALIDATING = "validating"
    STRICT_CHECKING = "strict_checking"
    STRICT_FIXING = "strict_fixing"
    ENFORCING_LANGUAGE = "enforcing_language"
    DONE = "done"


class ModelConfig(BaseModel):
    """Configuration for a single LLM model in the registry.

    Loaded from models.toml. Each entry provides the LiteLLM routing
    information, capability flags and cost data.
    """

    provider: str = Field(description="Provider identifier (e.g. 'anthropic', 'openai')")
    model: str = Field(description="LiteLLM model identifier")
    display_name: str = Field(description="Human-friendly model name for CLI output")
    api_key_env: str = Field(description="Environment variable name holding the API key")
    api_base: str = Field(default="", description="Custom API base URL (empty = provider default)")
    context_window: int = Field(gt=0, description="Maximum context window size in tokens")
    supports_structured: bool = Field(
        default=False, description="Whether the model supports structured output"
    )
    cost_input: float = Field(ge=0.0, description="Cost per 1M input tokens in USD")
    cost_output: float = Field(ge=0.0, description="Cost per 1M output tokens in USD")


class PipelineConfig(BaseModel):
    """Top-level configuration for a generation run.

    Loaded from defaults.toml and overridden by CLI flags. Passed to the
    orchestrator explicitly; nothing reads configuration at call time.
    """

    model: str = Field(default="", description="Model registry key (empty = first entry)")
    chain_enabled: bool = Field(
        default=True, description="Run the multi-stage chain instead of a single call"
    )
    max_parallel: int = Field(
        default=4, ge=1, description="Requested number of summarizer workers"
    )
    max_retries: int = Field(
        default=2, ge=0, le=5, description="Schema-validation retries per model call"
    )
    temperature: float = Field(
        default=0.0, ge=0.0, le=2.0, description="Sampling temperature for every call"
    )
    default_timeout: int = Field(
        default=120, gt=0, description="Timeout in seconds per model call"
    )
    target_language: str = Field(
        default="", description="Language for narrative text (empty = no enforcement)"
    )
    strict_header_max_length: int = Field(
        default=72, gt=0, description="Maximum header length accepted by the strict check"
    )
    latin_margin: int = Field(
        default=2, ge=1, description="Score lead required to detect a Latin-script language"
    )
    zh_min_ideographs: int = Field(
        default=4, ge=1, description="Ideographs needed to accept text as Chinese outright"
    )

    @property
    def max_attempts(self) -> int:
        """Total attempts per structured call (first try plus retries)."""
        return self.max_retries + 1


class PipelineInputs(BaseModel):
    """Everything one generation run consumes."""

    diffs: list[DiffRecord] = Field(description="One record per changed file")
    checklist: str = Field(
        default="", description="Validation checklist (empty = built-in rules)"
    )
    user_template: str = Field(default="", description="Free-form user commit template")
    target_language: str = Field(
        default="", description="Overrides PipelineConfig.target_language when set"
    )
    repo_context: str = Field(
        default="", description="Background description of the repository"
    )
    current_time: str = Field(default="", description="Timestamp shown to the model")


class RawArtifacts(BaseModel):
    """Intermediate artifacts kept for auditing a run."""

    draft: str = Field(default="", description="Commit message produced by the drafter")
    classification_notes: str = Field(default="", description="Drafter notes")
    validation_notes: str = Field(default="", description="Validator notes")
    template_policy: TemplatePolicy | None = Field(
        default=None, description="Policy extracted from the user template"
    )


class PipelineOutput(BaseModel):
    """Result of a complete generation run."""

    commit_message: str = Field(description="Final Conventional Commits message")
    file_summaries: list[FileSummary] = Field(
        default_factory=list, description="Per-file summaries in completion order"
    )
    raw: RawArtifacts = Field(default_factory=RawArtifacts, description="Audit trail")
    degraded: bool = Field(
        default=False, description="Whether any stage fell back to a default value"
    )
    degraded_stages: list[str] = Field(
        default_factory=list, description="Stages that fell back during the run"
    )
    total_tokens: int = Field(
        default=0, ge=0, description="Total tokens (prompt + completion) across all calls"
    )
    total_cost: float = Field(
        default=0.0, ge=0.0, description="Total USD cost across all model calls"
    )
    duration_seconds: float = Field(
        default=0.0, ge=0.0, description="Wall-clock duration of the run in seconds"
    )
