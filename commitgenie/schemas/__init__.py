"""commit-genie schema definitions.

All Pydantic v2 models used across the providers, the chain stages and
the orchestrator.
"""

from commitgenie.schemas.commit import (
    STANDARD_COMMIT_TYPES,
    ChangeStatus,
    CommitMessageReply,
    DiffRecord,
    DraftResult,
    FileSummary,
    Footer,
    StrictCheckResult,
    TemplatePolicy,
    ValidationResult,
    ValidationStatus,
)
from commitgenie.schemas.messages import (
    ChatRole,
    Conversation,
    RawReply,
    TokenUsage,
)
from commitgenie.schemas.pipeline import (
    ModelConfig,
    PipelineConfig,
    PipelineInputs,
    PipelineOutput,
    PipelineState,
    RawArtifacts,
)
from commitgenie.schemas.requests import RequestKind

__all__ = [
    "STANDARD_COMMIT_TYPES",
    "ChangeStatus",
    "ChatRole",
    "CommitMessageReply",
    "Conversation",
    "DiffRecord",
    "DraftResult",
    "FileSummary",
    "Footer",
    "ModelConfig",
    "PipelineConfig",
    "PipelineInputs",
    "PipelineOutput",
    "PipelineState",
    "RawArtifacts",
    "RawReply",
    "RequestKind",
    "StrictCheckResult",
    "TemplatePolicy",
    "TokenUsage",
    "ValidationResult",
    "ValidationStatus",
]
