"""commit-genie: Conventional Commits messages synthesized from diffs."""

__version__ = "0.1.0"

from .cancellation import CancellationToken
from .orchestrator import PipelineOrchestrator, run_pipeline
from .schemas.commit import DiffRecord
from .schemas.pipeline import PipelineConfig, PipelineInputs, PipelineOutput

__all__ = [
    "CancellationToken",
    "DiffRecord",
    "PipelineConfig",
    "PipelineInputs",
    "PipelineOrchestrator",
    "PipelineOutput",
    "run_pipeline",
]
