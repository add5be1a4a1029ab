"""commit-genie provider layer.

The provider layer is the only way models are called by the pipeline.
All LLM interactions go through LiteLLMProvider via the ChatProvider interface.
"""

from commitgenie.providers.base import ChatProvider
from commitgenie.providers.litellm_provider import LiteLLMProvider
from commitgenie.providers.registry import (
    load_models,
    load_pipeline_config,
    resolve_model,
)

__all__ = [
    "ChatProvider",
    "LiteLLMProvider",
    "load_models",
    "load_pipeline_config",
    "resolve_model",
]
