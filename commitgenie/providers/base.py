"""Abstract base class for all chat providers.

Defines the ChatProvider interface that every LLM adapter must implement.
The pipeline interacts exclusively through this interface; it never
calls provider SDKs directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from commitgenie.schemas.messages import Conversation, RawReply, TokenUsage
from commitgenie.schemas.pipeline import ModelConfig
from commitgenie.schemas.requests import RequestKind


class ChatProvider(ABC):
    """Abstract interface for any LLM that can serve pipeline calls.

    Initialized from a ModelConfig loaded from the TOML registry. Exposes
    identity, cost info, a usage log, and a single async chat() method
    that all providers must implement.
    """

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        self._usage: list[TokenUsage] = []

    # ── Identity ──────────────────────────────────────────────

    @property
    def provider_id(self) -> str:
        """Provider identifier (e.g. 'anthropic', 'openai')."""
        return self._config.provider

    @property
    def model_id(self) -> str:
        """LiteLLM model identifier used for routing."""
        return self._config.model

    @property
    def display_name(self) -> str:
        """Human-friendly model name for CLI output."""
        return self._config.display_name

    @property
    def supports_structured(self) -> bool:
        """Whether replies may come back already shaped by the schema."""
        return self._config.supports_structured

    @property
    def config(self) -> ModelConfig:
        """The full ModelConfig backing this provider."""
        return self._config

    # ── Usage ─────────────────────────────────────────────────

    @property
    def usage(self) -> list[TokenUsage]:
        """Token usage of every call made through this provider."""
        return list(self._usage)

    def record_usage(
        self,
        prompt_tokens: int,
        completion_tokens: int,
        request_kind: RequestKind | None = None,
    ) -> TokenUsage:
        """Append one call's usage to the log and return it."""
        usage = TokenUsage(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            cost=self.calculate_cost(prompt_tokens, completion_tokens),
            request_kind=request_kind.value if request_kind else "",
            model=self._config.model,
        )
        self._usage.append(usage)
        return usage

    def calculate_cost(self, prompt_tokens: int, completion_tokens: int) -> float:
        """Calculate the USD cost for a given token count."""
        input_cost = (prompt_tokens / 1_000_000) * self._config.cost_input
        output_cost = (completion_tokens / 1_000_000) * self._config.cost_output
        return input_cost + output_cost

    # ── Core interface ────────────────────────────────────────

    @abstractmethod
    async def chat(
        self,
        conversation: Conversation,
        request_kind: RequestKind | None = None,
    ) -> RawReply:
        """Send one conversation and return the model's raw reply.

        This is the only method a provider must implement. The executor
        calls it once per attempt and validates the reply itself.

        Args:
            conversation: Ordered turns in OpenAI format
                          (list of {"role": ..., "content": ...} dicts).
            request_kind: Which reply schema governs this call. Providers
                          that can enforce a schema at the transport level
                          may use it; others ignore it.

        Returns:
            Free text, or a dict / pydantic instance when the transport
            already enforced the schema.

        Raises:
            UpstreamFailure: If the call fails after transport retries.
        """
