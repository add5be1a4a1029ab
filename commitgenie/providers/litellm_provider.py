"""Universal LiteLLM adapter implementing the ChatProvider interface.

Routes chat requests to any LLM provider via LiteLLM's unified API.
Handles schema-constrained output, token tracking, cost calculation,
timeouts, and retry with exponential backoff on transient failures.
Schema validation of the reply is left to the executor.
"""

from __future__ import annotations

import asyncio
import logging
import os

import litellm

# Suppress LiteLLM's "Give Feedback / Get Help" and "Provider List" banners
litellm.suppress_debug_info = True

from commitgenie.errors import UpstreamFailure
from commitgenie.providers.base import ChatProvider
from commitgenie.schemas.messages import Conversation
from commitgenie.schemas.pipeline import ModelConfig
from commitgenie.schemas.requests import RequestKind

logger = logging.getLogger(__name__)

# Max attempts for transient transport failures
_MAX_RETRIES = 3
_BASE_BACKOFF = 1.0  # seconds


def _short_error_reason(error: Exception) -> str:
    """Extract a short, user-friendly reason from a LiteLLM error.

    Maps error types and status codes to concise descriptions instead
    of dumping full JSON error payloads.
    """
    error_str = str(error).lower()
    if "rate" in error_str or "429" in error_str:
        return "rate limit"
    if "overloaded" in error_str or "529" in error_str:
        return "overloaded"
    if "timeout" in error_str or isinstance(error, TimeoutError):
        return "timeout"
    if "503" in error_str or "unavailable" in error_str:
        return "service unavailable"
    if "500" in error_str or "internal" in error_str:
        return "server error"
    if "connection" in error_str:
        return "connection error"
    return str(error)[:80]


class LiteLLMProvider(ChatProvider):
    """Chat adapter powered by LiteLLM.

    Routes calls to any provider (Anthropic, OpenAI, Google, DeepSeek, ...)
    through litellm.acompletion(). This is the only place models are
    called; every pipeline stage goes through it via the executor.
    """

    def __init__(
        self,
        config: ModelConfig,
        *,
        temperature: float = 0.0,
        timeout: int = 120,
    ) -> None:
        super().__init__(config)
        self._api_key = os.environ.get(config.api_key_env, "")
        self._temperature = temperature
        self._timeout = timeout

    async def chat(
        self,
        conversation: Conversation,
        request_kind: RequestKind | None = None,
    ) -> str:
        """Send a conversation via LiteLLM and return the reply text.

        Requests schema-constrained JSON when the model supports it and a
        request kind is given.

        Raises:
            UpstreamFailure: If the call fails after all transport retries,
                or immediately on authentication / bad-request errors.
        """
        kwargs = self._build_completion_kwargs(conversation, request_kind)
        response = await self._call_with_retry(kwargs)
        content = self._extract_content(response)

        usage = getattr(response, "usage", None)
        prompt_tokens = getattr(usage, "prompt_tokens", 0) or 0
        completion_tokens = getattr(usage, "completion_tokens", 0) or 0
        self.record_usage(prompt_tokens, completion_tokens, request_kind)
        logger.info(
            "%s %s call tokens: prompt=%d, completion=%d",
            self._config.display_name,
            request_kind.label if request_kind else "chat",
            prompt_tokens,
            completion_tokens,
        )
        return content

    def _build_completion_kwargs(
        self,
        conversation: Conversation,
        request_kind: RequestKind | None,
    ) -> dict:
        """Build the kwargs dict for litellm.acompletion."""
        kwargs: dict = {
            "model": self._config.model,
            "messages": list(conversation),
            "timeout": float(self._timeout),
            "temperature": self._temperature,
        }

        if self._api_key:
            kwargs["api_key"] = self._api_key

        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base

        if request_kind is not None and self._config.supports_structured:
            kwargs["response_format"] = request_kind.schema

        return kwargs

    async def _call_with_retry(self, kwargs: dict) -> litellm.ModelResponse:
        """Call litellm.acompletion with exponential backoff retry.

        Retries on transient errors (rate limits, server errors, timeouts).
        Non-retryable errors (auth, invalid request) are raised immediately.

        Raises:
            UpstreamFailure: If all retries fail or the error is not retryable.
        """
        last_error: Exception | None = None

        for attempt in range(_MAX_RETRIES):
            try:
                return await litellm.acompletion(**kwargs)
            except TimeoutError:
                last_error = TimeoutError(
                    f"Model call timed out after {kwargs.get('timeout')}s "
                    f"(attempt {attempt + 1}/{_MAX_RETRIES})"
                )
            except litellm.AuthenticationError:
                raise UpstreamFailure(
                    f"Authentication failed for {self._config.model}. "
                    f"Check that {self._config.api_key_env} is set correctly.",
                    reason="authentication",
                ) from None
            except litellm.BadRequestError as e:
                raise UpstreamFailure(
                    f"Bad request to {self._config.model}: {e}",
                    reason="bad request",
                ) from e
            except (
                litellm.RateLimitError,
                litellm.ServiceUnavailableError,
                litellm.InternalServerError,
                litellm.APIConnectionError,
            ) as e:
                last_error = e

            if attempt < _MAX_RETRIES - 1:
                backoff = _BASE_BACKOFF * (2**attempt)
                logger.warning(
                    "Retry %d/%d for %s (%s, backoff: %.1fs)",
                    attempt + 1,
                    _MAX_RETRIES,
                    self._config.display_name,
                    _short_error_reason(last_error),
                    backoff,
                )
                await asyncio.sleep(backoff)

        reason = _short_error_reason(last_error) if last_error else "unknown"
        raise UpstreamFailure(
            f"Model call to {self._config.model} failed after {_MAX_RETRIES} "
            f"retries: {last_error}",
            reason=reason,
        ) from last_error

    def _extract_content(self, response: litellm.ModelResponse) -> str:
        """Extract text content from a LiteLLM response."""
        if not response.choices:
            return ""
        message = response.choices[0].message
        return message.content or "" if message else ""
