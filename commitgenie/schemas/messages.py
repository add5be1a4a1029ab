"""Conversation and usage schemas for model calls.

Conversations are plain OpenAI-format message dicts so they can be handed to
LiteLLM unchanged. Token usage is tracked per call for cost reporting.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ChatRole(StrEnum):
    """Roles allowed in a conversation turn."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


# An ordered list of {"role": ..., "content": ...} turns
Conversation = list[dict[str, str]]

# What a provider hands back: free text, or an object already shaped by a
# transport-level schema (a dict or a pydantic model instance)
RawReply = str | dict[str, Any] | BaseModel


def turn(role: ChatRole, content: str) -> dict[str, str]:
    """Build one conversation turn."""
    return {"role": role.value, "content": content}


class TokenUsage(BaseModel):
    """Token consumption and cost tracking for a single model call."""

    prompt_tokens: int = Field(ge=0, description="Number of input tokens consumed")
    completion_tokens: int = Field(ge=0, description="Number of output tokens generated")
    cost: float = Field(ge=0.0, description="Estimated cost in USD for this call")
    request_kind: str = Field(default="", description="Request kind of the call")
    model: str = Field(default="", description="Model identifier that served the call")
