"""Schema-validated model calls with feedback-injection retry.

Every chain stage calls the model through StructuredCallExecutor. The
executor sends the conversation, parses the raw reply, validates it
against the schema bound to the request kind and, on failure, retries
with the rejected reply and the validation error appended so the model
can correct itself.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ValidationError

from commitgenie.cancellation import CancellationToken
from commitgenie.errors import Cancelled, SchemaExhausted
from commitgenie.providers.base import ChatProvider
from commitgenie.schemas.messages import ChatRole, Conversation, RawReply, turn
from commitgenie.schemas.requests import RequestKind

logger = logging.getLogger(__name__)

# JSON inside a fenced markdown block
_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n(.*?)\n```", re.DOTALL)


class ReplyParseError(ValueError):
    """Raised when a text reply contains no parseable JSON object."""


def parse_reply(raw: RawReply) -> Any:
    """Turn a raw provider reply into plain data ready for validation.

    Pydantic instances are dumped, dicts pass through, and text is parsed
    as JSON directly, then from the outermost ``{...}`` slice, then from
    a fenced block.

    Raises:
        ReplyParseError: If a text reply holds no JSON value.
    """
    if isinstance(raw, BaseModel):
        return raw.model_dump()
    if isinstance(raw, dict):
        return raw

    text = (raw or "").strip()
    if not text:
        raise ReplyParseError("Reply is empty")

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            pass

    fence = _JSON_FENCE_RE.search(text)
    if fence:
        try:
            return json.loads(fence.group(1))
        except json.JSONDecodeError:
            pass

    raise ReplyParseError("Reply is not valid JSON")


def _serialize_reply(raw: RawReply) -> str:
    if isinstance(raw, BaseModel):
        return raw.model_dump_json(by_alias=True)
    if isinstance(raw, dict):
        return json.dumps(raw, ensure_ascii=False)
    return raw or ""


def build_retry_messages(
    history: Conversation,
    rejected: RawReply,
    error: str,
    schema: type[BaseModel],
) -> Conversation:
    """Return a new conversation with the rejected reply and feedback appended.

    The caller's list is never modified.
    """
    schema_json = json.dumps(schema.model_json_schema(), indent=2)
    feedback = (
        "The previous response did not conform to the required format. "
        f"Validation error: {error}\n"
        "Please try again and ensure the response matches this JSON schema:\n"
        f"{schema_json}"
    )
    return [
        *history,
        turn(ChatRole.ASSISTANT, _serialize_reply(rejected)),
        turn(ChatRole.USER, feedback),
    ]


class StructuredCallExecutor:
    """Runs one logical model call until its reply fits the schema.

    Makes at most ``max_attempts`` chat calls per ``execute``. Transport
    failures raised by the provider propagate untouched; only schema
    failures are retried here.
    """

    def __init__(
        self,
        provider: ChatProvider,
        max_attempts: int = 3,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._provider = provider
        self._max_attempts = max_attempts
        self._cancel_token = cancel_token

    @property
    def provider(self) -> ChatProvider:
        return self._provider

    @property
    def cancel_token(self) -> CancellationToken | None:
        return self._cancel_token

    async def execute(
        self,
        history: Conversation,
        request_kind: RequestKind,
        *,
        max_attempts: int | None = None,
    ) -> BaseModel:
        """Call the model and return a reply validated against the kind's schema.

        Raises:
            Cancelled: If the cancellation token fires before or during an attempt.
            SchemaExhausted: If no attempt produced a valid reply.
            UpstreamFailure: If the provider itself fails.
        """
        attempts = max_attempts or self._max_attempts
        schema = request_kind.schema
        conversation = list(history)
        last_error = ""

        for attempt in range(attempts):
            if self._cancel_token is not None:
                self._cancel_token.raise_if_cancelled()

            raw = await self._chat(conversation, request_kind)

            try:
                return schema.model_validate(parse_reply(raw))
            except (ReplyParseError, ValidationError) as e:
                last_error = str(e)

            if attempt < attempts - 1:
                logger.warning(
                    "Schema validation failed for %s (attempt %d/%d). Retrying...",
                    request_kind.label, attempt + 1, attempts,
                )
                logger.debug("Validation error for %s: %s", request_kind.label, last_error)
                conversation = build_retry_messages(conversation, raw, last_error, schema)

        logger.warning(
            "Schema validation failed for %s after %d attempts", request_kind.label, attempts,
        )
        raise SchemaExhausted(request_kind.value, attempts, last_error)

    async def _chat(self, conversation: Conversation, request_kind: RequestKind) -> RawReply:
        """Send one attempt, abandoning it if the cancellation token fires."""
        if self._cancel_token is None:
            return await self._provider.chat(conversation, request_kind)

        chat_task = asyncio.ensure_future(self._provider.chat(conversation, request_kind))
        cancel_task = asyncio.ensure_future(self._cancel_token.wait())
        try:
            await asyncio.wait({chat_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_task.cancel()
            if not chat_task.done():
                chat_task.cancel()

        if self._cancel_token.is_cancelled:
            if chat_task.done() and not chat_task.cancelled():
                chat_task.exception()  # mark retrieved
            raise Cancelled()
        return chat_task.result()
