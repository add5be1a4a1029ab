"""Pipeline engine for commit message synthesis.

Runs the chain in order: Summarize -> (Extract policy) -> Draft ->
Validate -> Strict check -> (Strict fix) -> Enforce language. Each
transition is logged and emitted as a stage event. A final local header
check gates the result: the pipeline never returns a malformed header.

With ``chain_enabled`` off, a single structured call replaces the chain
and only the strict check, strict fix and final gate run after it.
"""

from __future__ import annotations

import logging
import time

from commitgenie.cancellation import CancellationToken
from commitgenie.chain.drafter import Drafter
from commitgenie.chain.executor import StructuredCallExecutor
from commitgenie.chain.language import LanguageEnforcer
from commitgenie.chain.messages import build_single_shot_messages, default_checklist
from commitgenie.chain.policy import TemplatePolicyExtractor
from commitgenie.chain.strict import StrictFixer, check_header, sanitize_body_type_prefixes
from commitgenie.chain.summarizer import DiffSummarizer
from commitgenie.chain.validator import Validator
from commitgenie.errors import Cancelled, GenieError, MalformedCommitMessage
from commitgenie.events import StageEventEmitter, StageEventType
from commitgenie.providers.base import ChatProvider
from commitgenie.providers.litellm_provider import LiteLLMProvider
from commitgenie.providers.registry import load_models, load_pipeline_config, resolve_model
from commitgenie.schemas.commit import STANDARD_COMMIT_TYPES, TemplatePolicy
from commitgenie.schemas.pipeline import (
    ModelConfig,
    PipelineConfig,
    PipelineInputs,
    PipelineOutput,
    PipelineState,
    RawArtifacts,
)
from commitgenie.schemas.requests import RequestKind

logger = logging.getLogger(__name__)

# Event emitted on entering each state
_STATE_EVENT: dict[PipelineState, StageEventType] = {
    PipelineState.SUMMARIZING: StageEventType.SUMMARIZE_START,
    PipelineState.POLICY_EXTRACTION: StageEventType.EXTRACT_POLICY,
    PipelineState.DRAFTING: StageEventType.CLASSIFY_DRAFT,
    PipelineState.VALIDATING: StageEventType.VALIDATE_FIX,
    PipelineState.STRICT_CHECKING: StageEventType.STRICT_CHECK,
    PipelineState.STRICT_FIXING: StageEventType.STRICT_FIX,
    PipelineState.ENFORCING_LANGUAGE: StageEventType.ENFORCE_LANGUAGE,
    PipelineState.DONE: StageEventType.DONE,
}


def _allowed_types(policy: TemplatePolicy | None) -> list[str]:
    return policy.allowed_types() if policy else list(STANDARD_COMMIT_TYPES)


class PipelineOrchestrator:
    """Sequences the chain stages over one provider.

    Every model call of a run goes through one StructuredCallExecutor
    bound to the run's cancellation token. Fail-open stages record
    themselves in ``degraded_stages`` instead of failing the run.
    """

    def __init__(
        self,
        provider: ChatProvider,
        config: PipelineConfig,
        emitter: StageEventEmitter | None = None,
    ) -> None:
        self._provider = provider
        self._config = config
        self._emitter = emitter
        self._state = PipelineState.INIT
        self._degraded: list[str] = []

    @property
    def state(self) -> PipelineState:
        """Current pipeline state."""
        return self._state

    @property
    def config(self) -> PipelineConfig:
        return self._config

    async def run(
        self,
        inputs: PipelineInputs,
        cancel_token: CancellationToken | None = None,
    ) -> PipelineOutput:
        """Generate a commit message for ``inputs``.

        Raises:
            GenieError: If there are no diffs to describe.
            Cancelled: If the token fires; a ``cancelled`` event is emitted first.
            SchemaExhausted: If the drafter (or single-shot call) never
                produced a valid reply.
            UpstreamFailure: If the drafter's transport fails.
            MalformedCommitMessage: If the final header still fails the check.
        """
        if not inputs.diffs:
            raise GenieError("No changes to describe")

        self._state = PipelineState.INIT
        self._degraded = []
        start = time.monotonic()
        usage_mark = len(self._provider.usage)
        executor = StructuredCallExecutor(
            self._provider, self._config.max_attempts, cancel_token,
        )

        try:
            if self._config.chain_enabled:
                output = await self._run_chain(inputs, executor, cancel_token)
            else:
                output = await self._run_single_shot(inputs, executor, cancel_token)
        except Cancelled:
            logger.info("Pipeline cancelled in state %s", self._state)
            self._emit(StageEventType.CANCELLED, state=self._state.value)
            raise

        usage = self._provider.usage[usage_mark:]
        output.total_tokens = sum(u.prompt_tokens + u.completion_tokens for u in usage)
        output.total_cost = sum(u.cost for u in usage)
        output.duration_seconds = time.monotonic() - start
        output.degraded_stages = list(self._degraded)
        output.degraded = bool(self._degraded)

        self._transition(
            PipelineState.DONE,
            degraded=output.degraded,
            total_tokens=output.total_tokens,
        )
        if output.degraded:
            logger.warning("Run completed degraded: %s", ", ".join(output.degraded_stages))
        return output

    # ── Chain ─────────────────────────────────────────────────

    async def _run_chain(
        self,
        inputs: PipelineInputs,
        executor: StructuredCallExecutor,
        token: CancellationToken | None,
    ) -> PipelineOutput:
        max_len = self._config.strict_header_max_length
        target_language = inputs.target_language or self._config.target_language

        self._check_cancelled(token)
        self._transition(PipelineState.SUMMARIZING, total=len(inputs.diffs))
        batch = await DiffSummarizer(executor, self._emitter).summarize(
            inputs.diffs, self._config.max_parallel, token,
        )
        if batch.degraded:
            self._mark_degraded("summarize")

        policy: TemplatePolicy | None = None
        if inputs.user_template.strip():
            self._check_cancelled(token)
            self._transition(PipelineState.POLICY_EXTRACTION)
            policy, failed = await TemplatePolicyExtractor(executor).extract(inputs.user_template)
            if failed:
                self._mark_degraded("extract_policy")

        self._check_cancelled(token)
        self._transition(PipelineState.DRAFTING, summaries=len(batch.summaries))
        draft = await Drafter(executor, max_len).draft(
            batch.summaries,
            policy,
            inputs.repo_context,
            target_language,
            user_template=inputs.user_template,
            current_time=inputs.current_time,
        )

        self._check_cancelled(token)
        self._transition(PipelineState.VALIDATING)
        validation, skipped = await Validator(executor, max_len).validate_and_fix(
            draft.commit_message,
            inputs.checklist,
            policy,
            user_template=inputs.user_template,
        )
        if skipped:
            self._mark_degraded("validate")

        allowed_types = _allowed_types(policy)
        message = await self._strict_stage(
            validation.commit_message, executor, token, policy, inputs.user_template,
        )
        message = sanitize_body_type_prefixes(message)

        self._check_cancelled(token)
        self._transition(PipelineState.ENFORCING_LANGUAGE, language=target_language)
        enforcer = LanguageEnforcer(
            executor,
            max_header_length=max_len,
            latin_margin=self._config.latin_margin,
            zh_min_ideographs=self._config.zh_min_ideographs,
        )
        message, failed = await enforcer.enforce(
            message,
            target_language,
            user_template=inputs.user_template,
            allowed_types=allowed_types,
        )
        if failed:
            self._mark_degraded("enforce_language")

        self._final_gate(message, allowed_types)
        return PipelineOutput(
            commit_message=message,
            file_summaries=batch.summaries,
            raw=RawArtifacts(
                draft=draft.commit_message,
                classification_notes=draft.notes or "",
                validation_notes=validation.notes or "",
                template_policy=policy,
            ),
        )

    # ── Single shot ───────────────────────────────────────────

    async def _run_single_shot(
        self,
        inputs: PipelineInputs,
        executor: StructuredCallExecutor,
        token: CancellationToken | None,
    ) -> PipelineOutput:
        max_len = self._config.strict_header_max_length
        checklist = inputs.checklist.strip() or default_checklist(None, max_len)

        self._check_cancelled(token)
        self._transition(PipelineState.DRAFTING, mode="single_shot")
        messages = build_single_shot_messages(
            inputs.diffs,
            checklist,
            user_template=inputs.user_template,
            target_language=inputs.target_language or self._config.target_language,
            repo_context=inputs.repo_context,
            current_time=inputs.current_time,
        )
        reply = await executor.execute(messages, RequestKind.COMMIT_MESSAGE)

        message = await self._strict_stage(
            reply.commit_message, executor, token, None, inputs.user_template,
        )
        self._final_gate(message, _allowed_types(None))
        return PipelineOutput(
            commit_message=message,
            raw=RawArtifacts(draft=reply.commit_message),
        )

    # ── Shared steps ──────────────────────────────────────────

    async def _strict_stage(
        self,
        message: str,
        executor: StructuredCallExecutor,
        token: CancellationToken | None,
        policy: TemplatePolicy | None,
        user_template: str,
    ) -> str:
        max_len = self._config.strict_header_max_length
        allowed_types = _allowed_types(policy)
        message = message.strip()
        self._check_cancelled(token)
        check = check_header(message, max_len, allowed_types)
        self._transition(PipelineState.STRICT_CHECKING, ok=check.ok, problems=check.problems)
        if check.ok:
            return message

        self._check_cancelled(token)
        self._transition(PipelineState.STRICT_FIXING, problems=check.problems)
        fixed, failed = await StrictFixer(executor, max_len).fix(
            message, check.problems, policy, user_template=user_template,
        )
        if failed:
            self._mark_degraded("strict_fix")
        return fixed

    def _final_gate(self, message: str, allowed_types: list[str]) -> None:
        check = check_header(message, self._config.strict_header_max_length, allowed_types)
        if not check.ok:
            logger.error("Final header check failed: %s", "; ".join(check.problems))
            raise MalformedCommitMessage(check.problems)

    def _transition(self, state: PipelineState, **data: object) -> None:
        logger.info("Pipeline state: %s -> %s", self._state, state)
        self._state = state
        self._emit(_STATE_EVENT[state], **data)

    def _emit(self, event_type: StageEventType, **data: object) -> None:
        if self._emitter is not None:
            self._emitter.emit(event_type, **data)

    def _mark_degraded(self, stage: str) -> None:
        if stage not in self._degraded:
            self._degraded.append(stage)

    @staticmethod
    def _check_cancelled(token: CancellationToken | None) -> None:
        if token is not None:
            token.raise_if_cancelled()


async def run_pipeline(
    inputs: PipelineInputs,
    config: PipelineConfig | None = None,
    registry: dict[str, ModelConfig] | None = None,
    emitter: StageEventEmitter | None = None,
    cancel_token: CancellationToken | None = None,
) -> PipelineOutput:
    """Run one generation with a LiteLLM provider for the configured model.

    Loads the pipeline config and model registry from the packaged TOML
    files when they are not given.
    """
    config = config or load_pipeline_config()
    registry = registry if registry is not None else load_models()
    model = resolve_model(registry, config.model)
    logger.info("Using model %s (%s)", model.display_name, model.model)

    provider = LiteLLMProvider(
        model, temperature=config.temperature, timeout=config.default_timeout,
    )
    orchestrator = PipelineOrchestrator(provider, config, emitter)
    return await orchestrator.run(inputs, cancel_token)
