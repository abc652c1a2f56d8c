"""The orchestration loop.

A run alternates between provider calls and tool dispatch until the model
produces a final answer or a limit is reached:

    Start -> AwaitingProviderResponse -> (ToolDispatch -> AwaitingProviderResponse)*
          -> Finished | Truncated | Failed

``Orchestrator.events`` drives the state machine as an async generator of
loop events; ``Orchestrator.run`` consumes it and returns the RunResult.
"""

import asyncio
import inspect
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import aclosing
from dataclasses import dataclass, replace
from typing import Any, TypeAlias

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential

from chat_orchestrator.platform.agent.errors import (
    ExtensionsDisabled,
    OrchestrationError,
    ProviderError,
    ProviderRejected,
    ToolFailureBudgetExceeded,
    ToolRejected,
    UnknownTool,
    to_report,
)
from chat_orchestrator.platform.agent.messages import (
    Conversation,
    Message,
    Role,
    RunResult,
    RunState,
    ToolCallRequest,
    ToolCallResult,
    ToolSpec,
)
from chat_orchestrator.platform.agent.metrics import (
    AgentMetricsLabels,
    collect_agent_metrics,
    record_run_outcome,
)
from chat_orchestrator.platform.observability.logging import bind_run_context, clear_run_context
from chat_orchestrator.platform.orchestration.compaction import Compactor
from chat_orchestrator.platform.orchestration.confirmation import (
    CONFIRMATION_TIMED_OUT,
    ConfirmationBroker,
    PendingConfirmation,
)
from chat_orchestrator.platform.orchestration.factory import Agent
from chat_orchestrator.platform.settings import OrchestrationSettings
from chat_orchestrator.platform.tools.registry import ToolRegistry

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

COMPLETION_MARKER = "[TASK_COMPLETE]"
AUTOPILOT_NUDGE = (
    "Continue working on the task. When it is complete, give your final answer "
    f"and end it with {COMPLETION_MARKER}."
)

TRUNCATED_MAX_ITERATIONS = "max_iterations"
TRUNCATED_MAX_TURNS_WITHOUT_TOOLS = "max_turns_without_tools"


# =============================================================================
# Loop events
# =============================================================================


@dataclass(frozen=True)
class ContentDelta:
    text: str
    iteration: int


@dataclass(frozen=True)
class ThinkingDelta:
    text: str
    iteration: int


@dataclass(frozen=True)
class ToolCallsProposed:
    """The model requested tool calls.

    Attributes:
        requests: All calls of the turn, in the order the model produced them
        iteration: Provider call index (1-based) that produced the calls
        pending: Confirmation awaiting a decision, if any call needs one
    """

    requests: tuple[ToolCallRequest, ...]
    iteration: int
    pending: PendingConfirmation | None = None

    def requires_confirmation(self, call_id: str) -> bool:
        return self.pending is not None and call_id in self.pending.call_ids


@dataclass(frozen=True)
class ToolResultReady:
    result: ToolCallResult
    iteration: int


@dataclass(frozen=True)
class RunFinished:
    result: RunResult


LoopEvent: TypeAlias = ContentDelta | ThinkingDelta | ToolCallsProposed | ToolResultReady | RunFinished
ConfirmationCallback: TypeAlias = Callable[[PendingConfirmation], Awaitable[None] | None]


# =============================================================================
# Retry policy
# =============================================================================


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, ProviderError) and error.retryable


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff for retryable provider errors.

    Attributes:
        max_attempts: Attempts per provider call, including the first
        backoff_initial: First retry delay in seconds
        backoff_max: Upper bound for a single delay in seconds
    """

    max_attempts: int = 3
    backoff_initial: float = 0.5
    backoff_max: float = 8.0

    @classmethod
    def from_settings(cls, settings: OrchestrationSettings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_provider_attempts,
            backoff_initial=settings.backoff_initial,
            backoff_max=settings.backoff_max,
        )

    def _wait(self, retry_state: RetryCallState) -> float:
        delay = wait_exponential(multiplier=self.backoff_initial, max=self.backoff_max)(retry_state)
        error = retry_state.outcome.exception() if retry_state.outcome else None
        retry_after = getattr(error, "retry_after", None)
        if retry_after:
            delay = max(delay, retry_after)
        return min(delay, self.backoff_max)

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception(_is_retryable),
            before_sleep=_log_retry,
            reraise=True,
        )


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "provider_retry",
        attempt=retry_state.attempt_number,
        error=str(error),
        error_kind=type(error).__name__,
    )


# =============================================================================
# Orchestrator
# =============================================================================


@dataclass
class _Run:
    agent: Agent
    conversation: Conversation
    run_id: str
    iterations: int = 0
    tool_failures: int = 0
    last_successful_turn: int = -1
    reply: Message | None = None
    log: Any = None

    @property
    def tool_specs(self) -> dict[str, ToolSpec]:
        return {tool.name: tool for tool in self.agent.tools}

    def provider_messages(self) -> list[Message]:
        messages = list(self.conversation)
        if self.agent.system_prompt:
            messages.insert(0, Message.system(self.agent.system_prompt))
        return messages

    def append(self, message: Message) -> None:
        self.conversation.append(message)
        self.last_successful_turn = len(self.conversation) - 1


class Orchestrator:
    """Drives agents through multi-turn runs.

    The orchestrator is stateless between runs and may drive any number of
    runs concurrently; per-run state lives in the run's own generator.
    Calls awaiting confirmation are rejected after ``confirmation_timeout``
    seconds without a decision; None waits indefinitely.
    """

    def __init__(
        self,
        tool_registry: ToolRegistry,
        retry_policy: RetryPolicy | None = None,
        compactor: Compactor | None = None,
        confirmations: ConfirmationBroker | None = None,
        tool_failure_budget: int = 3,
        confirmation_timeout: float | None = 300.0,
    ) -> None:
        self._tools = tool_registry
        self._retry_policy = retry_policy or RetryPolicy()
        self._compactor = compactor or Compactor()
        self.confirmations = confirmations or ConfirmationBroker()
        self._tool_failure_budget = tool_failure_budget
        self._confirmation_timeout = confirmation_timeout

    async def run(
        self,
        agent: Agent,
        conversation: Sequence[Message] | Conversation,
        *,
        run_id: str | None = None,
        on_confirmation: ConfirmationCallback | None = None,
    ) -> RunResult:
        """Run an agent to completion using non-streaming provider calls.

        Args:
            agent: The agent to run
            conversation: Conversation so far; never modified
            run_id: Identifier for the run (generated when omitted)
            on_confirmation: Called with each PendingConfirmation; without it the
                run waits for a decision made through ``confirmations``

        Returns:
            The RunResult; provider and tool failures are reported in it, not raised
        """
        result: RunResult | None = None
        async with aclosing(self.events(agent, conversation, run_id=run_id, streaming=False)) as events:
            async for event in events:
                if isinstance(event, ToolCallsProposed) and event.pending and on_confirmation:
                    outcome = on_confirmation(event.pending)
                    if inspect.isawaitable(outcome):
                        await outcome
                elif isinstance(event, RunFinished):
                    result = event.result
        if result is None:
            raise RuntimeError("Run ended without a RunFinished event")
        return result

    async def events(
        self,
        agent: Agent,
        conversation: Sequence[Message] | Conversation,
        *,
        run_id: str | None = None,
        streaming: bool = True,
    ) -> AsyncIterator[LoopEvent]:
        """Drive one run, yielding loop events; the last event is RunFinished.

        Closing the generator (or cancelling the task iterating it) cancels the
        in-flight provider call and every outstanding tool call. While the run
        is active, every log entry in its context (tool and library logs
        included) carries the run id and agent name.
        """
        run_id = run_id or uuid.uuid4().hex
        bind_run_context(run_id, agent.name)
        try:
            async with aclosing(self._drive(agent, conversation, run_id, streaming)) as events:
                async for event in events:
                    yield event
        finally:
            clear_run_context()

    async def _drive(
        self,
        agent: Agent,
        conversation: Sequence[Message] | Conversation,
        run_id: str,
        streaming: bool,
    ) -> AsyncIterator[LoopEvent]:
        run = _Run(agent=agent, conversation=Conversation(conversation), run_id=run_id)
        run.last_successful_turn = len(run.conversation) - 1
        run.log = logger.bind(run_id=run.run_id, agent=agent.name)
        config = agent.config
        labels = AgentMetricsLabels(agent=agent.name)

        span = tracer.start_span(
            "agent_run",
            attributes={"agent.name": agent.name, "agent.mode": str(config.mode), "run.id": run.run_id},
        )
        state = RunState.FAILED
        truncation_reason: str | None = None
        error: Exception | None = None
        run.log.info("run_started", mode=str(config.mode), messages=len(run.conversation))
        try:
            async with collect_agent_metrics(labels):
                tools = agent.tools if config.uses_tools else ()
                tool_less_turns = 0
                try:
                    while True:
                        if run.iterations >= config.max_iterations:
                            state, truncation_reason = RunState.TRUNCATED, TRUNCATED_MAX_ITERATIONS
                            break
                        await self._maybe_compact(run)
                        run.iterations += 1
                        if streaming:
                            async with aclosing(self._stream_turn(run, tools)) as turn:
                                async for event in turn:
                                    yield event
                        else:
                            run.reply = await self._complete_turn(run, tools)
                        reply = run.reply

                        if not config.uses_tools and reply.tool_calls:
                            # Chat mode never dispatches
                            reply = replace(reply, tool_calls=())

                        if reply.tool_calls:
                            run.append(reply)
                            tool_less_turns = 0
                            async with aclosing(self._dispatch(run, reply.tool_calls)) as dispatch:
                                async for event in dispatch:
                                    yield event
                            continue

                        if not config.autopilot or COMPLETION_MARKER in reply.content:
                            if config.autopilot:
                                reply = replace(reply, content=reply.content.replace(COMPLETION_MARKER, "").strip())
                            run.append(reply)
                            state = RunState.FINISHED
                            break

                        run.append(reply)
                        tool_less_turns += 1
                        if tool_less_turns >= config.max_turns_without_tools:
                            state, truncation_reason = RunState.TRUNCATED, TRUNCATED_MAX_TURNS_WITHOUT_TOOLS
                            break
                        run.append(Message(role=Role.USER, content=AUTOPILOT_NUDGE))
                except Exception as e:
                    error = e
                    state = RunState.FAILED
                    if isinstance(e, OrchestrationError):
                        run.log.warning("run_failed", error=str(e), error_kind=type(e).__name__)
                    else:
                        run.log.exception("run_failed", error=str(e))
                    span.record_exception(e)
                    span.set_status(Status(StatusCode.ERROR, str(e)))
            record_run_outcome(labels, state)
        finally:
            span.set_attribute("run.state", str(state))
            span.set_attribute("run.iterations", run.iterations)
            span.end()

        result = self._result(run, state, truncation_reason, error)
        run.log.info(
            "run_finished",
            state=str(state),
            iterations=run.iterations,
            truncation_reason=truncation_reason,
        )
        yield RunFinished(result)

    @staticmethod
    def _result(run: _Run, state: RunState, truncation_reason: str | None, error: Exception | None) -> RunResult:
        last = run.conversation.last
        message = last if last is not None and last.role is Role.ASSISTANT else None
        return RunResult(
            state=state,
            message=message,
            messages=run.conversation.messages,
            iterations=run.iterations,
            run_id=run.run_id,
            error=to_report(error, run.last_successful_turn) if error is not None else None,
            truncation_reason=truncation_reason,
        )

    # -------------------------------------------------------------------------
    # Provider turns
    # -------------------------------------------------------------------------

    async def _maybe_compact(self, run: _Run) -> None:
        config = run.agent.config
        if not config.enable_auto_compact:
            return
        window = await run.agent.provider.context_window(run.agent.spec.model_id)
        if not self._compactor.needs_compaction(run.provider_messages(), window, config.compact_threshold):
            return
        compacted = self._compactor.compact(run.conversation)
        if compacted is None:
            return
        run.log.info(
            "conversation_compacted",
            before=len(run.conversation),
            after=len(compacted),
            context_window=window,
        )
        run.conversation = compacted
        run.last_successful_turn = len(compacted) - 1

    async def _complete_turn(self, run: _Run, tools: Sequence[ToolSpec]) -> Message:
        agent = run.agent
        messages = run.provider_messages()
        async for attempt in self._retry_policy.retrying():
            with attempt:
                return await agent.provider.complete(agent.spec.model_id, messages, tools, agent.spec.sampling)
        raise RuntimeError("Provider retry loop ended without a reply")

    async def _stream_turn(self, run: _Run, tools: Sequence[ToolSpec]) -> AsyncIterator[LoopEvent]:
        """Stream one provider call; the assembled reply is left in run.reply.

        Retries apply only until the first fragment arrives.
        """
        agent = run.agent
        provider_id = agent.spec.provider_id
        messages = run.provider_messages()
        stream = None
        fragment = None
        async for attempt in self._retry_policy.retrying():
            with attempt:
                stream = agent.provider.stream(agent.spec.model_id, messages, tools, agent.spec.sampling)
                try:
                    fragment = await anext(stream)
                except StopAsyncIteration:
                    raise ProviderRejected(provider_id, "Stream ended without a final fragment") from None
                except BaseException:
                    await stream.aclose()
                    raise

        content: list[str] = []
        async with aclosing(stream):
            while True:
                if fragment.reasoning:
                    yield ThinkingDelta(fragment.reasoning, run.iterations)
                if fragment.delta:
                    content.append(fragment.delta)
                    yield ContentDelta(fragment.delta, run.iterations)
                if fragment.done:
                    break
                try:
                    fragment = await anext(stream)
                except StopAsyncIteration:
                    raise ProviderRejected(provider_id, "Stream ended without a final fragment") from None
        run.reply = fragment.message or Message.assistant("".join(content))

    # -------------------------------------------------------------------------
    # Tool dispatch
    # -------------------------------------------------------------------------

    async def _dispatch(self, run: _Run, requests: Sequence[ToolCallRequest]) -> AsyncIterator[LoopEvent]:
        config = run.agent.config
        requests = tuple(requests)
        needs_confirmation = [
            request
            for request in requests
            if config.require_confirmation and request.name not in config.readonly_tools
        ]
        pending = self.confirmations.open(run.run_id, needs_confirmation) if needs_confirmation else None
        rejected: dict[str, str] = {}
        try:
            yield ToolCallsProposed(requests, run.iterations, pending)
            if pending is not None:
                run.log.info("tool_confirmation_pending", calls=len(needs_confirmation))
                try:
                    async with asyncio.timeout(self._confirmation_timeout):
                        decision = await pending.wait()
                except TimeoutError:
                    run.log.warning("tool_confirmation_timed_out", timeout=self._confirmation_timeout)
                    if not pending.resolved:
                        pending.reject(CONFIRMATION_TIMED_OUT)
                    decision = await pending.wait()
                rejected = {r.id: decision.reason for r in needs_confirmation if r.id not in decision.approved}
        finally:
            if pending is not None:
                self.confirmations.close(run.run_id, pending)

        results: list[ToolCallResult | None] = [None] * len(requests)
        tasks: dict[int, asyncio.Task[ToolCallResult]] = {}
        async with asyncio.TaskGroup() as tg:
            for index, request in enumerate(requests):
                failure = self._precheck(run, request, rejected)
                if failure is not None:
                    results[index] = failure
                else:
                    tasks[index] = tg.create_task(self._invoke(run, request))
        for index, task in tasks.items():
            results[index] = task.result()

        completed = [result for result in results if result is not None]
        run.append(Message.tool(completed))

        failed = [r for r in completed if not r.ok and r.error_kind != ToolRejected.__name__]
        run.tool_failures += len(failed)
        for result in completed:
            yield ToolResultReady(result, run.iterations)
        if failed and run.tool_failures > self._tool_failure_budget:
            raise ToolFailureBudgetExceeded(run.tool_failures, self._tool_failure_budget, failed[-1].tool_name)

    def _precheck(
        self,
        run: _Run,
        request: ToolCallRequest,
        rejected: dict[str, str],
    ) -> ToolCallResult | None:
        if request.id in rejected:
            return ToolCallResult.failure(request, ToolRejected(request.name, rejected[request.id]))
        spec = run.tool_specs.get(request.name)
        if spec is None or request.name not in self._tools:
            return ToolCallResult.failure(request, UnknownTool(request.name))
        if spec.is_extension and not run.agent.config.enable_extensions:
            return ToolCallResult.failure(request, ExtensionsDisabled(request.name))
        return None

    async def _invoke(self, run: _Run, request: ToolCallRequest) -> ToolCallResult:
        spec = run.tool_specs[request.name]
        timeout = run.agent.config.extension_timeout if spec.is_extension else None
        return await self._tools.invoke(request, timeout=timeout, agent=run.agent.name)
