"""
Decision loop: one decision cycle, single-shot and autonomous streaming.

A decision cycle is: collect provider fragments -> render the situation
template -> stream the model's reasoning and tool calls -> invoke tools ->
evaluate -> record the Decision. Failed tool results are fed back into the
next model round-trip within the same cycle (up to MAX_REASONING_STEPS).

Both entry points are async generators of StreamChunk: lazy, finite and not
restartable. The loop only suspends at chunk boundaries and before each
autonomous cycle; pausing or ending a session takes effect at the next
pre-cycle check and never interrupts a tool call or model round-trip.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

from playagent.cognition.evaluators import EvaluatorPipeline
from playagent.cognition.executor import ModelClient, ModelEvent, ModelRequest, TextDelta
from playagent.cognition.providers import ProviderFragment, ProviderPipeline
from playagent.cognition.renderers import TemplateEngine
from playagent.config import Config
from playagent.errors import ModelInvocationFailure, PlayAgentError, RuntimeFatal, SessionNotFound
from playagent.logging_utils import (
    LOG_TAG_ERROR,
    LOG_TAG_INFO,
    LOG_TAG_SUCCESS,
    log_error,
    log_info,
    log_success,
)
from playagent.schemas import (
    ActionDescriptor,
    ChunkType,
    Decision,
    ErrorPayload,
    ProviderContextPayload,
    StreamChunk,
    ThoughtPayload,
    ToolCallPayload,
    ToolCallRecord,
    ToolCallRequest,
    ToolResult,
    ToolResultPayload,
)
from playagent.sessions import Session, SessionManager
from playagent.tools import ToolInvoker


class CancellationToken:
    """Cooperative stop flag checked before each cycle."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class _CycleOutcome:
    decision: Optional[Decision] = None
    error: Optional[PlayAgentError] = None
    error_kind: str = ""


@dataclass
class _StepState:
    records: List[ToolCallRecord] = field(default_factory=list)
    rationale: List[str] = field(default_factory=list)
    feedback: List[ToolResult] = field(default_factory=list)


def _feedback_text(results: List[ToolResult]) -> str:
    if not results:
        return ""
    lines = ["Results of your previous tool calls this turn:"]
    lines.extend(f"- {result.summary()}" for result in results)
    lines.append("Adjust your plan; do not repeat calls that failed for the same reason.")
    return "\n".join(lines)


class DecisionLoop:
    """Run decision cycles for sessions owned by a SessionManager."""

    def __init__(
        self,
        manager: SessionManager,
        model: ModelClient,
        invoker: ToolInvoker,
        *,
        providers: Optional[ProviderPipeline] = None,
        templates: Optional[TemplateEngine] = None,
        evaluators: Optional[EvaluatorPipeline] = None,
        max_reasoning_steps: Optional[int] = None,
        model_timeout: Optional[float] = None,
    ) -> None:
        self.manager = manager
        self.model = model
        self.invoker = invoker
        self.providers = providers or ProviderPipeline()
        self.templates = templates or TemplateEngine()
        self.evaluators = evaluators or EvaluatorPipeline()
        self.max_reasoning_steps = max(max_reasoning_steps or Config.MAX_REASONING_STEPS, 1)
        self.model_timeout = model_timeout or Config.LLM_TIMEOUT_SECONDS

    # -- chunk helpers ------------------------------------------------------

    @staticmethod
    def _chunk(
        session: Session,
        chunk_type: ChunkType,
        *,
        cycle: int = 0,
        content: str = "",
        data: Optional[Dict[str, Any]] = None,
        final: bool = False,
    ) -> StreamChunk:
        session.touch()
        return StreamChunk(
            type=chunk_type,
            session_id=session.id,
            cycle=cycle,
            content=content,
            data=data or {},
            final=final,
        )

    def _update_chunk(self, session: Session, reason: str, *, cycle: int, final: bool, **details: Any) -> StreamChunk:
        payload = session.session_update(reason, **details)
        session.event_log.append(payload, source="decision_loop")
        data = {
            "status": payload.status.value,
            "action_count": payload.action_count,
            "total_reward": payload.total_reward,
            "reason": reason,
            **details,
        }
        return self._chunk(session, ChunkType.SESSION_UPDATE, cycle=cycle, content=reason, data=data, final=final)

    def _error_chunk(
        self,
        session: Session,
        error: BaseException,
        error_kind: str,
        *,
        cycle: int,
        final: bool,
        component: str = "decision_loop",
    ) -> StreamChunk:
        session.event_log.append(
            ErrorPayload(error_kind=error_kind, component=component, message=str(error)),
            source=component,
        )
        return self._chunk(
            session,
            ChunkType.ERROR,
            cycle=cycle,
            content=str(error),
            data={"error_kind": error_kind, "component": component},
            final=final,
        )

    def _current(self, session_id: str) -> tuple[Optional[Session], str]:
        """Re-read a session; the reason is empty only when it may run a cycle."""

        try:
            session = self.manager.get(session_id)
        except SessionNotFound:
            return None, "ended"
        if not session.is_running():
            return session, session.status.value
        return session, ""

    @staticmethod
    def _detached_error(session_id: str, error: BaseException, error_kind: str) -> StreamChunk:
        return StreamChunk(
            type=ChunkType.ERROR,
            session_id=session_id,
            content=str(error),
            data={"error_kind": error_kind, "component": "decision_loop"},
            final=True,
        )

    # -- public entry points ------------------------------------------------

    async def decide(
        self,
        session_id: str,
        *,
        token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Run exactly one decision cycle and stream its chunks."""

        try:
            session = self.manager.get(session_id)
        except SessionNotFound as exc:
            yield self._detached_error(session_id, exc, "session_not_found")
            return

        # Cancellation is only observed before a cycle starts.
        if token is not None and token.cancelled:
            yield self._update_chunk(session, "cancelled", cycle=0, final=True)
            return

        if not session.is_running():
            error = PlayAgentError(f"Session '{session.id}' is {session.status.value}; resume it before deciding")
            yield self._error_chunk(session, error, "session_not_running", cycle=0, final=True)
            return

        try:
            async with session.cycle_lock:
                # Another cycle may have held the lock while this session was paused or ended.
                current, stop_reason = self._current(session_id)
                if current is None:
                    yield self._detached_error(session_id, SessionNotFound(session_id), "session_not_found")
                    return
                if stop_reason:
                    error = PlayAgentError(f"Session '{session.id}' is {stop_reason}; resume it before deciding")
                    yield self._error_chunk(session, error, "session_not_running", cycle=0, final=True)
                    return

                cycle = session.action_count + 1
                outcome = _CycleOutcome()
                async for chunk in self._run_cycle(session, cycle, outcome):
                    yield chunk

                if outcome.error is not None:
                    yield self._error_chunk(session, outcome.error, outcome.error_kind, cycle=cycle, final=True)
                    return

                decision = outcome.decision
                yield self._update_chunk(
                    session,
                    "decision_complete",
                    cycle=cycle,
                    final=True,
                    reward_delta=decision.reward_delta,
                    action=decision.action.describe() if decision.action else None,
                )
        except Exception as exc:
            fatal = RuntimeFatal(session_id=session.id, cause=exc)
            log_error(f"{LOG_TAG_ERROR} {fatal}")
            yield self._error_chunk(session, fatal, "runtime_fatal", cycle=session.action_count + 1, final=True)

    async def run_autonomous(
        self,
        session_id: str,
        max_steps: Optional[int] = None,
        *,
        token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Run up to ``min(max_steps, max_autonomous_actions)`` cycles."""

        try:
            session = self.manager.get(session_id)
        except SessionNotFound as exc:
            yield self._detached_error(session_id, exc, "session_not_found")
            return

        # max_steps can lower the configured cap but never raise it.
        cap = session.config.max_autonomous_actions
        limit = cap if max_steps is None else max(0, min(max_steps, cap))
        completed = 0
        stop_reason = "max_steps_reached"

        try:
            if session.is_running():
                log_info(f"{LOG_TAG_INFO} Autonomous run for {session.id}: up to {limit} step(s)")
                yield self._thought(session, 0, f"Starting autonomous play: up to {limit} action(s).")

            for step in range(1, limit + 1):
                # Status is re-read before every cycle, never cached across steps.
                if token is not None and token.cancelled:
                    stop_reason = "cancelled"
                    break
                current, reason = self._current(session_id)
                if reason:
                    stop_reason = reason
                    break
                session = current

                async with session.cycle_lock:
                    # Pause or end may have landed while waiting on another stream's cycle.
                    _, reason = self._current(session_id)
                    if reason:
                        stop_reason = reason
                        break
                    cycle = session.action_count + 1
                    yield self._thought(session, cycle, f"--- Step {step}/{limit} ---")
                    outcome = _CycleOutcome()
                    async for chunk in self._run_cycle(session, cycle, outcome):
                        yield chunk

                    # A failed cycle is reported and the run moves on; it does not count as completed.
                    if outcome.error is not None:
                        yield self._error_chunk(session, outcome.error, outcome.error_kind, cycle=cycle, final=False)
                        continue

                    completed += 1
                    decision = outcome.decision
                    yield self._update_chunk(
                        session,
                        "decision_complete",
                        cycle=cycle,
                        final=False,
                        step=step,
                        reward_delta=decision.reward_delta,
                        action=decision.action.describe() if decision.action else None,
                    )
        except Exception as exc:
            fatal = RuntimeFatal(session_id=session.id, cause=exc)
            log_error(f"{LOG_TAG_ERROR} {fatal}")
            yield self._error_chunk(session, fatal, "runtime_fatal", cycle=session.action_count + 1, final=True)
            return

        log_success(f"{LOG_TAG_SUCCESS} Autonomous run for {session.id} finished: {completed} cycle(s), {stop_reason}")
        yield self._update_chunk(
            session,
            "autonomous_complete",
            cycle=session.action_count,
            final=True,
            cycles_completed=completed,
            stop_reason=stop_reason,
        )

    # -- cycle ----------------------------------------------------------------

    def _thought(self, session: Session, cycle: int, text: str) -> StreamChunk:
        session.event_log.append(ThoughtPayload(content=text, cycle=cycle), source="decision_loop")
        return self._chunk(session, ChunkType.THOUGHT, cycle=cycle, content=text)

    async def _bounded(self, events: AsyncIterator[ModelEvent]) -> AsyncIterator[ModelEvent]:
        """Re-yield model events, failing if any single event takes too long."""

        iterator = events.__aiter__()
        try:
            while True:
                try:
                    event = await asyncio.wait_for(iterator.__anext__(), timeout=self.model_timeout)
                except StopAsyncIteration:
                    return
                yield event
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _run_cycle(self, session: Session, cycle: int, outcome: _CycleOutcome) -> AsyncIterator[StreamChunk]:
        # Evaluators diff against the state from before any tool in this cycle ran.
        previous_state = session.game_state.model_copy(deep=True)
        config = session.config

        # Fixed provider order; a failing provider contributes an empty fragment.
        fragments: List[ProviderFragment] = self.providers.collect(session)
        for fragment in fragments:
            session.event_log.append(
                ProviderContextPayload(provider=fragment.name, content=fragment.text),
                source=fragment.name,
            )
            yield self._chunk(
                session,
                ChunkType.PROVIDER_CONTEXT,
                cycle=cycle,
                content=fragment.text,
                data={"provider": fragment.name},
            )

        steps = _StepState()
        template_name = ""
        # Each step is one model round-trip; failed tool results feed the next one.
        for step in range(1, self.max_reasoning_steps + 1):
            rendered = self.templates.render(session, fragments, tool_feedback=_feedback_text(steps.feedback))
            template_name = template_name or rendered.template
            request = ModelRequest(
                system=rendered.system,
                user=rendered.user,
                model=config.model,
                temperature=config.temperature,
                max_tokens=config.max_tokens,
                situation=rendered.situation,
                game_state=session.game_state.model_copy(deep=True),
                personality=config.personality,
                streaming=config.streaming,
                cycle=cycle,
                step=step,
                recent_actions=tuple(
                    d.action for d in session.history_tail(Config.HISTORY_WINDOW) if d.action is not None
                ),
                feedback=tuple(steps.feedback),
            )

            calls: List[ToolCallRequest] = []
            try:
                async for event in self._bounded(self.model.stream(request)):
                    if isinstance(event, TextDelta):
                        if not event.text:
                            continue
                        steps.rationale.append(event.text)
                        session.event_log.append(ThoughtPayload(content=event.text, cycle=cycle), source="model")
                        yield self._chunk(session, ChunkType.THOUGHT, cycle=cycle, content=event.text)
                    else:
                        calls.append(event)
            except Exception as exc:
                # Aborts this cycle only; nothing is recorded.
                failure = ModelInvocationFailure(model=config.model, cause=exc)
                log_error(f"{LOG_TAG_ERROR} {failure}")
                outcome.error = failure
                outcome.error_kind = "model_invocation_failure"
                return

            # No tool calls: the model is done for this cycle.
            if not calls:
                break

            steps.feedback = []
            for call in calls:
                session.event_log.append(
                    ToolCallPayload(tool=call.tool, arguments=call.arguments, cycle=cycle),
                    source="tool_invoker",
                )
                yield self._chunk(
                    session,
                    ChunkType.TOOL_CALL,
                    cycle=cycle,
                    content=call.tool,
                    data={"tool": call.tool, "arguments": call.arguments},
                )

                invocation = await self.invoker.invoke(
                    call.tool,
                    call.arguments,
                    config.tool_timeout,
                    state=session.game_state,
                )
                # Only a successful call hands back a new state.
                if invocation.state is not None:
                    session.replace_game_state(invocation.state)
                result = invocation.result
                steps.records.append(ToolCallRecord(request=call, result=result))
                steps.feedback.append(result)

                session.event_log.append(
                    ToolResultPayload(
                        tool=result.tool,
                        ok=result.ok,
                        value=result.value,
                        reward_hint=result.reward_hint,
                        error_kind=result.error_kind.value if result.error_kind else None,
                        message=result.message,
                        cycle=cycle,
                    ),
                    source="tool_invoker",
                )
                yield self._chunk(
                    session,
                    ChunkType.TOOL_RESULT,
                    cycle=cycle,
                    content=result.summary(),
                    data={**result.model_dump(mode="json"), "elapsed": round(invocation.elapsed, 3)},
                )

            if all(result.ok for result in steps.feedback):
                break

        # The first successful call is the action; otherwise the first attempted one.
        primary = next((r for r in steps.records if r.result.ok), steps.records[0] if steps.records else None)
        action = (
            ActionDescriptor(tool=primary.request.tool, arguments=primary.request.arguments)
            if primary is not None
            else None
        )
        draft = Decision(
            cycle=cycle,
            action=action,
            rationale=" ".join(steps.rationale),
            tool_calls=tuple(steps.records),
            template=template_name or "generic",
        )

        # Reward and memories are committed before the Decision lands in history.
        evaluation = self.evaluators.evaluate(session, draft, previous_state)
        decision = draft.model_copy(update={"reward_delta": evaluation.reward_delta})
        self.evaluators.commit(session, evaluation)
        session.record_decision(decision)
        outcome.decision = decision


class ChunkChannel:
    """Bounded channel between a producer task running the loop and a consumer.

    Closing the channel cancels the token, so the producer stops before its
    next cycle; chunks produced after closing are dropped.
    """

    _END = object()

    def __init__(
        self,
        source: AsyncIterator[StreamChunk],
        token: CancellationToken,
        *,
        maxsize: Optional[int] = None,
    ) -> None:
        self._source = source
        self.token = token
        self._queue: asyncio.Queue = asyncio.Queue(maxsize or Config.STREAM_BUFFER_SIZE)
        self._closed = False
        self._task: Optional[asyncio.Task] = None

    def start(self) -> "ChunkChannel":
        if self._task is None:
            self._task = asyncio.create_task(self._pump())
        return self

    async def _pump(self) -> None:
        try:
            # put() blocks on a full queue, pausing the producer at a chunk boundary.
            async for chunk in self._source:
                if not self._closed:
                    await self._queue.put(chunk)
        except Exception as exc:
            if not self._closed:
                await self._queue.put(exc)
        finally:
            if not self._closed:
                await self._queue.put(self._END)

    def __aiter__(self) -> "ChunkChannel":
        return self

    async def __anext__(self) -> StreamChunk:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is self._END:
            self._closed = True
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            self._closed = True
            raise item
        return item

    async def aclose(self) -> None:
        self._closed = True
        self.token.cancel()
        # Draining unblocks a producer waiting on put().
        while not self._queue.empty():
            self._queue.get_nowait()

    async def wait_closed(self) -> None:
        """Wait for the producer to finish its in-flight cycle."""
        if self._task is not None:
            await self._task

    async def __aenter__(self) -> "ChunkChannel":
        return self.start()

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


__all__ = ["CancellationToken", "ChunkChannel", "DecisionLoop"]
