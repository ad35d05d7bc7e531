"""
AgentRuntime: the collaborator-facing boundary of playagent.

Fully decoupled: the model client, game collaborator, persistence strategy
and session registry are all injected. The runtime wires them into a
SessionManager and a DecisionLoop and exposes the five external operations:

1. create_session(config, game_state) -> session id
2. get_session_snapshot(session_id) -> SessionSnapshot
3. control_session(session_id, pause | resume | end) -> new status
4. stream_decision(session_id, single | autonomous, max_steps) -> chunks
5. export_event_log(session_id, event_types, limit) -> XML document

Used as an async context manager, the runtime also runs a background sweeper
that expires idle sessions, and archives every ended, expired or shut-down
session through the persistence strategy (if one was given).
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Iterable, List, Optional

from playagent.cognition.evaluators import EvaluatorPipeline
from playagent.cognition.executor import ModelClient, RuleBasedModelClient
from playagent.cognition.providers import ProviderPipeline
from playagent.cognition.renderers import TemplateEngine
from playagent.config import Config
from playagent.game import GameCollaborator, SimulatedGame
from playagent.logging_utils import LOG_TAG_ERROR, LOG_TAG_INFO, log_error, log_info
from playagent.loop import CancellationToken, ChunkChannel, DecisionLoop
from playagent.persistence import PersistenceStrategy, SessionArchive
from playagent.schemas import (
    ControlAction,
    DecisionMode,
    EventType,
    SessionSnapshot,
    SessionStatistics,
    SessionStatus,
    StreamChunk,
)
from playagent.sessions import ConfigInput, Session, SessionManager, SessionRegistry, StateInput
from playagent.tools import ToolInvoker


class AgentRuntime:
    """Owns the session registry and drives decision loops for collaborators."""

    def __init__(
        self,
        model_client: Optional[ModelClient] = None,
        *,
        game: Optional[GameCollaborator] = None,
        persistence: Optional[PersistenceStrategy] = None,
        registry: Optional[SessionRegistry] = None,
        memory_capacity: Optional[int] = None,
        idle_seconds: Optional[float] = None,
        sweep_interval: Optional[float] = None,
        providers: Optional[ProviderPipeline] = None,
        templates: Optional[TemplateEngine] = None,
        evaluators: Optional[EvaluatorPipeline] = None,
        max_reasoning_steps: Optional[int] = None,
        model_timeout: Optional[float] = None,
    ) -> None:
        """Initialize the runtime with all collaborators injected.

        Args:
            model_client: Model used for decisions (defaults to the
                deterministic RuleBasedModelClient; pass LLMModelClient for
                real LLM play)
            game: Game collaborator receiving tool calls (defaults to
                SimulatedGame)
            persistence: Optional archive for finished sessions
            registry: Session registry (a fresh one is created if omitted)
            memory_capacity: Per-session memory bound (Config.MEMORY_CAPACITY)
            idle_seconds: Idle threshold before a session expires
                (Config.SESSION_IDLE_SECONDS)
            sweep_interval: Seconds between background sweeps
                (Config.SWEEP_INTERVAL_SECONDS); 0 disables the sweeper
            providers, templates, evaluators: Optional pipeline overrides
            max_reasoning_steps: Model round-trips allowed per cycle
            model_timeout: Upper bound on waiting for one model event
        """
        self.model_client = model_client or RuleBasedModelClient()
        self.game = game or SimulatedGame()
        self.persistence = persistence
        self.registry = registry or SessionRegistry()
        self.manager = SessionManager(
            self.registry,
            memory_capacity=memory_capacity,
            idle_seconds=idle_seconds,
        )
        self.loop = DecisionLoop(
            self.manager,
            self.model_client,
            ToolInvoker(self.game),
            providers=providers,
            templates=templates,
            evaluators=evaluators,
            max_reasoning_steps=max_reasoning_steps,
            model_timeout=model_timeout,
        )
        self.sweep_interval = Config.SWEEP_INTERVAL_SECONDS if sweep_interval is None else sweep_interval
        self._sweeper: Optional[asyncio.Task] = None
        self._started = False

    # -- lifecycle ------------------------------------------------------------

    async def start(self) -> "AgentRuntime":
        if self._started:
            return self
        if self.persistence is not None:
            await self.persistence.initialize()
        if self.sweep_interval > 0:
            self._sweeper = asyncio.create_task(self._sweep_forever())
        self._started = True
        mode = "LLM" if self.model_client.uses_llm() else "rule-based"
        log_info(f"{LOG_TAG_INFO} Agent runtime started ({type(self.model_client).__name__}, {mode})")
        return self

    async def close(self) -> None:
        """Stop the sweeper, end every live session and archive it."""

        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None

        for session in self.manager.close():
            await self._retire(session)

        if self.persistence is not None:
            await self.persistence.close()
        self._started = False
        log_info(f"{LOG_TAG_INFO} Agent runtime closed")

    async def __aenter__(self) -> "AgentRuntime":
        return await self.start()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            await self.sweep_expired()

    async def sweep_expired(self, max_idle: Optional[float] = None) -> List[str]:
        """Expire idle sessions now; returns the ids that were removed."""

        expired = self.manager.sweep_expired(max_idle)
        for session in expired:
            await self._retire(session)
        return [session.id for session in expired]

    async def _retire(self, session: Session) -> None:
        try:
            self.game.on_session_end(session.id, session.game_state)
        except Exception as exc:
            log_error(f"{LOG_TAG_ERROR} Game end hook failed for session {session.id}: {exc}")
        if self.persistence is None:
            return
        archive = SessionArchive(
            snapshot=session.snapshot(history_tail=session.action_count),
            events=session.event_log.events(),
            memories=session.memory.all(),
            statistics=session.statistics(),
        )
        try:
            await self.persistence.save_session(archive)
        except Exception as exc:
            log_error(f"{LOG_TAG_ERROR} Failed to archive session {session.id}: {exc}")

    # -- external operations --------------------------------------------------

    def create_session(self, config: Optional[ConfigInput], game_state: Optional[StateInput]) -> str:
        """Create a Running session. Raises ConfigInvalid on bad input."""

        session_id = self.manager.create(config, game_state)
        session = self.manager.get(session_id)
        self.game.on_session_start(session_id, session.game_state.model_copy(deep=True))
        return session_id

    def get_session_snapshot(self, session_id: str, history_tail: Optional[int] = None) -> SessionSnapshot:
        return self.manager.get(session_id).snapshot(history_tail)

    async def control_session(self, session_id: str, action: ControlAction | str) -> SessionStatus:
        """Apply pause, resume or end and return the session's new status.

        Raises:
            SessionNotFound: unknown or already-ended session
            ValueError: unknown action
        """
        action = ControlAction(action)
        if action is ControlAction.PAUSE:
            return self.manager.pause(session_id)
        if action is ControlAction.RESUME:
            return self.manager.resume(session_id)

        session = self.manager.end(session_id)
        await self._retire(session)
        return session.status

    def stream_decision(
        self,
        session_id: str,
        mode: DecisionMode | str = DecisionMode.SINGLE,
        max_steps: Optional[int] = None,
        *,
        token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Return the chunk stream for one decision or an autonomous run.

        The session id is checked eagerly, so an unknown id raises
        SessionNotFound here rather than inside the stream.
        """
        self.manager.get(session_id)
        if DecisionMode(mode) is DecisionMode.SINGLE:
            return self.loop.decide(session_id, token=token)
        return self.loop.run_autonomous(session_id, max_steps, token=token)

    def open_stream(
        self,
        session_id: str,
        mode: DecisionMode | str = DecisionMode.SINGLE,
        max_steps: Optional[int] = None,
        *,
        maxsize: Optional[int] = None,
    ) -> ChunkChannel:
        """Run the decision stream on its own task behind a bounded channel.

        Closing the channel stops the run before its next cycle.
        """
        token = CancellationToken()
        source = self.stream_decision(session_id, mode, max_steps, token=token)
        return ChunkChannel(source, token, maxsize=maxsize).start()

    def export_event_log(
        self,
        session_id: str,
        event_types: Optional[Iterable[EventType | str]] = None,
        limit: Optional[int] = None,
    ) -> str:
        return self.manager.get(session_id).event_log.export_xml(event_types=event_types, limit=limit)

    # -- extras -----------------------------------------------------------------

    def update_game_state(self, session_id: str, game_state: StateInput) -> None:
        self.manager.update_game_state(session_id, game_state)

    def session_statistics(self, session_id: str) -> SessionStatistics:
        return self.manager.statistics(session_id)

    def list_sessions(self) -> List[str]:
        return self.manager.list_sessions()

    async def load_archive(self, session_id: str) -> Optional[SessionArchive]:
        if self.persistence is None:
            return None
        return await self.persistence.load_session(session_id)


__all__ = ["AgentRuntime"]
