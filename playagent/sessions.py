"""
Session state, the session registry, and lifecycle management.

A Session owns everything about one running agent: its immutable config, a
private GameState, the event log, the memory store, cumulative reward and
action history. SessionManager is the only way to create, look up, pause,
resume, end or expire sessions; the registry it uses is injected so its
lifetime is controlled by whoever builds the runtime.

Locking:
- ``Session.cycle_lock`` (asyncio) is held for the duration of a decision
  cycle, so one session never runs two cycles at once.
- A short internal state lock guards status, game state, history and reward
  writes. It is never held across an ``await``, so pause/end can always get in
  between two stream chunks.
"""

from __future__ import annotations

import asyncio
import threading
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from playagent.config import Config
from playagent.errors import ConfigInvalid, SessionNotFound
from playagent.events import EventLog
from playagent.logging_utils import LOG_TAG_INFO, log_info
from playagent.memory import MemoryStore
from playagent.schemas import (
    AgentConfig,
    Decision,
    GameState,
    InitPayload,
    SessionSnapshot,
    SessionStatistics,
    SessionStatus,
    SessionUpdatePayload,
    new_id,
    utc_now,
)

ALLOWED_TRANSITIONS: Dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.IDLE: frozenset({SessionStatus.RUNNING, SessionStatus.ENDED}),
    SessionStatus.RUNNING: frozenset({SessionStatus.PAUSED, SessionStatus.ENDED}),
    SessionStatus.PAUSED: frozenset({SessionStatus.RUNNING, SessionStatus.ENDED}),
    SessionStatus.ENDED: frozenset(),
}


class Session:
    """One agent bound to one game state and configuration."""

    def __init__(
        self,
        config: AgentConfig,
        game_state: GameState,
        *,
        session_id: Optional[str] = None,
        memory_capacity: Optional[int] = None,
    ) -> None:
        self.id = session_id or new_id()
        self.config = config
        # Private copy; callers never share a GameState with the session.
        self._game_state = game_state.model_copy(deep=True)
        self.status = SessionStatus.IDLE
        self.event_log = EventLog(self.id)
        self.memory = MemoryStore(memory_capacity)
        self.total_reward = 0.0
        self._history: List[Decision] = []
        self.created_at = utc_now()
        self.last_activity_at = self.created_at
        # Held for a whole decision cycle.
        self.cycle_lock = asyncio.Lock()
        # Guards mutable session fields; never held across an await.
        self._state_lock = threading.RLock()

    # -- state ------------------------------------------------------------

    @property
    def game_state(self) -> GameState:
        return self._game_state

    def replace_game_state(self, state: GameState) -> None:
        with self._state_lock:
            self._game_state = state.model_copy(deep=True)
            self.touch()

    def transition(self, target: SessionStatus) -> bool:
        """Move to ``target``. Returns False when already there."""

        with self._state_lock:
            if self.status is target:
                return False
            # Ended is terminal; ALLOWED_TRANSITIONS has no way out of it.
            if target not in ALLOWED_TRANSITIONS[self.status]:
                raise ValueError(f"Invalid session transition {self.status.value} -> {target.value}")
            self.status = target
            self.touch()
            return True

    def is_running(self) -> bool:
        return self.status is SessionStatus.RUNNING

    def touch(self) -> None:
        self.last_activity_at = utc_now()

    # -- history and reward -------------------------------------------------

    def record_decision(self, decision: Decision) -> None:
        with self._state_lock:
            self._history.append(decision)
            self.touch()

    def add_reward(self, delta: float) -> None:
        with self._state_lock:
            self.total_reward += delta

    @property
    def action_count(self) -> int:
        return len(self._history)

    @property
    def history(self) -> List[Decision]:
        return list(self._history)

    def history_tail(self, n: int) -> List[Decision]:
        if n <= 0:
            return []
        # Slice copy; later decisions do not show up in the returned list.
        return self._history[-n:]

    # -- reporting --------------------------------------------------------

    def session_update(self, reason: str, **details: Any) -> SessionUpdatePayload:
        return SessionUpdatePayload(
            status=self.status,
            reason=reason,
            action_count=self.action_count,
            total_reward=round(self.total_reward, 4),  # float noise from many small deltas
            details=details,
        )

    def snapshot(self, history_tail: Optional[int] = None) -> SessionSnapshot:
        tail = Config.SNAPSHOT_HISTORY_TAIL if history_tail is None else history_tail
        with self._state_lock:
            return SessionSnapshot(
                session_id=self.id,
                agent_id=self.config.agent_id,
                status=self.status,
                game_state=self._game_state.model_copy(deep=True),
                action_history=self.history_tail(tail),
                action_count=self.action_count,
                total_reward=self.total_reward,
                event_log_size=len(self.event_log),
                memory_size=len(self.memory),
                created_at=self.created_at,
                last_activity_at=self.last_activity_at,
            )

    def statistics(self, now: Optional[datetime] = None) -> SessionStatistics:
        total = self.action_count
        duration = ((now or utc_now()) - self.created_at).total_seconds()
        successes = sum(1 for decision in self._history if decision.succeeded)
        return SessionStatistics(
            total_actions=total,
            total_reward=self.total_reward,
            average_reward=self.total_reward / total if total else 0.0,
            duration_seconds=duration,
            actions_per_minute=total / (duration / 60.0) if duration > 0 else 0.0,
            success_rate=successes / total if total else 0.0,
        )


class SessionRegistry:
    """Thread-safe map of live sessions.

    Built at process start and closed at shutdown; closing returns the
    sessions that were still live so the owner can end them.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def add(self, session: Session) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("Session registry is closed")
            if session.id in self._sessions:
                raise ValueError(f"Session id '{session.id}' already registered")
            self._sessions[session.id] = session

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.pop(session_id, None)

    def sessions(self) -> List[Session]:
        with self._lock:
            return list(self._sessions.values())

    def close(self) -> List[Session]:
        with self._lock:
            self._closed = True
            remaining = list(self._sessions.values())
            self._sessions.clear()
            return remaining

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions


ConfigInput = Union[AgentConfig, Mapping[str, Any]]
StateInput = Union[GameState, Mapping[str, Any]]


class SessionManager:
    """Create, look up and drive the lifecycle of sessions."""

    def __init__(
        self,
        registry: SessionRegistry,
        *,
        memory_capacity: Optional[int] = None,
        idle_seconds: Optional[float] = None,
    ) -> None:
        self.registry = registry
        self.memory_capacity = memory_capacity
        self.idle_seconds = Config.SESSION_IDLE_SECONDS if idle_seconds is None else idle_seconds

    def create(self, config: Optional[ConfigInput], initial_state: Optional[StateInput]) -> str:
        agent_config, game_state = self._validate(config, initial_state)
        session = Session(agent_config, game_state, memory_capacity=self.memory_capacity)
        personality = agent_config.personality
        session.event_log.append(
            InitPayload(
                agent_id=agent_config.agent_id,
                agent_name=personality.name,
                play_style=personality.play_style.value,
                model=agent_config.model,
                environment=game_state.environment,
            ),
            source="session_manager",
        )
        # Init is always the first event of a session log.
        session.transition(SessionStatus.RUNNING)
        self.registry.add(session)
        log_info(f"{LOG_TAG_INFO} Session {session.id} created for {personality.name}")
        return session.id

    @staticmethod
    def _validate(config: Optional[ConfigInput], state: Optional[StateInput]) -> tuple[AgentConfig, GameState]:
        issues: List[str] = []
        if config is None:
            issues.append("config: required")
        if state is None:
            issues.append("game_state: required")
        if issues:
            raise ConfigInvalid(issues=issues)

        # Both blocks are validated before raising; their issues are combined.
        agent_config: Optional[AgentConfig] = None
        game_state: Optional[GameState] = None
        try:
            agent_config = config if isinstance(config, AgentConfig) else AgentConfig.model_validate(config)
        except ValidationError as exc:
            issues.extend(_issues("config", exc))
        try:
            game_state = state if isinstance(state, GameState) else GameState.model_validate(state)
        except ValidationError as exc:
            issues.extend(_issues("game_state", exc))

        if issues or agent_config is None or game_state is None:
            raise ConfigInvalid(issues=issues or ["invalid input"])
        return agent_config, game_state

    def get(self, session_id: str) -> Session:
        session = self.registry.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def list_sessions(self) -> List[str]:
        return [session.id for session in self.registry.sessions()]

    def update_game_state(self, session_id: str, new_state: StateInput) -> None:
        session = self.get(session_id)
        try:
            state = new_state if isinstance(new_state, GameState) else GameState.model_validate(new_state)
        except ValidationError as exc:
            raise ConfigInvalid(issues=_issues("game_state", exc)) from exc
        session.replace_game_state(state)
        session.event_log.append(
            session.session_update("game_state_updated", environment=state.environment),
            source="session_manager",
        )

    def pause(self, session_id: str) -> SessionStatus:
        return self._set_status(session_id, SessionStatus.PAUSED, "paused")

    def resume(self, session_id: str) -> SessionStatus:
        return self._set_status(session_id, SessionStatus.RUNNING, "resumed")

    def _set_status(self, session_id: str, target: SessionStatus, reason: str) -> SessionStatus:
        session = self.get(session_id)
        # Repeating the current status is a no-op and logs nothing.
        if session.transition(target):
            session.event_log.append(session.session_update(reason), source="session_manager")
            log_info(f"{LOG_TAG_INFO} Session {session_id} {reason}")
        return session.status

    def end(self, session_id: str) -> Session:
        """End and evict a session. A second call raises SessionNotFound."""

        # Eviction first: from here on get() raises and running loops stop at their next check.
        session = self.registry.remove(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        self._finish(session, "ended")
        return session

    def sweep_expired(self, max_idle: Optional[float] = None, *, now: Optional[datetime] = None) -> List[Session]:
        """Evict sessions idle for longer than ``max_idle`` seconds.

        Sessions with a decision cycle in flight are skipped; the loop
        refreshes ``last_activity_at`` on every chunk anyway.
        """

        threshold = timedelta(seconds=self.idle_seconds if max_idle is None else max_idle)
        current = now or utc_now()
        expired: List[Session] = []
        for session in self.registry.sessions():
            if session.cycle_lock.locked():
                continue
            if current - session.last_activity_at <= threshold:
                continue
            # Lost a race with end().
            if self.registry.remove(session.id) is None:
                continue
            self._finish(session, "expired")
            expired.append(session)
        return expired

    def close(self) -> List[Session]:
        """Tear down the registry, ending every live session."""

        remaining = self.registry.close()
        for session in remaining:
            self._finish(session, "shutdown")
        return remaining

    def statistics(self, session_id: str) -> SessionStatistics:
        return self.get(session_id).statistics()

    @staticmethod
    def _finish(session: Session, reason: str) -> None:
        session.transition(SessionStatus.ENDED)
        session.event_log.append(session.session_update(reason), source="session_manager")
        log_info(f"{LOG_TAG_INFO} Session {session.id} {reason}")


def _issues(prefix: str, exc: ValidationError) -> List[str]:
    return [
        f"{prefix}.{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors(include_url=False)
    ]


__all__ = ["Session", "SessionRegistry", "SessionManager", "ALLOWED_TRANSITIONS"]
