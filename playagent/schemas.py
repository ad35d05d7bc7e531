"""
Pydantic schemas for the playagent runtime.

All data structures exchanged between the session manager, decision loop,
tools, providers and evaluators are defined here.

Design Philosophy:
- GameState mirrors what a game client reports each turn (entities, inventory,
  stats, quests, dialogue); unknown extras travel in ``metadata``
- AgentConfig and Decision are frozen once built
- Event payloads and tool results are tagged variants so each event type has
  exactly one payload shape
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from playagent.config import Config


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


# ============================================================================
# Enumerations
# ============================================================================


class PlayStyle(str, Enum):
    AGGRESSIVE = "aggressive"
    CAUTIOUS = "cautious"
    EXPLORATORY = "exploratory"
    EFFICIENT = "efficient"
    SOCIAL = "social"
    COMPLETIONIST = "completionist"


class SessionStatus(str, Enum):
    """Session state machine: idle -> running <-> paused -> ended."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    ENDED = "ended"


class EventType(str, Enum):
    INIT = "init"
    PROVIDER_CONTEXT = "provider_context"
    THOUGHT = "thought"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    EVALUATOR_INSIGHT = "evaluator_insight"
    SESSION_UPDATE = "session_update"
    ERROR = "error"


class ChunkType(str, Enum):
    PROVIDER_CONTEXT = "provider_context"
    THOUGHT = "thought"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    SESSION_UPDATE = "session_update"
    ERROR = "error"


class ToolName(str, Enum):
    MOVE = "move"
    INTERACT = "interact"
    ATTACK = "attack"
    USE_ITEM = "use_item"
    SPEAK = "speak"
    INSPECT = "inspect"
    CRAFT = "craft"
    TRADE = "trade"


class ToolErrorKind(str, Enum):
    TIMEOUT = "timeout"
    UNSUPPORTED_TOOL = "unsupported_tool"
    INVALID_ARGUMENTS = "invalid_arguments"
    EXECUTION_FAILED = "execution_failed"


class DecisionMode(str, Enum):
    SINGLE = "single"
    AUTONOMOUS = "autonomous"


class ControlAction(str, Enum):
    PAUSE = "pause"
    RESUME = "resume"
    END = "end"


# Entity types treated as threats / conversation partners when no explicit
# ``hostile`` / ``npc`` property is present.
HOSTILE_ENTITY_TYPES = frozenset({"enemy", "hostile", "goblin", "orc", "skeleton", "monster"})
NPC_ENTITY_TYPES = frozenset({"npc", "merchant", "villager", "trader", "quest_giver"})


# ============================================================================
# Game State Schemas
# ============================================================================


class Position(BaseModel):
    x: float = Field(0.0, description="East/west coordinate")
    y: float = Field(0.0, description="North/south coordinate")
    z: float = Field(0.0, description="Elevation")

    def distance_to(self, other: "Position") -> float:
        return math.sqrt(
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        )


class Entity(BaseModel):
    """Something the agent can currently see."""

    id: str = Field(..., description="Stable entity identifier")
    type: str = Field(..., description="Entity category (npc, goblin, chest, ...)")
    name: Optional[str] = Field(None, description="Display name")
    position: Optional[Position] = Field(None, description="World position if known")
    properties: Dict[str, Any] = Field(default_factory=dict, description="Game-specific attributes")

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def is_hostile(self) -> bool:
        flag = self.properties.get("hostile")
        if flag is not None:
            return bool(flag)
        return self.type.lower() in HOSTILE_ENTITY_TYPES

    @property
    def is_npc(self) -> bool:
        flag = self.properties.get("npc")
        if flag is not None:
            return bool(flag)
        return self.type.lower() in NPC_ENTITY_TYPES


class InventoryItem(BaseModel):
    id: str = Field(..., description="Item identifier")
    name: str = Field(..., description="Display name")
    quantity: int = Field(1, ge=0, description="Stack size")
    properties: Dict[str, Any] = Field(default_factory=dict, description="Item attributes (heal, value, ...)")


class QuestObjective(BaseModel):
    id: str
    description: str
    completed: bool = False
    progress: float = Field(0.0, ge=0.0)
    target: float = Field(1.0, gt=0.0)


class Quest(BaseModel):
    id: str
    name: str
    description: str = ""
    objectives: List[QuestObjective] = Field(default_factory=list)

    @property
    def completed_objectives(self) -> int:
        return sum(1 for objective in self.objectives if objective.completed)

    @property
    def is_complete(self) -> bool:
        return bool(self.objectives) and all(o.completed for o in self.objectives)


class GameEvent(BaseModel):
    """Something that happened in the game world, as reported by the game."""

    type: str = Field(..., description="Event category (combat, dialogue, loot, ...)")
    description: str = Field(..., description="What happened")
    timestamp: Optional[datetime] = Field(None, description="Game-reported time")


class DialogueContext(BaseModel):
    npc_id: str
    npc_name: str
    conversation_history: List[str] = Field(default_factory=list)


class GameState(BaseModel):
    """Snapshot of the game as seen by one agent.

    Owned by exactly one session; the runtime deep-copies every snapshot it
    receives so two sessions never share mutable state.
    """

    environment: str = Field("unknown", description="Current area or level name")
    position: Optional[Position] = Field(None, description="Agent position")
    entities: List[Entity] = Field(default_factory=list, description="Visible entities")
    inventory: List[InventoryItem] = Field(default_factory=list)
    stats: Dict[str, float] = Field(default_factory=dict, description="health, max_health, mana, ...")
    active_quests: List[Quest] = Field(default_factory=list)
    available_actions: List[str] = Field(default_factory=list)
    recent_events: List[GameEvent] = Field(default_factory=list)
    dialogue: Optional[DialogueContext] = Field(None, description="Active conversation, if any")
    relationships: Dict[str, str] = Field(
        default_factory=dict, description="NPC id -> standing (friendly, wary, ...)"
    )
    discovered_locations: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Game-specific extras")

    def health_ratio(self) -> float:
        health = self.stats.get("health")
        if health is None:
            return 1.0
        max_health = self.stats.get("max_health") or 100.0
        return max(0.0, min(1.0, health / max_health))

    def hostile_entities(self) -> List[Entity]:
        return [entity for entity in self.entities if entity.is_hostile]

    def npc_entities(self) -> List[Entity]:
        return [entity for entity in self.entities if entity.is_npc and not entity.is_hostile]

    def points_of_interest(self) -> List[Entity]:
        return [e for e in self.entities if not e.is_hostile and not e.is_npc]

    def find_entity(self, entity_id: str) -> Optional[Entity]:
        needle = entity_id.lower()
        for entity in self.entities:
            if entity.id.lower() == needle or (entity.name or "").lower() == needle:
                return entity
        return None

    def find_item(self, item_id: str) -> Optional[InventoryItem]:
        needle = item_id.lower()
        for item in self.inventory:
            if item.id.lower() == needle or item.name.lower() == needle:
                return item
        return None

    def open_quests(self) -> List[Quest]:
        return [quest for quest in self.active_quests if not quest.is_complete]


# ============================================================================
# Agent Configuration
# ============================================================================


class AgentGoals(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary: str = Field(..., description="Primary goal")
    secondary: Tuple[str, ...] = Field(default_factory=tuple, description="Secondary goals")


class AgentPreferences(BaseModel):
    """Numeric preference weights, each in [0, 1]."""

    model_config = ConfigDict(frozen=True)

    risk_tolerance: float = Field(0.5, ge=0.0, le=1.0)
    exploration_vs_exploitation: float = Field(0.5, ge=0.0, le=1.0)
    social_interaction: float = Field(0.5, ge=0.0, le=1.0)
    completionism_level: float = Field(0.5, ge=0.0, le=1.0)


class AgentPersonality(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Agent display name")
    traits: Tuple[str, ...] = Field(default_factory=tuple, description="Personality traits")
    play_style: PlayStyle = Field(PlayStyle.EXPLORATORY)
    goals: AgentGoals
    preferences: AgentPreferences = Field(default_factory=AgentPreferences)
    system_prompt: str = Field("", description="Extra instructions appended to every prompt")


class AgentConfig(BaseModel):
    """Immutable per-session agent configuration."""

    model_config = ConfigDict(frozen=True)

    agent_id: str = Field(..., min_length=1)
    personality: AgentPersonality
    model: str = Field(default_factory=lambda: Config.LLM_MODEL, description="Model identifier")
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(1024, ge=1, description="Token budget per model call")
    streaming: bool = Field(True, description="Stream reasoning as it is produced")
    tool_timeout: float = Field(
        default_factory=lambda: Config.DEFAULT_TOOL_TIMEOUT,
        gt=0.0,
        description="Per-tool-call timeout in seconds",
    )
    max_autonomous_actions: int = Field(
        default_factory=lambda: Config.DEFAULT_MAX_AUTONOMOUS_ACTIONS, ge=1
    )


# ============================================================================
# Memory
# ============================================================================


class MemoryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    content: str
    importance: int = Field(5, ge=1, le=10, description="1 = trivial, 10 = critical")
    tags: Tuple[str, ...] = Field(default_factory=tuple)
    created_at: datetime = Field(default_factory=utc_now)


# ============================================================================
# Tools and Decisions
# ============================================================================


class ToolCallRequest(BaseModel):
    """A tool call requested by the model."""

    tool: str = Field(..., description="One of: move, interact, attack, use_item, speak, inspect, craft, trade")
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Outcome of one tool invocation: either a value or an error kind."""

    model_config = ConfigDict(frozen=True)

    tool: str
    ok: bool
    value: Optional[str] = Field(None, description="Description of what happened")
    reward_hint: float = Field(0.0, description="Game-reported reward for the action")
    error_kind: Optional[ToolErrorKind] = None
    message: str = ""

    @model_validator(mode="after")
    def _check_variant(self) -> "ToolResult":
        if self.ok and self.error_kind is not None:
            raise ValueError("successful tool results cannot carry an error_kind")
        if not self.ok and self.error_kind is None:
            raise ValueError("failed tool results require an error_kind")
        return self

    @classmethod
    def success(cls, tool: str, value: str, reward_hint: float = 0.0) -> "ToolResult":
        return cls(tool=tool, ok=True, value=value, reward_hint=reward_hint)

    @classmethod
    def failure(cls, tool: str, error_kind: ToolErrorKind, message: str) -> "ToolResult":
        return cls(tool=tool, ok=False, error_kind=error_kind, message=message)

    def summary(self) -> str:
        if self.ok:
            return f"{self.tool}: {self.value}"
        return f"{self.tool} failed ({self.error_kind.value}): {self.message}"


class ToolCallRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    request: ToolCallRequest
    result: ToolResult


class ActionDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool: str
    arguments: Dict[str, Any] = Field(default_factory=dict)

    def describe(self) -> str:
        if not self.arguments:
            return self.tool
        args = ", ".join(f"{key}={value}" for key, value in sorted(self.arguments.items()))
        return f"{self.tool}({args})"


class Decision(BaseModel):
    """One completed decision cycle. Immutable once recorded."""

    model_config = ConfigDict(frozen=True)

    cycle: int = Field(..., ge=1, description="1-based cycle number within the session")
    action: Optional[ActionDescriptor] = Field(None, description="Primary action taken, if any")
    rationale: str = ""
    tool_calls: Tuple[ToolCallRecord, ...] = Field(default_factory=tuple)
    reward_delta: float = 0.0
    template: str = "generic"
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def succeeded(self) -> bool:
        return any(record.result.ok for record in self.tool_calls)


# ============================================================================
# Events
# ============================================================================


class InitPayload(BaseModel):
    kind: Literal["init"] = "init"
    agent_id: str
    agent_name: str
    play_style: str
    model: str
    environment: str


class ProviderContextPayload(BaseModel):
    kind: Literal["provider_context"] = "provider_context"
    provider: str
    content: str


class ThoughtPayload(BaseModel):
    kind: Literal["thought"] = "thought"
    content: str
    cycle: int = 0


class ToolCallPayload(BaseModel):
    kind: Literal["tool_call"] = "tool_call"
    tool: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    cycle: int = 0


class ToolResultPayload(BaseModel):
    kind: Literal["tool_result"] = "tool_result"
    tool: str
    ok: bool
    value: Optional[str] = None
    reward_hint: float = 0.0
    error_kind: Optional[str] = None
    message: str = ""
    cycle: int = 0


class EvaluatorInsightPayload(BaseModel):
    kind: Literal["evaluator_insight"] = "evaluator_insight"
    evaluator: str
    insight: str
    reward_delta: float = 0.0
    memories: List[str] = Field(default_factory=list)


class SessionUpdatePayload(BaseModel):
    kind: Literal["session_update"] = "session_update"
    status: SessionStatus
    reason: str
    action_count: int = 0
    total_reward: float = 0.0
    details: Dict[str, Any] = Field(default_factory=dict)


class ErrorPayload(BaseModel):
    kind: Literal["error"] = "error"
    error_kind: str
    component: str
    message: str


EventPayload = Annotated[
    Union[
        InitPayload,
        ProviderContextPayload,
        ThoughtPayload,
        ToolCallPayload,
        ToolResultPayload,
        EvaluatorInsightPayload,
        SessionUpdatePayload,
        ErrorPayload,
    ],
    Field(discriminator="kind"),
]


class Event(BaseModel):
    """One immutable record in a session's event log."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    type: EventType
    timestamp: datetime = Field(default_factory=utc_now)
    payload: EventPayload
    source: str = Field(..., description="Component that emitted the event")

    @model_validator(mode="after")
    def _type_matches_payload(self) -> "Event":
        if self.type.value != self.payload.kind:
            raise ValueError(
                f"event type '{self.type.value}' does not match payload '{self.payload.kind}'"
            )
        return self


# ============================================================================
# Streaming and Snapshots
# ============================================================================


class StreamChunk(BaseModel):
    """One unit of a decision stream sent to the caller."""

    model_config = ConfigDict(frozen=True)

    type: ChunkType
    session_id: str
    cycle: int = 0
    content: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    final: bool = Field(False, description="True on the chunk that closes the stream")
    timestamp: datetime = Field(default_factory=utc_now)


class SessionSnapshot(BaseModel):
    session_id: str
    agent_id: str
    status: SessionStatus
    game_state: GameState
    action_history: List[Decision] = Field(default_factory=list, description="Most recent decisions")
    action_count: int = 0
    total_reward: float = 0.0
    event_log_size: int = 0
    memory_size: int = 0
    created_at: datetime
    last_activity_at: datetime


class SessionStatistics(BaseModel):
    total_actions: int = 0
    total_reward: float = 0.0
    average_reward: float = 0.0
    duration_seconds: float = 0.0
    actions_per_minute: float = 0.0
    success_rate: float = 0.0
