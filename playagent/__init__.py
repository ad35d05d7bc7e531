"""
Playagent - runtime for autonomous LLM game-playing agents.

Sessions bind one agent personality to one game state. Each decision cycle
collects context from five providers, renders a situation template, streams
the model's reasoning and tool calls, applies the tools through a game
collaborator and scores the result with five evaluators.

All dependencies are injected: model client, game collaborator, persistence.
No database required; sessions live in memory.
"""

__version__ = "0.1.0"

# Main entry point
from .runtime import AgentRuntime

# Core components
from .sessions import Session, SessionManager, SessionRegistry
from .loop import CancellationToken, ChunkChannel, DecisionLoop
from .events import EventLog
from .memory import MemoryStore
from .tools import ToolInvoker, ToolInvocation, SUPPORTED_TOOLS
from .game import GameCollaborator, SimulatedGame, ToolOutcome
from .persistence import (
    PersistenceStrategy,
    InMemoryPersistence,
    JsonPersistence,
    SessionArchive,
)
from .cognition import (
    ProviderPipeline,
    TemplateEngine,
    EvaluatorPipeline,
    ModelClient,
    ModelRequest,
    RuleBasedModelClient,
    LLMModelClient,
    TextDelta,
)

# Errors
from .errors import (
    PlayAgentError,
    ConfigInvalid,
    SessionNotFound,
    ProviderFailure,
    EvaluatorFailure,
    ModelInvocationFailure,
    ToolTimeout,
    UnsupportedTool,
    ToolExecutionError,
    RuntimeFatal,
)

# Core schemas
from .schemas import (
    GameState,
    Entity,
    InventoryItem,
    Quest,
    QuestObjective,
    Position,
    AgentConfig,
    AgentPersonality,
    AgentGoals,
    AgentPreferences,
    PlayStyle,
    SessionStatus,
    EventType,
    Event,
    MemoryEntry,
    ToolCallRequest,
    ToolResult,
    Decision,
    ChunkType,
    StreamChunk,
    SessionSnapshot,
    SessionStatistics,
    DecisionMode,
    ControlAction,
)

# Scenario loader helpers
from .scenario import load_scenario, ScenarioLoader

__all__ = [
    # Main class
    "AgentRuntime",
    # Core components
    "Session",
    "SessionManager",
    "SessionRegistry",
    "CancellationToken",
    "ChunkChannel",
    "DecisionLoop",
    "EventLog",
    "MemoryStore",
    "ToolInvoker",
    "ToolInvocation",
    "SUPPORTED_TOOLS",
    "GameCollaborator",
    "SimulatedGame",
    "ToolOutcome",
    "PersistenceStrategy",
    "InMemoryPersistence",
    "JsonPersistence",
    "SessionArchive",
    "ProviderPipeline",
    "TemplateEngine",
    "EvaluatorPipeline",
    "ModelClient",
    "ModelRequest",
    "RuleBasedModelClient",
    "LLMModelClient",
    "TextDelta",
    # Errors
    "PlayAgentError",
    "ConfigInvalid",
    "SessionNotFound",
    "ProviderFailure",
    "EvaluatorFailure",
    "ModelInvocationFailure",
    "ToolTimeout",
    "UnsupportedTool",
    "ToolExecutionError",
    "RuntimeFatal",
    # Schemas
    "GameState",
    "Entity",
    "InventoryItem",
    "Quest",
    "QuestObjective",
    "Position",
    "AgentConfig",
    "AgentPersonality",
    "AgentGoals",
    "AgentPreferences",
    "PlayStyle",
    "SessionStatus",
    "EventType",
    "Event",
    "MemoryEntry",
    "ToolCallRequest",
    "ToolResult",
    "Decision",
    "ChunkType",
    "StreamChunk",
    "SessionSnapshot",
    "SessionStatistics",
    "DecisionMode",
    "ControlAction",
    # Scenario helpers
    "load_scenario",
    "ScenarioLoader",
]
