"""Context providers that turn session state into prompt fragments.

There are exactly five providers and they always run in the same order:
game_state, goals, memory, social, history. Providers only read the
session; a provider that raises contributes an empty fragment and an
``error`` event tagged with its name.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Sequence

from playagent.config import Config
from playagent.errors import ProviderFailure
from playagent.logging_utils import LOG_TAG_ERROR, log_error
from playagent.schemas import ErrorPayload

if TYPE_CHECKING:
    from playagent.sessions import Session


@dataclass(frozen=True)
class ProviderFragment:
    name: str
    text: str


class Provider(ABC):
    name: str = ""

    @abstractmethod
    def render(self, session: "Session") -> str:
        """Return the text fragment for the next prompt."""


def _fmt(value: float) -> str:
    return f"{value:g}"


class GameStateProvider(Provider):
    """Environment, position, stats, visible entities, inventory and recent game events."""

    name = "game_state"

    def render(self, session: "Session") -> str:
        state = session.game_state
        lines = [f"Environment: {state.environment}"]

        if state.position is not None:
            p = state.position
            lines.append(f"Position: ({_fmt(p.x)}, {_fmt(p.y)}, {_fmt(p.z)})")

        if state.stats:
            stats = []
            for key, value in sorted(state.stats.items()):
                if key == "max_health":
                    continue
                if key == "health" and "max_health" in state.stats:
                    stats.append(f"health {_fmt(value)}/{_fmt(state.stats['max_health'])}")
                else:
                    stats.append(f"{key} {_fmt(value)}")
            lines.append("Stats: " + ", ".join(stats))

        if state.entities:
            lines.append("Visible entities:")
            for entity in state.entities:
                labels = [entity.type]
                if entity.is_hostile:
                    labels.append("hostile")
                elif entity.is_npc:
                    labels.append("npc")
                line = f"- {entity.display_name} (id={entity.id}; {', '.join(labels)})"
                if entity.position is not None:
                    line += f" at ({_fmt(entity.position.x)}, {_fmt(entity.position.y)}, {_fmt(entity.position.z)})"
                    if state.position is not None:
                        line += f", distance {state.position.distance_to(entity.position):.1f}"
                if "health" in entity.properties:
                    line += f", health {entity.properties['health']}"
                lines.append(line)
        else:
            lines.append("Visible entities: none")

        if state.inventory:
            items = ", ".join(f"{item.name} x{item.quantity} (id={item.id})" for item in state.inventory)
            lines.append(f"Inventory: {items}")
        else:
            lines.append("Inventory: empty")

        if state.available_actions:
            lines.append("Game actions available: " + ", ".join(state.available_actions))

        if state.recent_events:
            lines.append("Recent game events:")
            lines.extend(f"- [{event.type}] {event.description}" for event in state.recent_events[-5:])

        return "\n".join(lines)


class GoalsProvider(Provider):
    name = "goals"

    def render(self, session: "Session") -> str:
        goals = session.config.personality.goals
        state = session.game_state
        lines = [f"Primary: {goals.primary}"]
        if goals.secondary:
            lines.append("Secondary: " + "; ".join(goals.secondary))

        for quest in state.active_quests:
            total = len(quest.objectives)
            status = "complete" if quest.is_complete else f"{quest.completed_objectives}/{total} objectives"
            lines.append(f"Quest '{quest.name}' ({status})")
            for objective in quest.objectives:
                mark = "x" if objective.completed else " "
                line = f"  [{mark}] {objective.description}"
                if not objective.completed and objective.target > 1:
                    line += f" ({_fmt(objective.progress)}/{_fmt(objective.target)})"
                lines.append(line)

        return "\n".join(lines)


class MemoryProvider(Provider):
    name = "memory"

    def __init__(self, top_k: Optional[int] = None) -> None:
        self.top_k = top_k or Config.MEMORY_TOP_K

    def render(self, session: "Session") -> str:
        entries = session.memory.top(self.top_k)
        if not entries:
            return "No memories yet."
        return "\n".join(f"- ({entry.importance}/10) {entry.content}" for entry in entries)


class SocialProvider(Provider):
    name = "social"

    def render(self, session: "Session") -> str:
        state = session.game_state
        lines: List[str] = []

        if state.dialogue is not None:
            lines.append(f"Talking with {state.dialogue.npc_name} (id={state.dialogue.npc_id})")
            for line in state.dialogue.conversation_history[-5:]:
                lines.append(f"  {line}")

        npcs = state.npc_entities()
        if npcs:
            lines.append("Characters nearby:")
            for npc in npcs:
                standing = state.relationships.get(npc.id, "unknown")
                lines.append(f"- {npc.display_name} (id={npc.id}): {standing}")

        others = {
            npc_id: standing
            for npc_id, standing in state.relationships.items()
            if all(npc.id != npc_id for npc in npcs)
        }
        if others:
            lines.append("Known relationships: " + ", ".join(f"{k}={v}" for k, v in sorted(others.items())))

        return "\n".join(lines) if lines else "No one to talk to."


class HistoryProvider(Provider):
    name = "history"

    def __init__(self, window: Optional[int] = None) -> None:
        self.window = window or Config.HISTORY_WINDOW

    def render(self, session: "Session") -> str:
        decisions = session.history_tail(self.window)
        if not decisions:
            return "No actions taken yet."
        lines = []
        for decision in decisions:
            action = decision.action.describe() if decision.action else "no action"
            outcomes = "; ".join(record.result.summary() for record in decision.tool_calls) or "nothing happened"
            lines.append(f"#{decision.cycle} {action} -> {outcomes} (reward {decision.reward_delta:+.2f})")
        return "\n".join(lines)


def default_providers() -> List[Provider]:
    return [
        GameStateProvider(),
        GoalsProvider(),
        MemoryProvider(),
        SocialProvider(),
        HistoryProvider(),
    ]


class ProviderPipeline:
    """Run the five providers in priority order and collect their fragments."""

    def __init__(self, providers: Optional[Sequence[Provider]] = None) -> None:
        self.providers: List[Provider] = list(providers) if providers is not None else default_providers()

    def collect(self, session: "Session") -> List[ProviderFragment]:
        fragments: List[ProviderFragment] = []
        for provider in self.providers:
            try:
                text = provider.render(session)
            except Exception as exc:
                failure = ProviderFailure(provider=provider.name, cause=exc)
                log_error(f"{LOG_TAG_ERROR} {failure}")
                session.event_log.append(
                    ErrorPayload(
                        error_kind="provider_failure",
                        component=provider.name,
                        message=str(failure),
                    ),
                    source=provider.name,
                )
                text = ""
            fragments.append(ProviderFragment(name=provider.name, text=text))
        return fragments


__all__ = [
    "Provider",
    "ProviderFragment",
    "ProviderPipeline",
    "GameStateProvider",
    "GoalsProvider",
    "MemoryProvider",
    "SocialProvider",
    "HistoryProvider",
    "default_providers",
]
