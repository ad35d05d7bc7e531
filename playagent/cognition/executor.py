"""Model client protocol and the deterministic rule-based client.

A model client receives a rendered prompt plus the structured state it was
built from and streams back reasoning text followed by tool-call requests.
LLM-backed clients live in ``playagent.cognition.llm``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional, Protocol, Sequence, Tuple, Union

from playagent.schemas import (
    ActionDescriptor,
    AgentPersonality,
    Entity,
    GameState,
    PlayStyle,
    ToolCallRequest,
    ToolResult,
)

from .renderers import Situation


@dataclass(frozen=True)
class TextDelta:
    """A piece of streamed reasoning text."""

    text: str


ModelEvent = Union[TextDelta, ToolCallRequest]


@dataclass
class ModelRequest:
    system: str
    user: str
    model: str
    temperature: float
    max_tokens: int
    situation: Situation
    game_state: GameState
    personality: AgentPersonality
    streaming: bool = True
    cycle: int = 1
    step: int = 1
    recent_actions: Sequence[ActionDescriptor] = field(default_factory=tuple)
    feedback: Sequence[ToolResult] = field(default_factory=tuple)


class ModelClient(Protocol):
    """Protocol for model providers used by the decision loop."""

    def stream(self, request: ModelRequest) -> AsyncIterator[ModelEvent]:
        """Yield reasoning ``TextDelta``s followed by ``ToolCallRequest``s."""
        ...

    def uses_llm(self) -> bool:
        """Return True if this client calls a language model."""
        ...


_WANDER = ("north", "east", "south", "west")
_OPPOSITE = {"north": "south", "south": "north", "east": "west", "west": "east"}


class RuleBasedModelClient:
    """Deterministic policy driven by situation and play style. No LLM calls.

    Used for offline sessions, examples and tests. It avoids repeating the
    exact action it took last and falls back to inspecting or wandering.
    """

    def uses_llm(self) -> bool:
        return False

    async def stream(self, request: ModelRequest) -> AsyncIterator[ModelEvent]:
        reason, calls = self.choose(request)
        yield TextDelta(reason)
        for call in calls:
            yield call

    def choose(self, request: ModelRequest) -> Tuple[str, List[ToolCallRequest]]:
        state = request.game_state
        personality = request.personality
        last = request.recent_actions[-1] if request.recent_actions else None

        def fresh(tool: str, **arguments) -> Optional[ToolCallRequest]:
            if last is not None and last.tool == tool and last.arguments == arguments:
                return None
            return ToolCallRequest(tool=tool, arguments=arguments)

        if request.feedback and not any(result.ok for result in request.feedback):
            return "My last attempt failed, so I will look around first.", [
                ToolCallRequest(tool="inspect", arguments={"target": "surroundings"})
            ]

        situation = request.situation
        if situation is Situation.EMERGENCY:
            healing = next((item for item in state.inventory if item.properties.get("heal")), None)
            if healing is not None:
                return f"Health is critical; using {healing.name}.", [
                    ToolCallRequest(tool="use_item", arguments={"item": healing.id})
                ]
            hostiles = state.hostile_entities()
            if hostiles:
                direction = self._away_from(state, hostiles[0])
                return "Health is critical and I have no healing; retreating.", [
                    ToolCallRequest(tool="move", arguments={"direction": direction, "distance": 2})
                ]

        if situation in (Situation.EMERGENCY, Situation.COMBAT) and state.hostile_entities():
            target = self._nearest(state, state.hostile_entities())
            bold = (
                personality.play_style is PlayStyle.AGGRESSIVE
                or personality.preferences.risk_tolerance >= 0.6
            )
            steady = personality.play_style is not PlayStyle.CAUTIOUS and state.health_ratio() > 0.6
            if bold or steady:
                return f"{target.display_name} is a threat; engaging.", [
                    ToolCallRequest(tool="attack", arguments={"target": target.id, "attack_type": "melee"})
                ]
            direction = self._away_from(state, target)
            return f"{target.display_name} looks dangerous; keeping my distance.", [
                ToolCallRequest(tool="move", arguments={"direction": direction})
            ]

        if situation is Situation.SOCIAL:
            npc_id = state.dialogue.npc_id if state.dialogue else state.npc_entities()[0].id
            npc = state.find_entity(npc_id)
            name = npc.display_name if npc else npc_id
            call = fresh("speak", target=npc_id, message=f"Hello {name}, is there anything you need help with?")
            if call is not None:
                return f"{name} might have useful information.", [call]

        if situation is Situation.QUEST:
            quest = state.open_quests()[0]
            objective = next((o for o in quest.objectives if not o.completed), None)
            text = (objective.description if objective else quest.description).lower()
            for entity in state.entities:
                if entity.id.lower() in text or (entity.name and entity.name.lower() in text):
                    verb = "attack" if entity.is_hostile else "interact"
                    call = fresh(verb, target=entity.id)
                    if call is not None:
                        return f"Working on quest '{quest.name}'.", [call]

        for entity in state.points_of_interest():
            call = fresh("interact", target=entity.id, action="use")
            if call is not None and not self._interacted(request, entity.id):
                return f"{entity.display_name} is worth a closer look.", [call]

        direction = _WANDER[(request.cycle - 1) % len(_WANDER)]
        return f"Nothing pressing here; exploring {direction}.", [
            ToolCallRequest(tool="move", arguments={"direction": direction})
        ]

    @staticmethod
    def _interacted(request: ModelRequest, entity_id: str) -> bool:
        return any(
            action.tool == "interact" and action.arguments.get("target") == entity_id
            for action in request.recent_actions
        )

    @staticmethod
    def _nearest(state: GameState, entities: List[Entity]) -> Entity:
        if state.position is None:
            return entities[0]
        placed = [e for e in entities if e.position is not None]
        if not placed:
            return entities[0]
        return min(placed, key=lambda e: state.position.distance_to(e.position))

    @staticmethod
    def _away_from(state: GameState, entity: Entity) -> str:
        if state.position is None or entity.position is None:
            return "south"
        dx = entity.position.x - state.position.x
        dy = entity.position.y - state.position.y
        if abs(dx) >= abs(dy):
            return _OPPOSITE["east" if dx > 0 else "west"]
        return _OPPOSITE["north" if dy > 0 else "south"]


__all__ = ["ModelClient", "ModelEvent", "ModelRequest", "RuleBasedModelClient", "TextDelta"]
