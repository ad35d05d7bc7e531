"""Shared fixtures: agent configs, game states and a scripted model client."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import pytest

from playagent.cognition.executor import ModelRequest, TextDelta
from playagent.runtime import AgentRuntime
from playagent.schemas import (
    AgentConfig,
    AgentGoals,
    AgentPersonality,
    AgentPreferences,
    Entity,
    GameState,
    InventoryItem,
    PlayStyle,
    Position,
    ToolCallRequest,
)

Turn = Tuple[str, Sequence[Tuple[str, Dict[str, Any]]]]


def build_config(
    *,
    play_style: PlayStyle = PlayStyle.EXPLORATORY,
    max_autonomous_actions: int = 10,
    tool_timeout: float = 1.0,
    risk_tolerance: float = 0.5,
    **overrides: Any,
) -> AgentConfig:
    personality = AgentPersonality(
        name="Rook",
        traits=("curious", "patient"),
        play_style=play_style,
        goals=AgentGoals(primary="Explore the cave", secondary=("Find treasure",)),
        preferences=AgentPreferences(risk_tolerance=risk_tolerance),
    )
    overrides.setdefault("model", "scripted")
    return AgentConfig(
        agent_id="rook",
        personality=personality,
        tool_timeout=tool_timeout,
        max_autonomous_actions=max_autonomous_actions,
        **overrides,
    )


def build_state(**overrides: Any) -> GameState:
    data: Dict[str, Any] = dict(
        environment="cave_entrance",
        position=Position(x=0, y=0),
        stats={"health": 100.0, "max_health": 100.0, "mana": 20.0},
        entities=[
            Entity(
                id="chest_1",
                type="chest",
                name="Old Chest",
                position=Position(x=2, y=0),
                properties={"items": [{"id": "herb", "name": "Herb", "quantity": 2}]},
            )
        ],
        inventory=[InventoryItem(id="bandage", name="Bandage", properties={"heal": 10})],
    )
    data.update(overrides)
    return GameState(**data)


class ScriptedModelClient:
    """Model client that replays scripted turns.

    Each turn is ``(reasoning, [(tool, arguments), ...])`` or an exception to
    raise. When the script runs out every further request inspects the
    surroundings.
    """

    def __init__(self, turns: Optional[List[Union[Turn, BaseException]]] = None) -> None:
        self.turns: List[Union[Turn, BaseException]] = list(turns or [])
        self.requests: List[ModelRequest] = []

    def uses_llm(self) -> bool:
        return False

    async def stream(self, request: ModelRequest):
        self.requests.append(request)
        turn = self.turns.pop(0) if self.turns else ("Looking around.", [("inspect", {"target": "surroundings"})])
        if isinstance(turn, BaseException):
            raise turn
        reasoning, calls = turn
        if reasoning:
            yield TextDelta(reasoning)
        for tool, arguments in calls:
            yield ToolCallRequest(tool=tool, arguments=arguments)


@pytest.fixture
def config_factory():
    return build_config


@pytest.fixture
def state_factory():
    return build_state


@pytest.fixture
def scripted_client():
    return ScriptedModelClient


@pytest.fixture
def runtime_factory():
    def _build(model_client=None, **kwargs) -> AgentRuntime:
        kwargs.setdefault("sweep_interval", 0)
        return AgentRuntime(model_client or ScriptedModelClient(), **kwargs)

    return _build


async def collect(stream) -> list:
    return [chunk async for chunk in stream]


@pytest.fixture
def drain():
    return collect
