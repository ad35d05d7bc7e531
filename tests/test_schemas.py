"""Unit tests for the core schema building blocks."""

import pytest
from pydantic import ValidationError

from playagent.schemas import (
    AgentPreferences,
    Entity,
    ErrorPayload,
    Event,
    EventType,
    GameState,
    Position,
    Quest,
    QuestObjective,
    ThoughtPayload,
    ToolErrorKind,
    ToolResult,
)


def test_position_distance():
    assert Position(x=0, y=0).distance_to(Position(x=3, y=4)) == pytest.approx(5.0)


def test_entity_hostility_from_type_and_properties():
    goblin = Entity(id="g1", type="goblin")
    tame = Entity(id="g2", type="goblin", properties={"hostile": False})
    merchant = Entity(id="m1", type="merchant", name="Mara")

    assert goblin.is_hostile
    assert not tame.is_hostile
    assert merchant.is_npc and not merchant.is_hostile
    assert merchant.display_name == "Mara"
    assert goblin.display_name == "g1"


def test_game_state_helpers():
    state = GameState(
        stats={"health": 25, "max_health": 100},
        entities=[
            Entity(id="g1", type="goblin"),
            Entity(id="m1", type="npc", name="Mara"),
            Entity(id="c1", type="chest"),
        ],
        active_quests=[
            Quest(id="q1", name="Done", objectives=[QuestObjective(id="o1", description="x", completed=True)]),
            Quest(id="q2", name="Open", objectives=[QuestObjective(id="o2", description="y")]),
        ],
    )

    assert state.health_ratio() == pytest.approx(0.25)
    assert [e.id for e in state.hostile_entities()] == ["g1"]
    assert [e.id for e in state.npc_entities()] == ["m1"]
    assert [e.id for e in state.points_of_interest()] == ["c1"]
    assert state.find_entity("mara").id == "m1"
    assert [q.id for q in state.open_quests()] == ["q2"]


def test_health_ratio_defaults_to_full_when_untracked():
    assert GameState().health_ratio() == 1.0


def test_preferences_are_bounded():
    with pytest.raises(ValidationError):
        AgentPreferences(risk_tolerance=1.5)


def test_agent_config_is_immutable(config_factory):
    config = config_factory()
    with pytest.raises(ValidationError):
        config.temperature = 1.0


def test_agent_config_rejects_bad_timeout(config_factory):
    with pytest.raises(ValidationError):
        config_factory(tool_timeout=0)
    with pytest.raises(ValidationError):
        config_factory(max_autonomous_actions=0)


def test_tool_result_variants():
    ok = ToolResult.success("move", "Moved north", 0.1)
    failed = ToolResult.failure("attack", ToolErrorKind.TIMEOUT, "too slow")

    assert ok.summary() == "move: Moved north"
    assert failed.summary() == "attack failed (timeout): too slow"

    with pytest.raises(ValidationError):
        ToolResult(tool="move", ok=False)
    with pytest.raises(ValidationError):
        ToolResult(tool="move", ok=True, error_kind=ToolErrorKind.TIMEOUT)


def test_event_type_must_match_payload():
    event = Event(type=EventType.THOUGHT, payload=ThoughtPayload(content="hi"), source="model")
    assert event.payload.kind == "thought"

    with pytest.raises(ValidationError):
        Event(type=EventType.INIT, payload=ThoughtPayload(content="hi"), source="model")


def test_event_payload_discriminated_from_dict():
    event = Event.model_validate(
        {
            "type": "error",
            "payload": {"kind": "error", "error_kind": "provider_failure", "component": "goals", "message": "x"},
            "source": "goals",
        }
    )
    assert isinstance(event.payload, ErrorPayload)
