"""Tests for the simulated game collaborator."""

import pytest

from playagent.errors import ToolExecutionError
from playagent.game import REWARDS, SimulatedGame
from playagent.schemas import Entity, InventoryItem, Position, ToolName
from playagent.tools import (
    AttackArgs,
    CraftArgs,
    InspectArgs,
    MoveArgs,
    SpeakArgs,
    TradeArgs,
    UseItemArgs,
)


@pytest.mark.asyncio
async def test_move_shifts_position(state_factory):
    outcome = await SimulatedGame().apply_tool(ToolName.MOVE, MoveArgs(direction="east", distance=3), state_factory())

    assert outcome.state.position == Position(x=3, y=0, z=0)
    assert outcome.reward == REWARDS[ToolName.MOVE]
    assert outcome.state.recent_events[-1].type == "movement"


@pytest.mark.asyncio
async def test_attack_defeats_or_counters(state_factory):
    goblin = Entity(id="g1", type="goblin", name="Goblin", properties={"health": 15, "damage": 7})
    state = state_factory(entities=[goblin])
    game = SimulatedGame()

    first = await game.apply_tool(ToolName.ATTACK, AttackArgs(target="g1"), state)
    assert first.state.find_entity("g1").properties["health"] == 5
    assert first.state.stats["health"] == 93

    second = await game.apply_tool(ToolName.ATTACK, AttackArgs(target="g1"), first.state)
    assert second.state.find_entity("g1") is None
    assert second.description.startswith("Defeated Goblin")


@pytest.mark.asyncio
async def test_magic_attack_needs_mana(state_factory):
    goblin = Entity(id="g1", type="goblin", properties={"health": 50})
    with pytest.raises(ToolExecutionError):
        await SimulatedGame().apply_tool(
            ToolName.ATTACK,
            AttackArgs(target="g1", attack_type="magic"),
            state_factory(entities=[goblin], stats={"health": 100, "mana": 2}),
        )


@pytest.mark.asyncio
async def test_use_item_heals_and_consumes(state_factory):
    state = state_factory(stats={"health": 50, "max_health": 100})
    outcome = await SimulatedGame().apply_tool(ToolName.USE_ITEM, UseItemArgs(item="bandage"), state)

    assert outcome.state.stats["health"] == 60
    assert outcome.state.find_item("bandage") is None


@pytest.mark.asyncio
async def test_speak_opens_dialogue(state_factory):
    mara = Entity(id="mara", type="merchant", name="Mara", properties={"reply": "Welcome!"})
    outcome = await SimulatedGame().apply_tool(
        ToolName.SPEAK, SpeakArgs(target="mara", message="Hello"), state_factory(entities=[mara])
    )

    assert outcome.state.dialogue.npc_id == "mara"
    assert outcome.state.dialogue.conversation_history == ["Agent: Hello", "Mara: Welcome!"]
    assert outcome.state.relationships["mara"] == "acquainted"


@pytest.mark.asyncio
async def test_inspect_surroundings_discovers_location(state_factory):
    outcome = await SimulatedGame().apply_tool(ToolName.INSPECT, InspectArgs(target="surroundings"), state_factory())

    assert "Old Chest" in outcome.description
    assert outcome.state.discovered_locations == ["cave_entrance"]


@pytest.mark.asyncio
async def test_inspect_unknown_target_fails(state_factory):
    with pytest.raises(ToolExecutionError):
        await SimulatedGame().apply_tool(ToolName.INSPECT, InspectArgs(target="dragon"), state_factory())


@pytest.mark.asyncio
async def test_craft_consumes_ingredients(state_factory):
    state = state_factory(inventory=[InventoryItem(id="cloth", name="Cloth", quantity=3)])
    outcome = await SimulatedGame().apply_tool(ToolName.CRAFT, CraftArgs(recipe="bandage"), state)

    assert outcome.state.find_item("cloth").quantity == 1
    assert outcome.state.find_item("bandage").properties["heal"] == 10

    with pytest.raises(ToolExecutionError):
        await SimulatedGame().apply_tool(ToolName.CRAFT, CraftArgs(recipe="bandage"), outcome.state)


@pytest.mark.asyncio
async def test_trade_exchanges_items(state_factory):
    mara = Entity(
        id="mara",
        type="merchant",
        name="Mara",
        properties={"inventory": [{"id": "potion", "name": "Potion", "quantity": 1}]},
    )
    state = state_factory(entities=[mara], inventory=[InventoryItem(id="gem", name="Gem")])
    outcome = await SimulatedGame().apply_tool(
        ToolName.TRADE, TradeArgs(target="mara", offer="gem", request="potion"), state
    )

    assert outcome.state.find_item("potion") is not None
    assert outcome.state.find_item("gem") is None
    stock = outcome.state.find_entity("mara").properties["inventory"]
    assert [raw["id"] for raw in stock] == ["gem"]
    assert outcome.state.relationships["mara"] == "trading partner"


@pytest.mark.asyncio
async def test_trade_requires_npc(state_factory):
    with pytest.raises(ToolExecutionError):
        await SimulatedGame().apply_tool(
            ToolName.TRADE, TradeArgs(target="chest_1", offer="bandage", request="herb"), state_factory()
        )
