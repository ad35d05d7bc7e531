"""Tests for tool validation, dispatch and time bounds."""

import asyncio
import time

import pytest

from playagent.errors import ToolExecutionError, UnsupportedTool
from playagent.game import GameCollaborator, SimulatedGame, ToolOutcome
from playagent.schemas import ToolErrorKind
from playagent.tools import SUPPORTED_TOOLS, InteractArgs, ToolInvoker, tool_catalog_text


class CountingGame(GameCollaborator):
    """Collaborator that records calls and can be told to hang or fail."""

    def __init__(self, *, delay: float = 0.0, error: Exception | None = None) -> None:
        self.calls = 0
        self.delay = delay
        self.error = error

    async def apply_tool(self, tool, args, state):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        state.metadata["touched"] = self.calls
        return ToolOutcome(description=f"{tool.value} done", reward=1.0, state=state)


def test_eight_supported_tools():
    assert SUPPORTED_TOOLS == ["move", "interact", "attack", "use_item", "speak", "inspect", "craft", "trade"]
    catalog = tool_catalog_text()
    assert all(f"- {name}(" in catalog for name in SUPPORTED_TOOLS)


def test_target_aliases():
    assert InteractArgs.model_validate({"entityId": "chest_1"}).target == "chest_1"
    assert InteractArgs.model_validate({"npc_id": "mara"}).target == "mara"


def test_resolve_rejects_unknown():
    with pytest.raises(UnsupportedTool):
        ToolInvoker.resolve("teleport")
    assert ToolInvoker.resolve(" MOVE ").value == "move"


@pytest.mark.asyncio
async def test_unsupported_tool_is_a_failed_result(state_factory):
    game = CountingGame()
    invocation = await ToolInvoker(game).invoke("teleport", {}, 1.0, state=state_factory())

    assert not invocation.result.ok
    assert invocation.result.error_kind is ToolErrorKind.UNSUPPORTED_TOOL
    assert invocation.state is None
    assert game.calls == 0


@pytest.mark.asyncio
async def test_invalid_arguments(state_factory):
    game = CountingGame()
    invocation = await ToolInvoker(game).invoke("move", {"direction": "sideways"}, 1.0, state=state_factory())

    assert invocation.result.error_kind is ToolErrorKind.INVALID_ARGUMENTS
    assert "direction" in invocation.result.message
    assert game.calls == 0


@pytest.mark.asyncio
async def test_timeout_within_bound_and_not_retried(state_factory):
    game = CountingGame(delay=5.0)
    timeout = 0.1

    started = time.monotonic()
    invocation = await ToolInvoker(game).invoke("move", {"direction": "north"}, timeout, state=state_factory())
    elapsed = time.monotonic() - started

    assert invocation.result.error_kind is ToolErrorKind.TIMEOUT
    assert elapsed < timeout + 0.5
    assert game.calls == 1
    assert invocation.state is None


@pytest.mark.asyncio
async def test_collaborator_errors_become_execution_failed(state_factory):
    for error in (ToolExecutionError("no such chest"), KeyError("oops")):
        invocation = await ToolInvoker(CountingGame(error=error)).invoke(
            "interact", {"target": "chest_1"}, 1.0, state=state_factory()
        )
        assert invocation.result.error_kind is ToolErrorKind.EXECUTION_FAILED
        assert invocation.state is None


@pytest.mark.asyncio
async def test_success_returns_new_state_without_touching_input(state_factory):
    state = state_factory()
    invocation = await ToolInvoker(CountingGame()).invoke("inspect", {"target": "surroundings"}, 1.0, state=state)

    assert invocation.result.ok
    assert invocation.result.reward_hint == 1.0
    assert invocation.state.metadata["touched"] == 1
    assert "touched" not in state.metadata


@pytest.mark.asyncio
async def test_simulated_game_through_invoker(state_factory):
    invocation = await ToolInvoker(SimulatedGame()).invoke(
        "interact", {"target": "chest_1", "action": "open"}, 1.0, state=state_factory()
    )

    assert invocation.result.ok
    assert invocation.result.value == "Open Old Chest: found Herb"
    assert invocation.state.find_item("herb").quantity == 2
