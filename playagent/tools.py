"""Game-action tools and the time-bounded invoker that runs them.

The tool set is closed: move, interact, attack, use_item, speak, inspect,
craft and trade. Each tool has a pydantic argument model; the game
collaborator receives validated arguments and returns a new GameState.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Literal, Mapping, Optional, Type

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from playagent.errors import ToolExecutionError, ToolTimeout, UnsupportedTool
from playagent.logging_utils import LOG_TAG_DETERMINISTIC, LOG_TAG_ERROR, log_deterministic, log_error
from playagent.schemas import GameState, ToolErrorKind, ToolName, ToolResult

if TYPE_CHECKING:
    from playagent.game import GameCollaborator


_TARGET = AliasChoices("target", "target_id", "entity_id", "entityId", "npc_id", "npcId")


class MoveArgs(BaseModel):
    direction: Literal["north", "south", "east", "west", "up", "down"]
    distance: float = Field(1.0, gt=0.0, le=100.0)


class InteractArgs(BaseModel):
    target: str = Field(..., validation_alias=_TARGET)
    action: str = Field("use", description="open, use, pick_up, ...")


class AttackArgs(BaseModel):
    target: str = Field(..., validation_alias=_TARGET)
    attack_type: Literal["melee", "ranged", "magic"] = Field(
        "melee", validation_alias=AliasChoices("attack_type", "attackType")
    )


class UseItemArgs(BaseModel):
    item: str = Field(..., validation_alias=AliasChoices("item", "item_id", "itemId"))
    target: Optional[str] = Field(None, validation_alias=_TARGET)


class SpeakArgs(BaseModel):
    target: str = Field(..., validation_alias=_TARGET)
    message: str = Field(..., min_length=1)


class InspectArgs(BaseModel):
    target: str = Field(..., validation_alias=_TARGET)


class CraftArgs(BaseModel):
    recipe: str = Field(..., validation_alias=AliasChoices("recipe", "item", "result"))
    quantity: int = Field(1, ge=1, le=20)


class TradeArgs(BaseModel):
    target: str = Field(..., validation_alias=_TARGET)
    offer: str = Field(..., description="Inventory item given away")
    request: str = Field(..., description="Item wanted from the trader")
    quantity: int = Field(1, ge=1)


@dataclass(frozen=True)
class ToolSpec:
    name: ToolName
    args_model: Type[BaseModel]
    description: str


TOOL_SPECS: Dict[ToolName, ToolSpec] = {
    ToolName.MOVE: ToolSpec(ToolName.MOVE, MoveArgs, "Move in a direction (north/south/east/west/up/down) by a distance"),
    ToolName.INTERACT: ToolSpec(ToolName.INTERACT, InteractArgs, "Interact with a visible object or character"),
    ToolName.ATTACK: ToolSpec(ToolName.ATTACK, AttackArgs, "Attack a visible target (melee/ranged/magic)"),
    ToolName.USE_ITEM: ToolSpec(ToolName.USE_ITEM, UseItemArgs, "Use or consume an inventory item"),
    ToolName.SPEAK: ToolSpec(ToolName.SPEAK, SpeakArgs, "Say something to a nearby character"),
    ToolName.INSPECT: ToolSpec(ToolName.INSPECT, InspectArgs, "Examine an entity, item or the surroundings"),
    ToolName.CRAFT: ToolSpec(ToolName.CRAFT, CraftArgs, "Craft an item from inventory ingredients"),
    ToolName.TRADE: ToolSpec(ToolName.TRADE, TradeArgs, "Trade an inventory item with a merchant"),
}

SUPPORTED_TOOLS: List[str] = [name.value for name in ToolName]


def tool_catalog_text() -> str:
    """Human-readable tool list for prompts."""

    lines = ["Available tools:"]
    for spec in TOOL_SPECS.values():
        fields = ", ".join(spec.args_model.model_fields)
        lines.append(f"- {spec.name.value}({fields}): {spec.description}")
    return "\n".join(lines)


@dataclass
class ToolInvocation:
    """Result of one invoke call; ``state`` is set only when the call succeeded."""

    result: ToolResult
    state: Optional[GameState] = None
    elapsed: float = 0.0


class ToolInvoker:
    """Validate, dispatch and time-bound tool calls against a game collaborator.

    Calls are never retried here. A timed-out call is cancelled and reported
    as a ``timeout`` result; the caller decides whether to try again on a
    later cycle.
    """

    def __init__(self, game: "GameCollaborator") -> None:
        self.game = game

    @staticmethod
    def resolve(tool_name: str) -> ToolName:
        try:
            return ToolName(tool_name.strip().lower())
        except ValueError as exc:
            raise UnsupportedTool(tool=tool_name, supported=SUPPORTED_TOOLS) from exc

    async def invoke(
        self,
        tool_name: str,
        args: Mapping[str, Any] | None,
        timeout: float,
        *,
        state: GameState,
    ) -> ToolInvocation:
        started = time.monotonic()

        try:
            tool = self.resolve(tool_name)
        except UnsupportedTool as exc:
            log_error(f"{LOG_TAG_ERROR} {exc}")
            return ToolInvocation(
                ToolResult.failure(tool_name, ToolErrorKind.UNSUPPORTED_TOOL, str(exc))
            )

        spec = TOOL_SPECS[tool]
        try:
            parsed = spec.args_model.model_validate(dict(args or {}))
        except ValidationError as exc:
            issues = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'args'}: {err['msg']}"
                for err in exc.errors(include_url=False)
            )
            return ToolInvocation(
                ToolResult.failure(tool.value, ToolErrorKind.INVALID_ARGUMENTS, issues)
            )

        log_deterministic(f"{LOG_TAG_DETERMINISTIC} tool {tool.value} {parsed.model_dump()}")

        try:
            outcome = await asyncio.wait_for(
                self.game.apply_tool(tool, parsed, state.model_copy(deep=True)),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            error = ToolTimeout(tool=tool.value, timeout=timeout)
            log_error(f"{LOG_TAG_ERROR} {error}")
            return ToolInvocation(
                ToolResult.failure(tool.value, ToolErrorKind.TIMEOUT, str(error)),
                elapsed=time.monotonic() - started,
            )
        except ToolExecutionError as exc:
            return ToolInvocation(
                ToolResult.failure(tool.value, ToolErrorKind.EXECUTION_FAILED, str(exc)),
                elapsed=time.monotonic() - started,
            )
        except Exception as exc:  # collaborator bug; must not crash the cycle
            log_error(f"{LOG_TAG_ERROR} tool {tool.value} raised {type(exc).__name__}: {exc}")
            return ToolInvocation(
                ToolResult.failure(
                    tool.value,
                    ToolErrorKind.EXECUTION_FAILED,
                    f"{type(exc).__name__}: {exc}",
                ),
                elapsed=time.monotonic() - started,
            )

        return ToolInvocation(
            ToolResult.success(tool.value, outcome.description, outcome.reward),
            state=outcome.state,
            elapsed=time.monotonic() - started,
        )


__all__ = [
    "MoveArgs",
    "InteractArgs",
    "AttackArgs",
    "UseItemArgs",
    "SpeakArgs",
    "InspectArgs",
    "CraftArgs",
    "TradeArgs",
    "ToolSpec",
    "TOOL_SPECS",
    "SUPPORTED_TOOLS",
    "ToolInvocation",
    "ToolInvoker",
    "tool_catalog_text",
]
