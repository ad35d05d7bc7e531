"""
Game collaborator interface and an in-process simulated game.

The runtime never owns game physics. Tools are forwarded to a
GameCollaborator which applies them and returns the resulting GameState.
Users subclass GameCollaborator to bridge a real game client (websocket,
engine plugin, HTTP API); SimulatedGame is a small deterministic world used
for offline sessions, examples and tests.

Design principle: if the game can answer it, ask the game, not the model.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict

from pydantic import BaseModel

from playagent.errors import ToolExecutionError
from playagent.schemas import (
    DialogueContext,
    GameEvent,
    GameState,
    InventoryItem,
    Position,
    ToolName,
    utc_now,
)
from playagent.tools import (
    AttackArgs,
    CraftArgs,
    InspectArgs,
    InteractArgs,
    MoveArgs,
    SpeakArgs,
    TradeArgs,
    UseItemArgs,
)


@dataclass
class ToolOutcome:
    """What a collaborator reports back for one applied tool."""

    description: str
    reward: float
    state: GameState


class GameCollaborator(ABC):
    """Abstract bridge between the agent runtime and a game.

    Core responsibilities:
    1. apply_tool() - perform one validated tool call and return the new state
    2. Lifecycle hooks - on_session_start(), on_session_end()

    ``apply_tool`` receives a private deep copy of the session's state and may
    modify it freely. Raise ToolExecutionError when the action is impossible
    (unknown target, missing item); the invoker reports it as a failed tool
    result.
    """

    @abstractmethod
    async def apply_tool(self, tool: ToolName, args: BaseModel, state: GameState) -> ToolOutcome:
        """Apply one tool call and return the outcome with the updated state."""

    def on_session_start(self, session_id: str, state: GameState) -> None:
        """Hook called once when a session is created."""

    def on_session_end(self, session_id: str, state: GameState) -> None:
        """Hook called once when a session ends or expires."""


DIRECTIONS: Dict[str, tuple[float, float, float]] = {
    "north": (0.0, 1.0, 0.0),
    "south": (0.0, -1.0, 0.0),
    "east": (1.0, 0.0, 0.0),
    "west": (-1.0, 0.0, 0.0),
    "up": (0.0, 0.0, 1.0),
    "down": (0.0, 0.0, -1.0),
}

ATTACK_DAMAGE = {"melee": 10.0, "ranged": 8.0, "magic": 12.0}
MAGIC_MANA_COST = 5.0

# recipe id -> ingredients (item id -> quantity) and result name
DEFAULT_RECIPES: Dict[str, Dict[str, Any]] = {
    "torch": {"ingredients": {"stick": 1, "cloth": 1}, "name": "Torch"},
    "health_potion": {
        "ingredients": {"herb": 2, "water_flask": 1},
        "name": "Health Potion",
        "properties": {"heal": 30},
    },
    "bandage": {"ingredients": {"cloth": 2}, "name": "Bandage", "properties": {"heal": 10}},
}

REWARDS = {
    ToolName.MOVE: 0.1,
    ToolName.INTERACT: 1.0,
    ToolName.ATTACK: 5.0,
    ToolName.USE_ITEM: 2.0,
    ToolName.SPEAK: 1.5,
    ToolName.INSPECT: 0.2,
    ToolName.CRAFT: 2.5,
    ToolName.TRADE: 1.0,
}


class SimulatedGame(GameCollaborator):
    """Deterministic text-adventure physics for the eight tools.

    Entities carry their own numbers in ``properties``: ``health`` and
    ``damage`` for combatants, ``items`` for containers, ``inventory`` for
    traders, ``description`` for anything inspectable.
    """

    async def apply_tool(self, tool: ToolName, args: BaseModel, state: GameState) -> ToolOutcome:
        handler = getattr(self, f"_{tool.value}")
        description = handler(args, state)
        return ToolOutcome(description=description, reward=REWARDS[tool], state=state)

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def _record(state: GameState, event_type: str, description: str) -> None:
        state.recent_events.append(
            GameEvent(type=event_type, description=description, timestamp=utc_now())
        )
        # Keep the game-side event window short.
        del state.recent_events[:-10]

    @staticmethod
    def _require_entity(state: GameState, target: str):
        entity = state.find_entity(target)
        if entity is None:
            raise ToolExecutionError(f"Entity '{target}' not found")
        return entity

    @staticmethod
    def _add_item(state: GameState, item_id: str, name: str, quantity: int, properties=None) -> None:
        existing = state.find_item(item_id)
        if existing is not None:
            existing.quantity += quantity
            return
        state.inventory.append(
            InventoryItem(id=item_id, name=name, quantity=quantity, properties=dict(properties or {}))
        )

    @staticmethod
    def _remove_item(state: GameState, item_id: str, quantity: int) -> InventoryItem:
        item = state.find_item(item_id)
        if item is None or item.quantity < quantity:
            raise ToolExecutionError(f"Item '{item_id}' not in inventory (need {quantity})")
        item.quantity -= quantity
        if item.quantity <= 0:
            state.inventory.remove(item)
        return item

    # -- tools --------------------------------------------------------------

    def _move(self, args: MoveArgs, state: GameState) -> str:
        dx, dy, dz = DIRECTIONS[args.direction]
        current = state.position or Position()
        state.position = Position(
            x=current.x + dx * args.distance,
            y=current.y + dy * args.distance,
            z=current.z + dz * args.distance,
        )
        message = f"Moved {args.direction} {args.distance:g} unit(s)"
        self._record(state, "movement", message)
        return message

    def _interact(self, args: InteractArgs, state: GameState) -> str:
        entity = self._require_entity(state, args.target)
        items = entity.properties.pop("items", None) or []
        for raw in items:
            self._add_item(
                state,
                raw["id"],
                raw.get("name", raw["id"]),
                int(raw.get("quantity", 1)),
                raw.get("properties"),
            )
        if items:
            names = ", ".join(raw.get("name", raw["id"]) for raw in items)
            message = f"{args.action.title()} {entity.display_name}: found {names}"
        else:
            message = f"{args.action.title()} {entity.display_name}"
        self._record(state, "interaction", message)
        return message

    def _attack(self, args: AttackArgs, state: GameState) -> str:
        entity = self._require_entity(state, args.target)
        if args.attack_type == "magic":
            mana = state.stats.get("mana", 0.0)
            if mana < MAGIC_MANA_COST:
                raise ToolExecutionError("Not enough mana for a magic attack")
            state.stats["mana"] = mana - MAGIC_MANA_COST

        damage = ATTACK_DAMAGE[args.attack_type]
        remaining = float(entity.properties.get("health", damage)) - damage
        if remaining <= 0:
            state.entities.remove(entity)
            message = f"Defeated {entity.display_name} with a {args.attack_type} attack"
            self._record(state, "combat", message)
            return message

        entity.properties["health"] = remaining
        message = f"Hit {entity.display_name} for {damage:g} ({args.attack_type}); {remaining:g} health left"
        if entity.is_hostile:
            counter = float(entity.properties.get("damage", 5.0))
            state.stats["health"] = max(0.0, state.stats.get("health", 100.0) - counter)
            message += f"; took {counter:g} damage in return"
        self._record(state, "combat", message)
        return message

    def _use_item(self, args: UseItemArgs, state: GameState) -> str:
        item = self._remove_item(state, args.item, 1)
        heal = item.properties.get("heal")
        if heal:
            max_health = state.stats.get("max_health", 100.0)
            state.stats["health"] = min(max_health, state.stats.get("health", max_health) + float(heal))
            message = f"Used {item.name} and recovered {float(heal):g} health"
        else:
            message = f"Used {item.name}"
            if args.target:
                message += f" on {args.target}"
        self._record(state, "item", message)
        return message

    def _speak(self, args: SpeakArgs, state: GameState) -> str:
        entity = self._require_entity(state, args.target)
        if state.dialogue is None or state.dialogue.npc_id != entity.id:
            state.dialogue = DialogueContext(npc_id=entity.id, npc_name=entity.display_name)
        state.dialogue.conversation_history.append(f"Agent: {args.message}")
        reply = entity.properties.get("reply")
        if reply:
            state.dialogue.conversation_history.append(f"{entity.display_name}: {reply}")
        state.relationships.setdefault(entity.id, "acquainted")
        message = f"Said to {entity.display_name}: {args.message}"
        self._record(state, "dialogue", message)
        return message

    def _inspect(self, args: InspectArgs, state: GameState) -> str:
        if args.target.lower() in ("surroundings", "area", state.environment.lower()):
            seen = ", ".join(entity.display_name for entity in state.entities) or "nothing notable"
            if state.environment not in state.discovered_locations:
                state.discovered_locations.append(state.environment)
            return f"{state.environment}: {seen}"

        entity = state.find_entity(args.target)
        if entity is not None:
            return entity.properties.get("description") or f"{entity.display_name} ({entity.type})"

        item = state.find_item(args.target)
        if item is not None:
            return item.properties.get("description") or f"{item.name} x{item.quantity}"

        raise ToolExecutionError(f"Nothing called '{args.target}' to inspect")

    def _craft(self, args: CraftArgs, state: GameState) -> str:
        recipes = {**DEFAULT_RECIPES, **state.metadata.get("recipes", {})}
        recipe = recipes.get(args.recipe)
        if recipe is None:
            raise ToolExecutionError(f"Unknown recipe '{args.recipe}'")

        ingredients: Dict[str, int] = recipe.get("ingredients", {})
        for item_id, needed in ingredients.items():
            item = state.find_item(item_id)
            if item is None or item.quantity < needed * args.quantity:
                raise ToolExecutionError(f"Missing ingredient '{item_id}' for {args.recipe}")
        for item_id, needed in ingredients.items():
            self._remove_item(state, item_id, needed * args.quantity)

        name = recipe.get("name", args.recipe)
        self._add_item(state, args.recipe, name, args.quantity, recipe.get("properties"))
        message = f"Crafted {args.quantity} x {name}"
        self._record(state, "crafting", message)
        return message

    def _trade(self, args: TradeArgs, state: GameState) -> str:
        trader = self._require_entity(state, args.target)
        if not trader.is_npc:
            raise ToolExecutionError(f"{trader.display_name} does not trade")

        stock = trader.properties.setdefault("inventory", [])
        wanted = next(
            (raw for raw in stock if raw.get("id") == args.request and int(raw.get("quantity", 1)) >= args.quantity),
            None,
        )
        if wanted is None:
            raise ToolExecutionError(f"{trader.display_name} has no '{args.request}' to trade")

        given = self._remove_item(state, args.offer, args.quantity)
        wanted["quantity"] = int(wanted.get("quantity", 1)) - args.quantity
        if wanted["quantity"] <= 0:
            stock.remove(wanted)
        stock.append({"id": given.id, "name": given.name, "quantity": args.quantity})

        self._add_item(
            state,
            args.request,
            wanted.get("name", args.request),
            args.quantity,
            wanted.get("properties"),
        )
        state.relationships[trader.id] = "trading partner"
        message = f"Traded {given.name} to {trader.display_name} for {wanted.get('name', args.request)}"
        self._record(state, "trade", message)
        return message


__all__ = ["GameCollaborator", "SimulatedGame", "ToolOutcome", "DEFAULT_RECIPES", "REWARDS"]
