"""
Scenario loading for JSON-defined sessions.

A scenario bundles one agent configuration with the game state it starts
in, so a session can be created from data instead of Python code.

Scenario file structure:
```json
{
  "name": "Goblin Cave",
  "description": "...",
  "agent": {
    "agent_id": "rook",
    "model": "gpt-4o-mini",
    "max_autonomous_actions": 5,
    "personality": {"name": "Rook", "play_style": "cautious", ...}
  },
  "game_state": {
    "environment": "cave_entrance",
    "stats": {"health": 80, "max_health": 100},
    "entities": [...],
    "inventory": [...]
  }
}
```

Usage:
    loader = ScenarioLoader()
    config, game_state = loader.load("goblin_cave")
    session_id = runtime.create_session(config, game_state)
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from .config import Config
from .schemas import AgentConfig, GameState

REQUIRED_FIELDS = ("agent", "game_state")


class ScenarioLoader:
    """Load and validate scenarios from a directory of JSON files.

    Directory structure:
    - Default: {PROJECT_ROOT}/examples/scenarios/
    - Override via constructor: ScenarioLoader(Path("/custom/scenarios"))
    - Scenario files: {scenario_name}.json

    Raises ValueError for missing blocks or invalid fields, so problems
    surface at load time rather than mid-session.
    """

    def __init__(self, scenarios_dir: Optional[Path] = None):
        self.scenarios_dir = Path(scenarios_dir) if scenarios_dir else (Config.PROJECT_ROOT / "examples" / "scenarios")

    def load(self, scenario_name: str) -> Tuple[AgentConfig, GameState]:
        """Load a scenario by name (without the .json extension).

        Raises:
            FileNotFoundError: If the scenario file does not exist
            ValueError: If the JSON is malformed or fails validation
        """
        path = self.scenarios_dir / f"{scenario_name}.json"
        if not path.exists():
            raise FileNotFoundError(f"Scenario not found: {path}")
        return load_scenario(path)

    @staticmethod
    def parse(data: Dict[str, Any]) -> Tuple[AgentConfig, GameState]:
        """Build (AgentConfig, GameState) from an already-decoded scenario."""

        if not isinstance(data, dict):
            raise ValueError("Scenario must be a JSON object")
        missing = [field for field in REQUIRED_FIELDS if field not in data]
        if missing:
            raise ValueError(f"Scenario missing required fields: {', '.join(missing)}")

        # model, tool_timeout and max_autonomous_actions default from Config
        try:
            config = AgentConfig.model_validate(data["agent"])
        except ValidationError as exc:
            raise ValueError(f"Invalid agent block: {exc}") from exc
        try:
            game_state = GameState.model_validate(data["game_state"])
        except ValidationError as exc:
            raise ValueError(f"Invalid game_state block: {exc}") from exc
        return config, game_state


def load_scenario(path: Path | str) -> Tuple[AgentConfig, GameState]:
    """Load a scenario file from an explicit path."""

    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Scenario {path.name} is not valid JSON: {exc}") from exc
    return ScenarioLoader.parse(data)


__all__ = ["ScenarioLoader", "load_scenario"]
