"""Prompt templates for each situation the agent can be in."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List


@dataclass
class PromptTemplate:
    """Represents a templated prompt with ``{{placeholder}}`` slots."""

    name: str
    system: str
    user: str
    description: str = ""


class PromptLibrary:
    """Container for named prompt templates."""

    def __init__(self) -> None:
        self.templates: Dict[str, PromptTemplate] = {}

    def register(self, template: PromptTemplate) -> None:
        self.templates[template.name] = template

    def get(self, name: str) -> PromptTemplate:
        return self.templates[name]

    def names(self) -> List[str]:
        return list(self.templates)

    def copy(self) -> "PromptLibrary":
        clone = PromptLibrary()
        clone.templates = dict(self.templates)
        return clone


# Shared pieces ----------------------------------------------------------------

_SYSTEM = (
    "You are {{agent_name}}, an autonomous agent playing a game.\n"
    "Personality traits: {{traits}}\n"
    "Play style: {{play_style}}\n"
    "Primary goal: {{primary_goal}}\n"
    "Secondary goals: {{secondary_goals}}\n"
    "Preferences: risk tolerance {{risk_tolerance}}, exploration {{exploration}}, "
    "social interaction {{social}}, completionism {{completionism}}.\n"
    "{{system_prompt}}\n\n"
    "Think briefly about the situation, then call one or more tools. Respond with JSON "
    "matching this shape:\n"
    "{\"reasoning\": \"short explanation\", \"tool_calls\": [{\"tool\": \"move\", \"arguments\": {\"direction\": \"north\"}}]}"
)

_CONTEXT = (
    "Game state:\n{{game_state_context}}\n\n"
    "Goals:\n{{goals_context}}\n\n"
    "Memories:\n{{memory_context}}\n\n"
    "Social:\n{{social_context}}\n\n"
    "Recent actions:\n{{history_context}}\n\n"
    "{{tool_catalog}}\n\n"
    "{{tool_feedback}}"
)


DEFAULT_PROMPTS = PromptLibrary()

DEFAULT_PROMPTS.register(
    PromptTemplate(
        name="emergency",
        system=_SYSTEM,
        user=(
            "EMERGENCY: your health is at {{health_percent}}%. Survival comes first.\n"
            "Heal with an item, retreat away from threats, or remove the immediate danger. "
            "Do not start new objectives until you are safe.\n\n" + _CONTEXT
        ),
        description="Low health or a depleted vital resource.",
    )
)

DEFAULT_PROMPTS.register(
    PromptTemplate(
        name="combat",
        system=_SYSTEM,
        user=(
            "Hostile entities nearby: {{hostiles}}.\n"
            "Decide whether to fight, defend or disengage, weighing your risk tolerance "
            "against the threat.\n\n" + _CONTEXT
        ),
        description="Hostile entities are visible.",
    )
)

DEFAULT_PROMPTS.register(
    PromptTemplate(
        name="social",
        system=_SYSTEM,
        user=(
            "You are near {{npcs}}.\n"
            "Consider what you can learn or gain from them: talk, trade or ask for help. "
            "Keep the conversation in character.\n\n" + _CONTEXT
        ),
        description="An NPC is nearby or a conversation is active.",
    )
)

DEFAULT_PROMPTS.register(
    PromptTemplate(
        name="quest",
        system=_SYSTEM,
        user=(
            "Active quest: {{quest_name}}.\n"
            "Choose the action that advances the next unfinished objective.\n\n" + _CONTEXT
        ),
        description="An active quest has unfinished objectives.",
    )
)

DEFAULT_PROMPTS.register(
    PromptTemplate(
        name="exploration",
        system=_SYSTEM,
        user=(
            "Points of interest in view: {{points_of_interest}}.\n"
            "Investigate, collect useful items, and map out {{environment}}.\n\n" + _CONTEXT
        ),
        description="Nothing urgent; unexplored things are in view.",
    )
)

DEFAULT_PROMPTS.register(
    PromptTemplate(
        name="generic",
        system=_SYSTEM,
        user=(
            "Nothing pressing is happening in {{environment}}.\n"
            "Pick the action that best serves your goals.\n\n" + _CONTEXT
        ),
        description="Fallback template.",
    )
)
