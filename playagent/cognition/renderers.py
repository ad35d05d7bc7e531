"""Situation classification and prompt rendering."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, Optional, Sequence

from playagent.config import Config
from playagent.schemas import GameState
from playagent.tools import tool_catalog_text

from .prompts import DEFAULT_PROMPTS, PromptLibrary, PromptTemplate

if TYPE_CHECKING:
    from playagent.sessions import Session

    from .providers import ProviderFragment


class Situation(str, Enum):
    EMERGENCY = "emergency"
    COMBAT = "combat"
    SOCIAL = "social"
    QUEST = "quest"
    EXPLORATION = "exploration"
    GENERIC = "generic"


# Stats that end the run when they hit zero.
VITAL_RESOURCES = ("food", "water", "oxygen", "stamina")

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_]+)\s*\}\}")
_EXTRA_BLANK_LINES = re.compile(r"\n{3,}")


def classify_situation(state: GameState, *, emergency_ratio: Optional[float] = None) -> Situation:
    """Pick exactly one situation: emergency > combat > social > quest > exploration > generic."""

    threshold = Config.EMERGENCY_HEALTH_RATIO if emergency_ratio is None else emergency_ratio
    if state.health_ratio() < threshold:
        return Situation.EMERGENCY
    if any(key in state.stats and state.stats[key] <= 0 for key in VITAL_RESOURCES):
        return Situation.EMERGENCY
    if state.hostile_entities():
        return Situation.COMBAT
    if state.dialogue is not None or state.npc_entities():
        return Situation.SOCIAL
    if state.open_quests():
        return Situation.QUEST
    if state.points_of_interest():
        return Situation.EXPLORATION
    return Situation.GENERIC


@dataclass
class RenderedPrompt:
    system: str
    user: str
    template: str = Situation.GENERIC.value
    situation: Situation = Situation.GENERIC

    @property
    def text(self) -> str:
        return f"{self.system}\n\n{self.user}"


def _names(entities) -> str:
    return ", ".join(entity.display_name for entity in entities)


class TemplateEngine:
    """Select the situation template for a session and fill it in.

    Placeholders use ``{{double_brace}}`` syntax so JSON examples inside a
    template survive untouched. Any placeholder left after substitution
    renders as an empty string.
    """

    def __init__(
        self,
        library: Optional[PromptLibrary] = None,
        *,
        emergency_ratio: Optional[float] = None,
    ) -> None:
        self.library = library or DEFAULT_PROMPTS
        self.emergency_ratio = emergency_ratio

    def classify(self, state: GameState) -> Situation:
        return classify_situation(state, emergency_ratio=self.emergency_ratio)

    def template_for(self, situation: Situation) -> PromptTemplate:
        try:
            return self.library.get(situation.value)
        except KeyError:
            try:
                return DEFAULT_PROMPTS.get(situation.value)
            except KeyError:
                return DEFAULT_PROMPTS.get(Situation.GENERIC.value)

    def render(
        self,
        session: "Session",
        fragments: Sequence["ProviderFragment"],
        *,
        tool_feedback: Optional[str] = None,
    ) -> RenderedPrompt:
        state = session.game_state
        personality = session.config.personality
        situation = self.classify(state)
        template = self.template_for(situation)

        prefs = personality.preferences
        open_quests = state.open_quests()
        replacements: Dict[str, str] = {
            "agent_name": personality.name,
            "traits": ", ".join(personality.traits),
            "play_style": personality.play_style.value,
            "primary_goal": personality.goals.primary,
            "secondary_goals": ", ".join(personality.goals.secondary),
            "risk_tolerance": f"{prefs.risk_tolerance:.0%}",
            "exploration": f"{prefs.exploration_vs_exploitation:.0%}",
            "social": f"{prefs.social_interaction:.0%}",
            "completionism": f"{prefs.completionism_level:.0%}",
            "system_prompt": personality.system_prompt,
            "environment": state.environment,
            "health_percent": f"{state.health_ratio() * 100:.0f}",
            "hostiles": _names(state.hostile_entities()),
            "npcs": state.dialogue.npc_name if state.dialogue else _names(state.npc_entities()),
            "quest_name": open_quests[0].name if open_quests else "",
            "points_of_interest": _names(state.points_of_interest()),
            "tool_catalog": tool_catalog_text(),
            "tool_feedback": tool_feedback or "",
            "provider_context": "\n\n".join(f.text for f in fragments if f.text),
        }
        for fragment in fragments:
            replacements[f"{fragment.name}_context"] = fragment.text

        return RenderedPrompt(
            system=_substitute(template.system, replacements),
            user=_substitute(template.user, replacements),
            template=template.name,
            situation=situation,
        )


def _substitute(text: str, replacements: Dict[str, str]) -> str:
    # Single pass over the template only; substituted values are never rescanned.
    text = _PLACEHOLDER.sub(lambda match: replacements.get(match.group(1), ""), text)
    return _EXTRA_BLANK_LINES.sub("\n\n", text).strip()
