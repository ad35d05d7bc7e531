"""Post-decision evaluators.

Five evaluators run after every decision, always in this order: outcome,
goal_progress, risk, efficiency, novelty. Each returns a reward delta and
memory entries; an evaluator that raises contributes nothing and is recorded
as an ``error`` event. ``EvaluatorPipeline.commit`` is the only code that
changes a session's cumulative reward.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from playagent.config import Config
from playagent.errors import EvaluatorFailure
from playagent.logging_utils import LOG_TAG_DETERMINISTIC, LOG_TAG_ERROR, log_deterministic, log_error
from playagent.schemas import (
    Decision,
    ErrorPayload,
    EvaluatorInsightPayload,
    GameState,
    MemoryEntry,
)

if TYPE_CHECKING:
    from playagent.sessions import Session


FAILED_CALL_PENALTY = -0.5
REDUNDANT_ACTION_PENALTY = -0.5
IDLE_CYCLE_PENALTY = -0.25


@dataclass
class EvaluatorOutput:
    reward: float = 0.0
    memories: List[MemoryEntry] = field(default_factory=list)
    insight: str = ""


@dataclass
class EvaluationResult:
    memory_delta: List[MemoryEntry] = field(default_factory=list)
    reward_delta: float = 0.0
    insights: Dict[str, str] = field(default_factory=dict)


class Evaluator(ABC):
    name: str = ""

    @abstractmethod
    def evaluate(
        self,
        session: "Session",
        decision: Decision,
        previous_state: Optional[GameState],
    ) -> EvaluatorOutput:
        """Score a completed decision. Must not mutate the session."""


class OutcomeEvaluator(Evaluator):
    """Did the tool calls do what the agent asked for?"""

    name = "outcome"

    def evaluate(self, session, decision, previous_state):
        if not decision.tool_calls:
            return EvaluatorOutput(insight="No tool calls were made.")

        reward = 0.0
        memories: List[MemoryEntry] = []
        known = {entry.content for entry in session.memory.recent(20)}
        succeeded = 0

        for record in decision.tool_calls:
            result = record.result
            if result.ok:
                succeeded += 1
                reward += result.reward_hint
                if result.reward_hint >= 2.0:
                    content = f"{result.tool} worked well: {result.value}"
                    if content not in known:
                        memories.append(
                            MemoryEntry(content=content, importance=5, tags=("success", f"tool:{result.tool}"))
                        )
                        known.add(content)
            else:
                reward += FAILED_CALL_PENALTY
                content = f"Avoid repeating {result.tool} blindly: {result.message}"
                if content not in known:
                    memories.append(
                        MemoryEntry(
                            content=content,
                            importance=6,
                            tags=("lesson", f"tool:{result.tool}", result.error_kind.value),
                        )
                    )
                    known.add(content)

        total = len(decision.tool_calls)
        return EvaluatorOutput(
            reward=reward,
            memories=memories,
            insight=f"{succeeded}/{total} tool calls succeeded.",
        )


class GoalProgressEvaluator(Evaluator):
    """Reward newly completed quest objectives and finished quests."""

    name = "goal_progress"

    def evaluate(self, session, decision, previous_state):
        if previous_state is None:
            return EvaluatorOutput(insight="No previous state to compare.")

        before = {quest.id: quest for quest in previous_state.active_quests}
        weight = 0.5 + session.config.personality.preferences.completionism_level
        reward = 0.0
        memories: List[MemoryEntry] = []
        notes: List[str] = []

        for quest in session.game_state.active_quests:
            prior = before.get(quest.id)
            if prior is None:
                notes.append(f"new quest '{quest.name}'")
                memories.append(
                    MemoryEntry(
                        content=f"Picked up quest '{quest.name}': {quest.description}".rstrip(": "),
                        importance=6,
                        tags=("goal", f"quest:{quest.id}"),
                    )
                )
                continue

            prior_objectives = {objective.id: objective for objective in prior.objectives}
            for objective in quest.objectives:
                old = prior_objectives.get(objective.id)
                if old is None:
                    continue
                if objective.completed and not old.completed:
                    reward += 2.0 * weight
                    notes.append(f"completed '{objective.description}'")
                    memories.append(
                        MemoryEntry(
                            content=f"Completed objective '{objective.description}' for quest '{quest.name}'",
                            importance=7,
                            tags=("goal", f"quest:{quest.id}"),
                        )
                    )
                elif objective.progress > old.progress:
                    reward += 0.5 * weight * (objective.progress - old.progress) / objective.target

            if quest.is_complete and not prior.is_complete:
                reward += 5.0 * weight
                notes.append(f"finished quest '{quest.name}'")
                memories.append(
                    MemoryEntry(
                        content=f"Finished quest '{quest.name}'",
                        importance=8,
                        tags=("goal", f"quest:{quest.id}", "quest_complete"),
                    )
                )

        insight = "; ".join(notes) if notes else "No measurable goal progress."
        return EvaluatorOutput(reward=reward, memories=memories, insight=insight)


class RiskEvaluator(Evaluator):
    """Penalize damage taken, scaled by how little risk the agent tolerates."""

    name = "risk"

    def evaluate(self, session, decision, previous_state):
        if previous_state is None:
            return EvaluatorOutput(insight="No previous state to compare.")

        state = session.game_state
        max_health = state.stats.get("max_health") or 100.0
        before = previous_state.stats.get("health")
        after = state.stats.get("health")
        if before is None or after is None:
            return EvaluatorOutput(insight="Health is not tracked.")

        action = decision.action.describe() if decision.action else "waiting"
        delta = after - before
        tolerance = session.config.personality.preferences.risk_tolerance

        if delta < 0:
            damage = -delta
            reward = -(damage / max_health) * 10.0 * (1.5 - tolerance)
            memories: List[MemoryEntry] = []
            if after <= 0:
                memories.append(
                    MemoryEntry(
                        content=f"Was defeated while {action}",
                        importance=10,
                        tags=("risk", "defeat"),
                    )
                )
            elif damage >= 0.1 * max_health:
                memories.append(
                    MemoryEntry(
                        content=f"Took {damage:g} damage while {action} in {state.environment}",
                        importance=7,
                        tags=("risk", "damage"),
                    )
                )
            return EvaluatorOutput(
                reward=reward,
                memories=memories,
                insight=f"Lost {damage:g} health ({after:g}/{max_health:g} left).",
            )

        if delta > 0 and previous_state.health_ratio() < Config.EMERGENCY_HEALTH_RATIO:
            return EvaluatorOutput(reward=1.0, insight=f"Recovered {delta:g} health out of danger.")

        return EvaluatorOutput(insight="No damage taken.")


class EfficiencyEvaluator(Evaluator):
    """Penalize idle cycles and repeating an action that just failed or changed nothing."""

    name = "efficiency"

    def evaluate(self, session, decision, previous_state):
        history = session.history_tail(Config.HISTORY_WINDOW)
        rating = _efficiency_rating(history)

        if decision.action is None:
            return EvaluatorOutput(
                reward=IDLE_CYCLE_PENALTY,
                insight=f"Cycle produced no action; efficiency {rating}.",
            )

        last = history[-1] if history else None
        unchanged = previous_state is not None and previous_state == session.game_state
        if last is not None and last.action == decision.action and (not last.succeeded or unchanged):
            action = decision.action.describe()
            return EvaluatorOutput(
                reward=REDUNDANT_ACTION_PENALTY,
                memories=[
                    MemoryEntry(
                        content=f"Repeating {action} achieved nothing; try something else",
                        importance=5,
                        tags=("lesson", "redundant"),
                    )
                ],
                insight=f"Redundant action {action}; efficiency {rating}.",
            )

        return EvaluatorOutput(insight=f"Efficiency {rating}.")


def _efficiency_rating(history: Sequence[Decision]) -> str:
    if not history:
        return "fair"
    average = sum(decision.reward_delta for decision in history) / len(history)
    if average > 2:
        return "excellent"
    if average > 1:
        return "good"
    if average > 0:
        return "fair"
    return "poor"


class NoveltyEvaluator(Evaluator):
    """Reward entities and locations the agent has not recorded before."""

    name = "novelty"

    def evaluate(self, session, decision, previous_state):
        state = session.game_state
        weight = 0.5 + session.config.personality.preferences.exploration_vs_exploitation
        memories: List[MemoryEntry] = []
        seen: set[str] = set()

        locations = [state.environment, *state.discovered_locations]
        for location in locations:
            tag = f"location:{location}"
            if location == "unknown" or tag in seen or session.memory.has_tag(tag):
                continue
            seen.add(tag)
            memories.append(
                MemoryEntry(content=f"Reached {location}", importance=5, tags=("discovery", tag))
            )

        for entity in state.entities:
            tag = f"entity:{entity.id}"
            if tag in seen or session.memory.has_tag(tag):
                continue
            seen.add(tag)
            kind = "hostile " + entity.type if entity.is_hostile else entity.type
            memories.append(
                MemoryEntry(
                    content=f"Discovered {entity.display_name} ({kind}) in {state.environment}",
                    importance=4,
                    tags=("discovery", tag),
                )
            )

        if not memories:
            return EvaluatorOutput(insight="Nothing new discovered.")
        return EvaluatorOutput(
            reward=0.5 * weight * len(memories),
            memories=memories,
            insight=f"Discovered {len(memories)} new thing(s).",
        )


def default_evaluators() -> List[Evaluator]:
    return [
        OutcomeEvaluator(),
        GoalProgressEvaluator(),
        RiskEvaluator(),
        EfficiencyEvaluator(),
        NoveltyEvaluator(),
    ]


class EvaluatorPipeline:
    """Run the five evaluators in order and apply their combined result."""

    def __init__(self, evaluators: Optional[Sequence[Evaluator]] = None) -> None:
        self.evaluators: List[Evaluator] = list(evaluators) if evaluators is not None else default_evaluators()

    def evaluate(
        self,
        session: "Session",
        decision: Decision,
        previous_state: Optional[GameState] = None,
    ) -> EvaluationResult:
        result = EvaluationResult()
        for evaluator in self.evaluators:
            try:
                output = evaluator.evaluate(session, decision, previous_state)
            except Exception as exc:
                failure = EvaluatorFailure(evaluator=evaluator.name, cause=exc)
                log_error(f"{LOG_TAG_ERROR} {failure}")
                session.event_log.append(
                    ErrorPayload(
                        error_kind="evaluator_failure",
                        component=evaluator.name,
                        message=str(failure),
                    ),
                    source=evaluator.name,
                )
                continue

            result.reward_delta += output.reward
            result.memory_delta.extend(output.memories)
            result.insights[evaluator.name] = output.insight
            session.event_log.append(
                EvaluatorInsightPayload(
                    evaluator=evaluator.name,
                    insight=output.insight,
                    reward_delta=output.reward,
                    memories=[entry.content for entry in output.memories],
                ),
                source=evaluator.name,
            )
            log_deterministic(
                f"{LOG_TAG_DETERMINISTIC} {evaluator.name}: {output.reward:+.2f} {output.insight}"
            )
        return result

    def commit(self, session: "Session", result: EvaluationResult) -> None:
        session.memory.extend(result.memory_delta)
        session.add_reward(result.reward_delta)


__all__ = [
    "Evaluator",
    "EvaluatorOutput",
    "EvaluationResult",
    "EvaluatorPipeline",
    "OutcomeEvaluator",
    "GoalProgressEvaluator",
    "RiskEvaluator",
    "EfficiencyEvaluator",
    "NoveltyEvaluator",
    "default_evaluators",
]
