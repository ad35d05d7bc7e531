"""Cognition stack for playagent.

Providers gather read-only context, the template engine turns it into a
situation-specific prompt, a model client streams reasoning and tool calls,
and evaluators turn the finished decision into reward and memories.
"""

from .providers import (
    Provider,
    ProviderFragment,
    ProviderPipeline,
    GameStateProvider,
    GoalsProvider,
    MemoryProvider,
    SocialProvider,
    HistoryProvider,
    default_providers,
)
from .prompts import PromptLibrary, PromptTemplate, DEFAULT_PROMPTS
from .renderers import Situation, RenderedPrompt, TemplateEngine, classify_situation
from .executor import ModelClient, ModelEvent, ModelRequest, RuleBasedModelClient, TextDelta
from .llm import LLMModelClient, ModelTurn, resolve_provider
from .evaluators import (
    Evaluator,
    EvaluatorOutput,
    EvaluationResult,
    EvaluatorPipeline,
    OutcomeEvaluator,
    GoalProgressEvaluator,
    RiskEvaluator,
    EfficiencyEvaluator,
    NoveltyEvaluator,
    default_evaluators,
)

__all__ = [
    "Provider",
    "ProviderFragment",
    "ProviderPipeline",
    "GameStateProvider",
    "GoalsProvider",
    "MemoryProvider",
    "SocialProvider",
    "HistoryProvider",
    "default_providers",
    "PromptLibrary",
    "PromptTemplate",
    "DEFAULT_PROMPTS",
    "Situation",
    "RenderedPrompt",
    "TemplateEngine",
    "classify_situation",
    "ModelClient",
    "ModelEvent",
    "ModelRequest",
    "RuleBasedModelClient",
    "TextDelta",
    "LLMModelClient",
    "ModelTurn",
    "resolve_provider",
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
