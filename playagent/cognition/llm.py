"""LLM-backed model client."""

from __future__ import annotations

import re
from typing import AsyncIterator, List, Optional, Tuple

from pydantic import BaseModel, Field

from playagent.config import Config
from playagent.llm_utils import call_llm_with_retries
from playagent.logging_utils import LOG_TAG_LLM, debug_llm_enabled, log_llm
from playagent.schemas import ToolCallRequest

from .executor import ModelEvent, ModelRequest, TextDelta


KNOWN_PROVIDERS = frozenset({"openai", "anthropic", "ollama", "google", "groq", "mistral", "xai"})

_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")


class ModelTurn(BaseModel):
    """Structured reply expected from the model for one reasoning step."""

    reasoning: str = Field(..., description="Short explanation of the chosen action")
    tool_calls: List[ToolCallRequest] = Field(
        default_factory=list, description="Tool calls to execute, in order"
    )


def resolve_provider(model: str, default: Optional[str] = None) -> Tuple[str, str]:
    """Split a model identifier into (provider, model name).

    Accepts ``provider:model`` identifiers (``ollama:llama3.1:8b``) and infers
    the provider from well-known model prefixes otherwise.
    """

    prefix, sep, rest = model.partition(":")
    if sep and prefix.lower() in KNOWN_PROVIDERS:
        return prefix.lower(), rest

    lowered = model.lower()
    if lowered.startswith(("gpt", "o1", "o3", "o4", "chatgpt")):
        return "openai", model
    if lowered.startswith("claude"):
        return "anthropic", model
    return (default or Config.LLM_PROVIDER).lower(), model


def split_reasoning(text: str) -> List[str]:
    return [part for part in _SENTENCE_BREAK.split(text.strip()) if part]


class LLMModelClient:
    """Model client that asks an LLM for a ``ModelTurn`` and streams it back.

    The structured reply is validated (with retries) before anything is
    yielded, so callers never see half a tool call. Reasoning is emitted
    sentence by sentence when the agent is configured for streaming.
    """

    def __init__(
        self,
        *,
        provider: Optional[str] = None,
        max_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.provider = provider
        self.max_attempts = max_attempts
        self.timeout = timeout

    def uses_llm(self) -> bool:
        return True

    async def stream(self, request: ModelRequest) -> AsyncIterator[ModelEvent]:
        if self.provider:
            provider, model = self.provider, request.model
        else:
            provider, model = resolve_provider(request.model)

        debug_llm = debug_llm_enabled()
        if debug_llm:
            print(f"\n{'='*80}")
            print(f"[LLM] {request.personality.name} cycle {request.cycle} step {request.step} ({request.situation.value})")
            print(f"{'='*80}")
            print("\n[SYSTEM PROMPT]")
            print(f"{'-'*80}")
            print(request.system)
            print("\n[USER PROMPT]")
            print(f"{'-'*80}")
            print(request.user)
            print(f"{'='*80}\n")

        log_llm(f"{LOG_TAG_LLM} {provider}/{model} deciding for {request.personality.name}")
        turn = await call_llm_with_retries(
            system_prompt=request.system,
            user_prompt=request.user,
            llm_provider=provider,
            llm_model=model,
            response_model=ModelTurn,
            temperature=request.temperature,
            max_tokens=request.max_tokens,
            max_attempts=self.max_attempts,
            timeout=self.timeout,
        )

        if debug_llm:
            print("[LLM RESPONSE]")
            print(f"{'-'*80}")
            print(turn.model_dump_json(indent=2))
            print(f"{'='*80}\n")

        pieces = split_reasoning(turn.reasoning) if request.streaming else [turn.reasoning]
        for piece in pieces:
            yield TextDelta(piece)
        for call in turn.tool_calls:
            yield call


__all__ = ["LLMModelClient", "ModelTurn", "resolve_provider", "split_reasoning"]
