"""Error taxonomy for the agent runtime.

Caller-facing errors (``ConfigInvalid``, ``SessionNotFound``) are raised from
the public API. The remaining errors are raised inside a single component and
converted into events, failed tool results, or error chunks by the decision
loop; they never escape a stream.
"""

from __future__ import annotations

from typing import Sequence


class PlayAgentError(Exception):
    """Base class for all runtime errors."""


class ConfigInvalid(PlayAgentError):
    """Raised when an AgentConfig or GameState is rejected at session creation."""

    def __init__(self, *, issues: Sequence[str]):
        self.issues = list(issues)
        lines = ["Session could not be created: the configuration is invalid."]
        lines.extend(f"  - {issue}" for issue in self.issues)
        lines.append("")
        lines.append("Fix the listed fields and call create_session again.")
        super().__init__("\n".join(lines))


class SessionNotFound(PlayAgentError):
    """Raised when a session id is unknown or the session was already evicted."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(
            f"Session '{session_id}' not found. It may have ended or expired "
            "after the idle threshold (SESSION_IDLE_SECONDS)."
        )


class ProviderFailure(PlayAgentError):
    """A context provider failed while rendering its fragment."""

    def __init__(self, *, provider: str, cause: BaseException):
        self.provider = provider
        self.cause = cause
        super().__init__(f"Provider '{provider}' failed: {cause}")


class EvaluatorFailure(PlayAgentError):
    """An evaluator failed while scoring a decision."""

    def __init__(self, *, evaluator: str, cause: BaseException):
        self.evaluator = evaluator
        self.cause = cause
        super().__init__(f"Evaluator '{evaluator}' failed: {cause}")


class ModelInvocationFailure(PlayAgentError):
    """The model provider could not produce a usable turn."""

    def __init__(self, *, model: str, cause: BaseException):
        self.model = model
        self.cause = cause
        super().__init__(
            f"Model '{model}' invocation failed: {cause}\n"
            "Check LLM_PROVIDER / LLM_MODEL and the provider API key, "
            "or run with a RuleBasedModelClient for offline sessions."
        )


class ToolTimeout(PlayAgentError):
    """A tool call exceeded the session's tool timeout."""

    def __init__(self, *, tool: str, timeout: float):
        self.tool = tool
        self.timeout = timeout
        super().__init__(f"Tool '{tool}' timed out after {timeout:.2f}s")


class UnsupportedTool(PlayAgentError):
    """The model requested a tool outside the fixed tool set."""

    def __init__(self, *, tool: str, supported: Sequence[str]):
        self.tool = tool
        self.supported = list(supported)
        super().__init__(
            f"Tool '{tool}' is not supported. Available tools: {', '.join(self.supported)}"
        )


class ToolExecutionError(PlayAgentError):
    """Raised by a game collaborator when a tool cannot be applied (missing target, item, ...)."""


class RuntimeFatal(PlayAgentError):
    """An internal invariant was violated during a decision cycle."""

    def __init__(self, *, session_id: str, cause: BaseException):
        self.session_id = session_id
        self.cause = cause
        super().__init__(
            f"Decision loop for session '{session_id}' stopped on an internal error: "
            f"{type(cause).__name__}: {cause}\n"
            "The session was left in its last consistent state."
        )


__all__ = [
    "PlayAgentError",
    "ConfigInvalid",
    "SessionNotFound",
    "ProviderFailure",
    "EvaluatorFailure",
    "ModelInvocationFailure",
    "ToolTimeout",
    "UnsupportedTool",
    "ToolExecutionError",
    "RuntimeFatal",
]
