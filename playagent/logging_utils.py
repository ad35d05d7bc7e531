"""Logging utilities for playagent sessions.

Provides color-coded output to distinguish deterministic work (providers,
tools, evaluators) from model calls, errors and lifecycle notices.
"""

import os
from enum import Enum


class Color(Enum):
    """ANSI color codes for terminal output."""

    BLUE = "\033[94m"      # Deterministic operations (providers, tools, evaluators)
    YELLOW = "\033[93m"    # Model calls
    RED = "\033[91m"       # Errors and retries
    GREEN = "\033[92m"     # Success/completion
    CYAN = "\033[96m"      # Session lifecycle/info

    BOLD = "\033[1m"
    RESET = "\033[0m"


def colored(text: str, color: Color, bold: bool = False) -> str:
    """Wrap text in ANSI color codes unless PLAYAGENT_NO_COLOR is set."""
    if os.getenv("PLAYAGENT_NO_COLOR"):
        return text

    prefix = color.value
    if bold:
        prefix = Color.BOLD.value + prefix

    return f"{prefix}{text}{Color.RESET.value}"


def verbose_enabled() -> bool:
    """Return True when routine progress output was requested."""
    return os.getenv("PLAYAGENT_VERBOSE", "").lower() in ("1", "true", "yes")


def debug_llm_enabled() -> bool:
    return os.getenv("DEBUG_LLM", "").lower() in ("1", "true", "yes")


def log_deterministic(message: str) -> None:
    """Log a deterministic operation (blue). Verbose mode only."""
    if verbose_enabled():
        print(colored(message, Color.BLUE))


def log_llm(message: str) -> None:
    """Log a model operation (yellow). Verbose mode only."""
    if verbose_enabled():
        print(colored(message, Color.YELLOW))


def log_error(message: str) -> None:
    """Log an error or retry (red). Always printed."""
    print(colored(message, Color.RED))


def log_success(message: str) -> None:
    """Log a success (green). Verbose mode only."""
    if verbose_enabled():
        print(colored(message, Color.GREEN))


def log_info(message: str) -> None:
    """Log lifecycle/info (cyan). Verbose mode only."""
    if verbose_enabled():
        print(colored(message, Color.CYAN))


# Markers for operation types (color-blind accessible)
LOG_TAG_DETERMINISTIC = "[•]"
LOG_TAG_LLM = "[AI]"
LOG_TAG_ERROR = "[!]"
LOG_TAG_SUCCESS = "[✓]"
LOG_TAG_INFO = "[i]"
