"""
Playagent Configuration

Loads configuration from environment variables with sensible defaults.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


class Config:
    """Runtime configuration loaded from environment variables."""

    # LLM Provider Configuration
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "openai")
    LLM_MODEL: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "120"))
    LLM_MAX_ATTEMPTS: int = int(os.getenv("LLM_MAX_ATTEMPTS", "3"))

    # API Keys
    ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")

    # Local Ollama server (used when the provider is "ollama")
    OLLAMA_BASE_URL: str | None = os.getenv("OLLAMA_BASE_URL")

    # Agent defaults
    DEFAULT_TOOL_TIMEOUT: float = float(os.getenv("DEFAULT_TOOL_TIMEOUT", "5.0"))
    DEFAULT_MAX_AUTONOMOUS_ACTIONS: int = int(os.getenv("DEFAULT_MAX_AUTONOMOUS_ACTIONS", "10"))
    # Model round-trips allowed inside one decision cycle
    MAX_REASONING_STEPS: int = int(os.getenv("MAX_REASONING_STEPS", "3"))

    # Session lifecycle
    SESSION_IDLE_SECONDS: float = float(os.getenv("SESSION_IDLE_SECONDS", "1800"))
    SWEEP_INTERVAL_SECONDS: float = float(os.getenv("SWEEP_INTERVAL_SECONDS", "60"))
    STREAM_BUFFER_SIZE: int = int(os.getenv("STREAM_BUFFER_SIZE", "64"))

    # Context assembly
    MEMORY_CAPACITY: int = int(os.getenv("MEMORY_CAPACITY", "200"))
    MEMORY_TOP_K: int = int(os.getenv("MEMORY_TOP_K", "5"))
    HISTORY_WINDOW: int = int(os.getenv("HISTORY_WINDOW", "5"))
    EMERGENCY_HEALTH_RATIO: float = float(os.getenv("EMERGENCY_HEALTH_RATIO", "0.3"))

    # Reporting
    EVENT_EXPORT_LIMIT: int = int(os.getenv("EVENT_EXPORT_LIMIT", "50"))
    SNAPSHOT_HISTORY_TAIL: int = int(os.getenv("SNAPSHOT_HISTORY_TAIL", "10"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Project Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent
    ARCHIVE_DIR: Path = Path(os.getenv("ARCHIVE_DIR", str(PROJECT_ROOT / "archive")))

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and raise errors if required values are missing."""
        provider = cls.LLM_PROVIDER.lower()

        if provider == "anthropic" and not cls.ANTHROPIC_API_KEY:
            raise ValueError(
                "ANTHROPIC_API_KEY is required when using the 'anthropic' provider"
            )

        if provider == "openai" and not cls.OPENAI_API_KEY:
            raise ValueError(
                "OPENAI_API_KEY is required when using the 'openai' provider. "
                "For local models, set LLM_PROVIDER=ollama instead."
            )

        if cls.DEFAULT_TOOL_TIMEOUT <= 0:
            raise ValueError("DEFAULT_TOOL_TIMEOUT must be positive")

        if cls.MEMORY_CAPACITY < 1:
            raise ValueError("MEMORY_CAPACITY must be at least 1")

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        lines = [
            "Playagent Configuration:",
            f"  LLM Provider: {cls.LLM_PROVIDER}",
            f"  LLM Model: {cls.LLM_MODEL}",
            f"  Tool Timeout: {cls.DEFAULT_TOOL_TIMEOUT}s",
            f"  Max Autonomous Actions: {cls.DEFAULT_MAX_AUTONOMOUS_ACTIONS}",
            f"  Session Idle Threshold: {cls.SESSION_IDLE_SECONDS}s",
            f"  Memory Capacity: {cls.MEMORY_CAPACITY}",
        ]
        return "\n".join(lines)
