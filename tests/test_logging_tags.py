"""Tests for truthful logging tags ([AI] vs [•]) and verbosity switches.

These tests assert that:
- Routine output only appears when PLAYAGENT_VERBOSE is set
- Errors are always printed
- The LLM client logs with [AI]; tool dispatch logs with [•]
"""

from __future__ import annotations

import contextlib
import io

import pytest

from playagent.cognition.executor import ModelRequest
from playagent.cognition.llm import LLMModelClient, ModelTurn
from playagent.cognition.renderers import Situation
from playagent.game import SimulatedGame
from playagent.logging_utils import Color, colored, log_error, log_info
from playagent.tools import ToolInvoker


def _capture(fn, *args):
    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        fn(*args)
    return buf.getvalue()


def test_info_silent_unless_verbose(monkeypatch):
    monkeypatch.delenv("PLAYAGENT_VERBOSE", raising=False)
    assert _capture(log_info, "hello") == ""

    monkeypatch.setenv("PLAYAGENT_VERBOSE", "1")
    assert "hello" in _capture(log_info, "hello")


def test_errors_always_printed(monkeypatch):
    monkeypatch.delenv("PLAYAGENT_VERBOSE", raising=False)
    monkeypatch.setenv("PLAYAGENT_NO_COLOR", "1")
    assert _capture(log_error, "[!] boom") == "[!] boom\n"


def test_colored_respects_no_color(monkeypatch):
    monkeypatch.delenv("PLAYAGENT_NO_COLOR", raising=False)
    assert colored("x", Color.RED).startswith(Color.RED.value)
    monkeypatch.setenv("PLAYAGENT_NO_COLOR", "1")
    assert colored("x", Color.RED) == "x"


@pytest.mark.asyncio
async def test_tool_dispatch_uses_deterministic_tag(monkeypatch, state_factory):
    monkeypatch.setenv("PLAYAGENT_VERBOSE", "1")
    invoker = ToolInvoker(SimulatedGame())

    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        await invoker.invoke("move", {"direction": "north"}, 1.0, state=state_factory())

    assert "[•] tool move" in buf.getvalue()
    assert "[AI]" not in buf.getvalue()


@pytest.mark.asyncio
async def test_llm_client_uses_ai_tag(monkeypatch, state_factory, config_factory):
    monkeypatch.setenv("PLAYAGENT_VERBOSE", "1")

    async def fake_call_llm_with_retries(**kwargs):
        return ModelTurn(reasoning="Fine.", tool_calls=[])

    monkeypatch.setattr("playagent.cognition.llm.call_llm_with_retries", fake_call_llm_with_retries)

    config = config_factory()
    request = ModelRequest(
        system="s",
        user="u",
        model="gpt-4o-mini",
        temperature=0.5,
        max_tokens=100,
        situation=Situation.GENERIC,
        game_state=state_factory(),
        personality=config.personality,
    )

    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        events = [event async for event in LLMModelClient().stream(request)]

    assert events
    assert "[AI] openai/gpt-4o-mini deciding for Rook" in buf.getvalue()
