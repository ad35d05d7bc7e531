"""Unit tests for the LLM retry helper."""

import asyncio

import pytest
from pydantic import BaseModel, ValidationError

from playagent.llm_utils import call_llm_with_retries, inject_validation_feedback


class DummyModel(BaseModel):
    content: str


def _fake_decorator_for(caller, seen_kwargs=None):
    def fake_decorator(*, provider, model, response_model, **kwargs):
        assert response_model is DummyModel
        if seen_kwargs is not None:
            seen_kwargs.update(provider=provider, model=model, **kwargs)

        def wrapper(fn):
            async def inner(prompt: str):
                return await caller(prompt)

            return inner

        return wrapper

    return fake_decorator


@pytest.mark.asyncio
async def test_call_llm_with_retries_success(monkeypatch):
    recorded_prompts: list[str] = []
    seen: dict = {}

    async def fake_caller(prompt: str) -> DummyModel:
        recorded_prompts.append(prompt)
        return DummyModel(content="ok")

    monkeypatch.setattr("playagent.llm_utils.llm.call", _fake_decorator_for(fake_caller, seen))

    result = await call_llm_with_retries(
        system_prompt="System context",
        user_prompt="What now?",
        llm_provider="openai",
        llm_model="gpt-4o-mini",
        response_model=DummyModel,
        temperature=0.3,
        max_tokens=256,
    )

    assert result.content == "ok"
    assert recorded_prompts == ["System context\n\nWhat now?"]
    assert seen["provider"] == "openai"
    assert seen["call_params"] == {"temperature": 0.3, "max_tokens": 256}


@pytest.mark.asyncio
async def test_call_llm_with_retries_injects_feedback(monkeypatch):
    attempts: list[str] = []

    try:
        DummyModel.model_validate({})
    except ValidationError as exc:
        validation_error = exc

    async def fake_caller(prompt: str) -> DummyModel:
        attempts.append(prompt)
        if len(attempts) == 1:
            raise validation_error
        return DummyModel(content="fixed")

    monkeypatch.setattr("playagent.llm_utils.llm.call", _fake_decorator_for(fake_caller))

    result = await call_llm_with_retries(
        system_prompt="System",
        user_prompt="User",
        llm_provider="openai",
        llm_model="gpt-4o-mini",
        response_model=DummyModel,
    )

    assert result.content == "fixed"
    assert len(attempts) == 2
    assert "Your previous JSON response failed to validate against the required schema." in attempts[1]
    assert "- content: Field required" in attempts[1]


@pytest.mark.asyncio
async def test_call_llm_with_retries_gives_up_after_max_attempts(monkeypatch):
    try:
        DummyModel.model_validate({})
    except ValidationError as exc:
        validation_error = exc

    calls = 0

    async def always_invalid(prompt: str) -> DummyModel:
        nonlocal calls
        calls += 1
        raise validation_error

    monkeypatch.setattr("playagent.llm_utils.llm.call", _fake_decorator_for(always_invalid))

    with pytest.raises(ValidationError):
        await call_llm_with_retries(
            system_prompt="System",
            user_prompt="User",
            llm_provider="anthropic",
            llm_model="claude-3-5-haiku-latest",
            response_model=DummyModel,
            max_attempts=2,
        )
    assert calls == 2


@pytest.mark.asyncio
async def test_call_llm_with_retries_does_not_retry_timeouts(monkeypatch):
    calls = 0

    async def slow_caller(prompt: str) -> DummyModel:
        nonlocal calls
        calls += 1
        await asyncio.sleep(1)
        return DummyModel(content="late")

    monkeypatch.setattr("playagent.llm_utils.llm.call", _fake_decorator_for(slow_caller))

    with pytest.raises(asyncio.TimeoutError):
        await call_llm_with_retries(
            system_prompt="System",
            user_prompt="User",
            llm_provider="openai",
            llm_model="gpt-4o-mini",
            response_model=DummyModel,
            timeout=0.05,
        )
    assert calls == 1


@pytest.mark.asyncio
async def test_call_llm_with_retries_local_provider(monkeypatch):
    captured_kwargs: dict[str, object] = {}

    async def fake_local_call(*, system_prompt, user_prompt, llm_model, temperature=None, max_tokens=None, timeout=120.0):
        captured_kwargs["system_prompt"] = system_prompt
        captured_kwargs["user_prompt"] = user_prompt
        captured_kwargs["llm_model"] = llm_model
        captured_kwargs["temperature"] = temperature
        return '{"content":"ok"}'

    def fail_decorator(*args, **kwargs):
        raise AssertionError("remote provider path should not be used for ollama")

    monkeypatch.setattr("playagent.llm_utils.call_ollama_chat", fake_local_call)
    monkeypatch.setattr("playagent.llm_utils.llm.call", fail_decorator)

    result = await call_llm_with_retries(
        system_prompt="System context",
        user_prompt="User payload",
        llm_provider="ollama",
        llm_model="llama3.1",
        response_model=DummyModel,
        temperature=0.2,
    )

    assert result.content == "ok"
    assert captured_kwargs["system_prompt"] == "System context"
    assert captured_kwargs["user_prompt"] == "User payload"
    assert captured_kwargs["llm_model"] == "llama3.1"
    assert captured_kwargs["temperature"] == 0.2


def test_inject_validation_feedback_lists_issues():
    try:
        DummyModel.model_validate({"content": 5})
    except ValidationError as exc:
        feedback = inject_validation_feedback(exc)

    assert feedback.issues
    assert feedback.issues[0].startswith("content:")
    assert "received=5" in feedback.issues[0]
    assert feedback.llm_text.splitlines()[0].startswith("Your previous JSON response")
