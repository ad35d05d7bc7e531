"""Structured model calls with validation-aware retries."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, TypeVar

from mirascope import llm
from pydantic import BaseModel, ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from playagent.config import Config
from playagent.local_llm import LocalLLMError, call_ollama_chat
from playagent.logging_utils import LOG_TAG_ERROR, log_error


ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(slots=True)
class ValidationFeedback:
    """Structured feedback for retrying failed schema outputs."""

    llm_text: str
    issues: Sequence[str]


def _truncate_preview(value: Any, *, limit: int = 80) -> str:
    if value is None:
        return "null"
    text = repr(value)
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def inject_validation_feedback(error: ValidationError) -> ValidationFeedback:
    """Turn a pydantic ValidationError into correction instructions for the model.

    Each issue carries the dotted field path, the message, the error type and
    a short preview of the offending value, e.g.
    ``tool_calls.0.tool: Field required [type=missing]``.
    """

    issues: list[str] = []
    # Each pydantic error carries loc (field path), msg, type and the offending input.
    for err in error.errors(include_url=False):
        # Dotted path, e.g. tool_calls.0.arguments
        loc = ".".join(str(part) for part in err.get("loc", [])) or "root"
        details = f"{loc}: {err.get('msg', 'validation error')}"
        if err.get("type"):
            details += f" [type={err['type']}]"
        if "input" in err:
            # Previews are capped at 80 characters.
            preview = _truncate_preview(err.get("input"))
            if preview:
                details += f" | received={preview}"
        issues.append(details)

    # Only reachable with an error list pydantic left empty.
    if not issues:
        issues.append("root: response did not match the expected schema")

    instructions = [
        "Your previous JSON response failed to validate against the required schema.",
        "Return a corrected response that strictly matches the schema, with no prose and no code fences.",
        "Issues detected:",
    ]
    instructions.extend(f"- {issue}" for issue in issues)
    return ValidationFeedback(llm_text="\n".join(instructions), issues=issues)


def _log_validation_failure(*, model_name: str, attempt: int, max_attempts: int, feedback: ValidationFeedback) -> None:
    log_error(
        f"{LOG_TAG_ERROR} Model output failed {model_name} validation (attempt {attempt}/{max_attempts})."
    )
    for issue in feedback.issues:
        log_error(f"    - {issue}")


async def call_llm_with_retries(
    *,
    system_prompt: str,
    user_prompt: str,
    llm_provider: str,
    llm_model: str,
    response_model: type[ModelT],
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    max_attempts: Optional[int] = None,
    timeout: Optional[float] = None,
    feedback_builder: Callable[[ValidationError], ValidationFeedback] = inject_validation_feedback,
) -> ModelT:
    """Invoke a structured model call, retrying only on schema validation errors.

    Validation feedback is appended to the original user prompt, so the model
    keeps the full context while seeing what to fix. Timeouts and provider
    errors propagate immediately.
    """

    attempts_allowed = max_attempts or Config.LLM_MAX_ATTEMPTS
    call_timeout = timeout or Config.LLM_TIMEOUT_SECONDS
    system_prompt = system_prompt.strip()
    base_user_prompt = user_prompt.strip()

    call_params: dict[str, Any] = {}
    if temperature is not None:
        call_params["temperature"] = temperature
    if max_tokens is not None:
        call_params["max_tokens"] = max_tokens

    def _user_section(feedback: ValidationFeedback | None) -> str:
        if feedback is None:
            return base_user_prompt
        return f"{base_user_prompt}\n\n{feedback.llm_text}"

    def _combined(user_section: str) -> str:
        return "\n\n".join(part for part in (system_prompt, user_section) if part)

    # Ollama is called over HTTP directly; every other provider goes through mirascope.
    use_local_llm = llm_provider.lower() == "ollama"

    # response_model makes mirascope validate the output and raise ValidationError on mismatch.
    remote_invoke: Callable[[str], Any] | None = None
    if not use_local_llm:
        @llm.call(
            provider=llm_provider,
            model=llm_model,
            response_model=response_model,
            call_params=call_params or None,
        )
        async def _invoke(prompt: str) -> str:
            return prompt

        remote_invoke = _invoke

    # None until the first validation failure, then carried into every later attempt.
    feedback_payload: ValidationFeedback | None = None
    attempt_number = 0
    # Only ValidationError is retried; reraise=True surfaces the last one once attempts run out.
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(ValidationError),
        stop=stop_after_attempt(attempts_allowed),
        reraise=True,
    ):
        with attempt:
            attempt_number += 1
            if attempt_number > 1:
                log_error(
                    f"{LOG_TAG_ERROR} Model retry {attempt_number}/{attempts_allowed} for {response_model.__name__}."
                )
            # Feedback is appended to the original prompt, never substituted for it.
            user_section = _user_section(feedback_payload)
            try:
                if use_local_llm:
                    raw_response = await asyncio.wait_for(
                        call_ollama_chat(
                            system_prompt=system_prompt,
                            user_prompt=user_section,
                            llm_model=llm_model,
                            temperature=temperature,
                            max_tokens=max_tokens,
                            timeout=call_timeout,
                        ),
                        timeout=call_timeout,
                    )
                    return response_model.model_validate_json(raw_response)

                if remote_invoke is None:
                    raise RuntimeError("Remote model invoke is not initialized.")

                return await asyncio.wait_for(remote_invoke(_combined(user_section)), timeout=call_timeout)
            except ValidationError as exc:
                # Re-raised below so tenacity schedules the next attempt.
                feedback_payload = feedback_builder(exc)
                _log_validation_failure(
                    model_name=response_model.__name__,
                    attempt=attempt_number,
                    max_attempts=attempts_allowed,
                    feedback=feedback_payload,
                )
                raise
            except asyncio.TimeoutError:
                # Timeouts are not retried.
                log_error(
                    f"{LOG_TAG_ERROR} Model call timed out after {call_timeout:g}s for {response_model.__name__}."
                )
                raise
            except LocalLLMError as exc:
                # Local server failures propagate as provider errors.
                raise RuntimeError(f"Local model provider error ({llm_provider}): {exc}") from exc

    # Unreachable: AsyncRetrying with reraise=True either returns or raises.
    raise RuntimeError("Model retry loop exited unexpectedly")
