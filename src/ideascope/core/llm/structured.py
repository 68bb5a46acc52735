"""Structured output — parse, repair and validate JSON completions.

``request_structured`` asks a completion provider for JSON matching a pydantic
model and retries on two kinds of failure only: output that does not parse or
validate (``validation``) and calls that exceed their timeout (``timeout``).
The validation error of the previous attempt is fed back into the next
attempt's system prompt. Transport failures (``LLMError``) propagate.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from ideascope.core.llm.client import CompletionProvider, Tier
from ideascope.core.llm.prompts import VALIDATION_FEEDBACK
from ideascope.core.retry import Err, ErrorKind, Ok, RetryPolicy, with_retry

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_MAX_REPORTED_ERRORS = 10


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences (```json ... ``` or ``` ... ```) from model output."""
    text = text.strip()
    if text.startswith("```"):
        first_newline = text.find("\n")
        if first_newline != -1:
            text = text[first_newline + 1 :]
        if text.endswith("```"):
            text = text[:-3]
    return text.strip()


def _escape_newlines_in_strings(s: str) -> str:
    result: list[str] = []
    in_string = False
    escaped = False
    for ch in s:
        if escaped:
            result.append(ch)
            escaped = False
            continue
        if ch == "\\":
            escaped = True
            result.append(ch)
            continue
        if ch == '"':
            in_string = not in_string
        if in_string and ch == "\n":
            result.append("\\n")
            continue
        result.append(ch)
    return "".join(result)


def repair_json(text: str) -> dict[str, Any] | None:
    """Attempt to repair common model JSON formatting issues.

    Handles surrounding prose, trailing commas, unclosed braces/brackets and
    literal newlines inside strings.

    Returns the parsed object on success, or ``None`` if repair fails.
    """
    start = text.find("{")
    if start == -1:
        return None
    end = text.rfind("}")
    candidate = text[start : end + 1] if end > start else text[start:]

    open_braces = candidate.count("{") - candidate.count("}")
    open_brackets = candidate.count("[") - candidate.count("]")
    if open_braces > 0 or open_brackets > 0:
        candidate = candidate.rstrip().rstrip(",")
        candidate += "]" * max(open_brackets, 0)
        candidate += "}" * max(open_braces, 0)

    candidate = re.sub(r",\s*([}\]])", r"\1", candidate)

    for attempt in (candidate, _escape_newlines_in_strings(candidate)):
        try:
            parsed = json.loads(attempt)
        except json.JSONDecodeError:
            continue
        return parsed if isinstance(parsed, dict) else None
    return None


def format_validation_error(error: ValidationError) -> str:
    """Render a pydantic ValidationError as ``path: message`` lines."""
    lines = []
    for item in error.errors()[:_MAX_REPORTED_ERRORS]:
        path = ".".join(str(part) for part in item["loc"]) or "(root)"
        lines.append(f"- {path}: {item['msg']}")
    remaining = error.error_count() - _MAX_REPORTED_ERRORS
    if remaining > 0:
        lines.append(f"- ... and {remaining} more error(s)")
    return "\n".join(lines)


def parse_structured(text: str, model: type[M]) -> Ok[M] | Err:
    """Parse *text* as JSON and validate it against *model*.

    Parse and schema failures are both reported as ``ErrorKind.VALIDATION``.
    """
    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        data = repair_json(cleaned)
        if data is None:
            return Err(ErrorKind.VALIDATION, f"Response is not valid JSON: {e}", cause=e)
        logger.debug("Completion returned malformed JSON, auto-repaired")

    if not isinstance(data, dict):
        return Err(ErrorKind.VALIDATION, f"Expected a JSON object, got {type(data).__name__}")

    try:
        return Ok(model.model_validate(data))
    except ValidationError as e:
        return Err(ErrorKind.VALIDATION, format_validation_error(e), cause=e)


async def request_structured(
    provider: CompletionProvider,
    *,
    system_prompt: str,
    user_prompt: str,
    output_model: type[M],
    tier: Tier = "heavy",
    max_attempts: int = 3,
    call_timeout: float | None = 120.0,
    base_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Ok[M] | Err:
    """Request JSON output validated against *output_model*.

    Args:
        provider: Completion provider.
        system_prompt: Base system prompt (validation feedback is appended on retries).
        user_prompt: User prompt.
        output_model: Pydantic model the answer must satisfy.
        tier: Model tier hint.
        max_attempts: Total attempts (first try plus retries).
        call_timeout: Per-call timeout in seconds (None disables it).
        base_delay: Backoff base between attempts.
        sleep: Backoff sleep (injectable for tests).

    Returns:
        ``Ok`` with the validated model, or the last ``Err`` once the budget is spent.

    Raises:
        LLMError: On transport failure of the completion provider.
    """
    schema = output_model.model_json_schema()
    policy = RetryPolicy(
        max_attempts=max_attempts,
        base_delay=base_delay,
        max_delay=max(base_delay * 8, base_delay),
        retry_on=frozenset({ErrorKind.VALIDATION, ErrorKind.TIMEOUT}),
    )

    async def attempt(n: int, last: Err | None) -> Ok[M] | Err:
        prompt = system_prompt
        if last is not None and last.kind is ErrorKind.VALIDATION:
            prompt = f"{system_prompt}\n\n{VALIDATION_FEEDBACK.format(errors=last.message)}"

        call = provider.complete(system_prompt=prompt, user_prompt=user_prompt, schema=schema, tier=tier)
        try:
            text = await asyncio.wait_for(call, timeout=call_timeout)
        except TimeoutError as e:
            logger.warning("%s completion timed out after %ss (attempt %d)", output_model.__name__, call_timeout, n)
            return Err(ErrorKind.TIMEOUT, f"Completion timed out after {call_timeout}s", cause=e)

        outcome = parse_structured(text, output_model)
        if isinstance(outcome, Err):
            logger.warning(
                "%s output failed validation (attempt %d/%d):\n%s",
                output_model.__name__,
                n,
                max_attempts,
                outcome.message,
            )
        return outcome

    return await with_retry(attempt, policy, sleep=sleep)
