"""Completion client — OpenAI-compatible chat completions for the analysis nodes.

Talks to any OpenAI-compatible endpoint (Cerebras by default). Requests carry
a model tier (``heavy`` or ``light``) that maps to a configured model with its
own temperature and token budget. Transport failures are retried by the
OpenAI SDK itself (``max_retries``); what still fails surfaces as ``LLMError``.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Literal, Protocol

from openai import APIStatusError, AsyncOpenAI

from ideascope.core.errors import TransportError
from ideascope.core.llm.prompts import SCHEMA_INSTRUCTIONS
from ideascope.retrieval.limiter import AsyncRateLimiter

if TYPE_CHECKING:
    from ideascope.config.settings import AISettings

logger = logging.getLogger(__name__)

Tier = Literal["heavy", "light"]


class LLMError(TransportError):
    """Raised when a completion request fails at the transport or API level."""


class CompletionProvider(Protocol):
    """Anything that can turn a prompt pair into raw completion text."""

    async def complete(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        schema: dict[str, Any] | None = None,
        tier: Tier = "heavy",
    ) -> str: ...

    def model_for(self, tier: Tier) -> str: ...


def _diagnose_api_error(e: APIStatusError, base_url: str, model: str) -> str:
    """Produce a human-readable diagnosis for common API status errors."""
    code = e.status_code
    if code == 401:
        return (
            f"Authentication failed (HTTP 401): API key is invalid or missing.\n"
            f"  → Check IDEASCOPE_AI__API_KEY in your .env file.\n"
            f"  → Endpoint: {base_url}"
        )
    if code == 404:
        return (
            f"Not found (HTTP 404): The model or endpoint does not exist.\n"
            f"  → Endpoint: {base_url}/chat/completions\n"
            f"  → Model: {model}\n"
            f"  → Check IDEASCOPE_AI__BASE_URL and IDEASCOPE_AI__MODEL_HEAVY / MODEL_LIGHT."
        )
    if code == 429:
        return (
            f"Rate limited (HTTP 429): Too many requests.\n"
            f"  → Lower IDEASCOPE_AI__RATE_LIMIT_PER_MINUTE or IDEASCOPE_AI__MAX_CONCURRENT.\n"
            f"  → Endpoint: {base_url}"
        )
    return f"API error (HTTP {code}): {e}\n  → Endpoint: {base_url}/chat/completions\n  → Model: {model}"


class LLMClient:
    """Async completion client wrapping the OpenAI-compatible API.

    Args:
        settings: AI configuration with api_key, base_url, per-tier models, etc.
        client: Optional pre-built ``AsyncOpenAI`` instance.
    """

    def __init__(self, settings: AISettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or AsyncOpenAI(
            api_key=settings.api_key or "missing",
            base_url=settings.base_url,
            max_retries=settings.max_retries,
        )
        self._limiter = AsyncRateLimiter(
            rate_per_minute=settings.rate_limit_per_minute,
            max_concurrent=settings.max_concurrent,
        )
        masked_key = settings.api_key[:6] + "..." + settings.api_key[-4:] if len(settings.api_key) > 12 else "***"
        logger.info(
            "Completion client created: base_url=%s, heavy=%s, light=%s, api_key=%s",
            settings.base_url,
            settings.model_heavy,
            settings.model_light,
            masked_key,
        )

    def model_for(self, tier: Tier) -> str:
        return self._settings.model_light if tier == "light" else self._settings.model_heavy

    def _sampling_for(self, tier: Tier) -> tuple[float, int]:
        if tier == "light":
            return self._settings.temperature_light, self._settings.max_tokens_light
        return self._settings.temperature_heavy, self._settings.max_tokens_heavy

    async def close(self) -> None:
        await self._client.close()

    async def verify_connection(self, tier: Tier = "light") -> bool:
        """Send a one-token request to check connectivity and credentials.

        Returns True if the endpoint answered, False otherwise (with diagnostics logged).
        """
        model = self.model_for(tier)
        try:
            await self._client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": "ping"}],
                max_tokens=1,
            )
        except APIStatusError as e:
            logger.error("Completion connectivity check FAILED:\n%s", _diagnose_api_error(e, self._settings.base_url, model))
            return False
        except Exception as e:
            logger.error("Completion connectivity check FAILED: model=%s, error=%s", model, e)
            return False
        logger.info("Completion connectivity OK: model=%s", model)
        return True

    async def complete(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        schema: dict[str, Any] | None = None,
        tier: Tier = "heavy",
    ) -> str:
        """Send one chat completion request and return the raw text.

        Args:
            system_prompt: System message content.
            user_prompt: User message content.
            schema: JSON schema the answer must follow; rendered into the
                system prompt and enables JSON response mode.
            tier: Model tier hint.

        Returns:
            The model's message content.

        Raises:
            LLMError: If the request fails or the model returns no content.
        """
        model = self.model_for(tier)
        temperature, max_tokens = self._sampling_for(tier)

        if schema is not None:
            system_prompt = f"{system_prompt}\n\n{SCHEMA_INSTRUCTIONS.format(schema=json.dumps(schema))}"

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if schema is not None and self._settings.json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        logger.debug(
            "Completion request: model=%s, tier=%s, system_prompt_len=%d, user_prompt_len=%d",
            model,
            tier,
            len(system_prompt),
            len(user_prompt),
        )

        try:
            async with self._limiter:
                response = await self._client.chat.completions.create(**kwargs)
        except APIStatusError as e:
            diagnosis = _diagnose_api_error(e, self._settings.base_url, model)
            logger.error("Completion API error:\n%s", diagnosis)
            raise LLMError(f"Completion API error (HTTP {e.status_code}): {diagnosis}") from e
        except Exception as e:
            logger.error("Completion call FAILED: model=%s, error_type=%s, error=%s", model, type(e).__name__, e)
            raise LLMError(f"Completion call failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError("Model returned empty content")

        logger.debug(
            "Completion response OK: model=%s, usage=%s, content_len=%d",
            response.model,
            response.usage.model_dump() if response.usage else "N/A",
            len(content),
        )
        return content
