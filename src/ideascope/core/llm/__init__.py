"""LLM integration — OpenAI-compatible completion client and structured output validation."""

from ideascope.core.llm.client import CompletionProvider, LLMClient, LLMError
from ideascope.core.llm.structured import parse_structured, request_structured

__all__ = ["CompletionProvider", "LLMClient", "LLMError", "parse_structured", "request_structured"]
