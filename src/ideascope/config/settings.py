"""Application settings — Pydantic-based configuration with YAML and env var support.

Configuration is loaded from (in order of precedence):
  1. Environment variables (IDEASCOPE_ prefix)
  2. YAML config file (if specified)
  3. Default values
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class AISettings(BaseModel):
    """Completion provider configuration.

    Analysis nodes request structured JSON from an OpenAI-compatible endpoint.
    Each request carries a model-tier hint (``heavy`` or ``light``) that maps
    to one of the configured models below.
    """

    api_key: str = Field(default="", description="Completion provider API key")
    base_url: str = Field(default="https://api.cerebras.ai/v1", description="OpenAI-compatible API endpoint")
    model_heavy: str = Field(default="llama-3.3-70b", description="Model used for the 'heavy' tier")
    model_light: str = Field(default="llama3.1-8b", description="Model used for the 'light' tier")
    max_tokens_heavy: int = Field(default=8192, description="Maximum completion tokens for the heavy tier")
    max_tokens_light: int = Field(default=4096, description="Maximum completion tokens for the light tier")
    temperature_heavy: float = Field(default=0.3, description="Sampling temperature for the heavy tier")
    temperature_light: float = Field(default=0.5, description="Sampling temperature for the light tier")
    max_retries: int = Field(default=2, description="SDK-level retries for transport failures")
    rate_limit_per_minute: int = Field(default=30, description="Completion requests per minute")
    max_concurrent: int = Field(default=4, description="Maximum in-flight completion requests")
    json_mode: bool = Field(default=True, description="Request a JSON object response format")
    verify_on_startup: bool = Field(default=True, description="Send a connectivity check when the pipeline starts")


class ProviderConfig(BaseModel):
    """Configuration for a single search provider."""

    enabled: bool = Field(default=True, description="Whether this provider is active")
    api_key: str | None = Field(default=None, description="API key authentication")
    base_url: str | None = Field(default=None, description="Override the provider API base URL")
    model: str | None = Field(default=None, description="Provider-side model (for answer engines)")
    max_results: int = Field(default=8, description="Maximum results per query")
    rate_limit_per_minute: int = Field(default=10, description="Requests per minute")
    timeout: float = Field(default=30.0, description="HTTP request timeout in seconds")
    extra: dict[str, Any] = Field(default_factory=dict, description="Provider-specific options")

    @field_validator("extra", mode="before")
    @classmethod
    def _parse_extra(cls, v: Any) -> dict[str, Any]:
        """Parse extra options from a JSON string (env var) or mapping."""
        if isinstance(v, str):
            import json

            try:
                parsed = json.loads(v)
            except (json.JSONDecodeError, TypeError):
                return {}
            return parsed if isinstance(parsed, dict) else {}
        return dict(v or {})


def _default_providers() -> dict[str, ProviderConfig]:
    return {
        "perplexity": ProviderConfig(),
        "tavily": ProviderConfig(enabled=False),
    }


class SearchSettings(BaseModel):
    """Search provider selection."""

    primary: str = Field(default="perplexity", description="Required primary search provider")
    secondary: str | None = Field(default="tavily", description="Optional supplementary search provider")
    providers: dict[str, ProviderConfig] = Field(
        default_factory=_default_providers,
        description="Per-provider configuration",
    )

    def provider_config(self, name: str) -> ProviderConfig:
        """Return the configuration for *name*, falling back to defaults."""
        return self.providers.get(name) or ProviderConfig()


class FetcherSettings(BaseModel):
    """Content fetcher behaviour."""

    user_agent: str = Field(default="IdeaScope Research Bot/1.0", description="User agent for fetches and robots")
    rate_limit_per_minute: int = Field(default=20, description="Overall fetch requests per minute")
    max_concurrent: int = Field(default=3, description="Maximum in-flight fetches")
    timeout: float = Field(default=30.0, description="Per-request timeout in seconds")
    max_redirects: int = Field(default=5, description="Maximum redirects followed per fetch")
    max_content_chars: int = Field(default=50_000, description="Maximum normalized text kept per document")
    max_body_bytes: int = Field(default=5_000_000, description="Maximum response body bytes read per fetch")
    robots_ttl_seconds: int = Field(default=3600, description="How long a parsed robots.txt is reused per host")
    robots_timeout: float = Field(default=5.0, description="robots.txt request timeout in seconds")


class CacheSettings(BaseModel):
    """Cache backend configuration."""

    backend: str = Field(default="memory", description="Cache backend: memory, redis")
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    research_ttl: int = Field(default=259_200, description="Whole-pack cache TTL in seconds")
    node_ttl: int = Field(default=259_200, description="Node output cache TTL in seconds")


class ResearchSettings(BaseModel):
    """Research orchestration limits."""

    max_documents: int = Field(default=20, description="Maximum distinct URLs fetched per run")
    pack_document_chars: int = Field(default=10_000, description="Document content kept in a ResearchPack")
    context_documents: int = Field(default=10, description="Top documents included in node context")
    context_chars: int = Field(default=500, description="Characters per document included in node context")


class AnalysisSettings(BaseModel):
    """Analysis node execution policy."""

    max_validation_retries: int = Field(default=2, description="Retries after a schema-validation failure")
    call_timeout: float = Field(default=120.0, description="Per-call completion timeout in seconds")
    retry_base_delay: float = Field(default=1.0, description="Base backoff between node attempts in seconds")


class ObservabilitySettings(BaseModel):
    """Observability configuration."""

    log_level: str = Field(default="info", description="Log level: debug, info, warning, error")
    log_format: str = Field(default="json", description="Log format: json, console")


class Settings(BaseSettings):
    """Root application settings.

    Configuration is loaded from environment variables with the IDEASCOPE_ prefix.
    Nested settings use double underscores: IDEASCOPE_CACHE__BACKEND=redis

    Example:
        IDEASCOPE_AI__API_KEY=csk-...
        IDEASCOPE_SEARCH__PROVIDERS__PERPLEXITY__API_KEY=pplx-...
        IDEASCOPE_SEARCH__PROVIDERS__TAVILY__ENABLED=true
    """

    model_config = {
        "env_prefix": "IDEASCOPE_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    # Application metadata
    app_name: str = Field(default="IdeaScope", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    # Component settings
    ai: AISettings = Field(default_factory=AISettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    fetcher: FetcherSettings = Field(default_factory=FetcherSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    research: ResearchSettings = Field(default_factory=ResearchSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Settings:
        """Load settings from a YAML configuration file.

        Values from the YAML file are used as defaults; environment variables
        still take precedence.

        Args:
            path: Path to the YAML config file.

        Returns:
            Populated Settings instance.
        """
        import yaml  # type: ignore[import-untyped]

        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)
