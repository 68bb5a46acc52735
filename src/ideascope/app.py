"""Pipeline factory and lifecycle management.

``create_pipeline`` wires every collaborator from ``Settings``: search
providers (through the registry), content fetcher, cache, completion client,
document store, the idea normalizer and both orchestrators. It is an async
context manager so the HTTP clients and cache connections are always released::

    async with create_pipeline(settings) as pipeline:
        idea = await pipeline.normalizer.normalize("An AI notebook for meetings")
        result = await pipeline.analysis.run(idea, idea_id="idea_1")
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from ideascope import __version__
from ideascope.cache.manager import CacheManager
from ideascope.config.settings import Settings
from ideascope.core.engine import AnalysisOrchestrator
from ideascope.core.llm.client import CompletionProvider, LLMClient
from ideascope.core.nodes import IdeaNormalizerNode, create_analysis_nodes
from ideascope.core.research import ResearchOrchestrator
from ideascope.providers.base.provider import SearchProvider
from ideascope.providers.base.registry import ProviderRegistry
from ideascope.retrieval.fetcher import ContentFetcher
from ideascope.store.memory import DocumentStore, InMemoryDocumentStore

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("ideascope-config.yaml")

# Maps provider names to (module_path, class_name) for lazy import
_PROVIDER_MAP: dict[str, tuple[str, str]] = {
    "perplexity": ("ideascope.providers.perplexity.provider", "PerplexityProvider"),
    "tavily": ("ideascope.providers.tavily.provider", "TavilyProvider"),
}


@dataclass
class Pipeline:
    """The wired-up components of a running pipeline."""

    settings: Settings
    normalizer: IdeaNormalizerNode
    research: ResearchOrchestrator
    analysis: AnalysisOrchestrator
    store: DocumentStore
    cache: CacheManager
    registry: ProviderRegistry


def load_settings(config: str | Path | None = None) -> Settings:
    """Load settings from *config*, ``ideascope-config.yaml`` if present, or the environment."""
    if config is not None:
        return Settings.from_yaml(config)
    if DEFAULT_CONFIG_FILE.exists():
        logger.info("Loading configuration from %s", DEFAULT_CONFIG_FILE)
        return Settings.from_yaml(DEFAULT_CONFIG_FILE)
    return Settings()


def register_builtin_providers(registry: ProviderRegistry) -> None:
    """Register the built-in provider classes not already registered."""
    for name, (module_path, class_name) in _PROVIDER_MAP.items():
        if name in registry.registered_providers:
            continue
        module = importlib.import_module(module_path)
        registry.register(name, getattr(module, class_name))


async def _init_secondary(registry: ProviderRegistry, settings: Settings) -> SearchProvider | None:
    name = settings.search.secondary
    if not name:
        return None
    try:
        return await registry.initialize_provider(name, config=settings.search.provider_config(name))
    except Exception:
        logger.warning("Secondary provider '%s' unavailable, continuing without it", name, exc_info=True)
        return None


@asynccontextmanager
async def create_pipeline(
    settings: Settings | None = None,
    *,
    store: DocumentStore | None = None,
    completion: CompletionProvider | None = None,
    registry: ProviderRegistry | None = None,
) -> AsyncIterator[Pipeline]:
    """Build, initialize and finally shut down a pipeline.

    Args:
        settings: Application settings (loaded via ``load_settings`` if None).
        store: Document store (in-memory if None).
        completion: Completion provider (``LLMClient`` from settings if None).
        registry: Provider registry; pre-registered classes take precedence
            over the built-in providers of the same name.

    Raises:
        ConfigurationError: If the primary search provider cannot be initialized.
    """
    settings = settings or load_settings()
    store = store or InMemoryDocumentStore()
    registry = registry or ProviderRegistry()
    logger.info("Starting IdeaScope v%s", __version__)

    register_builtin_providers(registry)

    cache = CacheManager(settings.cache)
    await cache.initialize()
    fetcher = ContentFetcher(settings.fetcher)
    await fetcher.initialize()
    llm: LLMClient | None = None

    try:
        primary_name = settings.search.primary
        primary = await registry.initialize_provider(
            primary_name, config=settings.search.provider_config(primary_name)
        )
        secondary = await _init_secondary(registry, settings)

        if completion is None:
            llm = LLMClient(settings.ai)
            completion = llm
            if settings.ai.verify_on_startup and not await llm.verify_connection("heavy"):
                logger.warning(
                    "Completion connectivity check FAILED, analysis nodes will error on their first call. "
                    "Check IDEASCOPE_AI__API_KEY, IDEASCOPE_AI__BASE_URL and IDEASCOPE_AI__MODEL_HEAVY."
                )

        research = ResearchOrchestrator(
            primary,
            fetcher,
            cache,
            store,
            secondary=secondary,
            settings=settings.research,
            cache_ttl=settings.cache.research_ttl,
        )
        nodes, strategy = create_analysis_nodes(completion, settings=settings.analysis, research=settings.research)
        analysis = AnalysisOrchestrator(research, cache, store, nodes, strategy, node_ttl=settings.cache.node_ttl)
        normalizer = IdeaNormalizerNode(completion, settings=settings.analysis, research=settings.research)

        logger.info(
            "IdeaScope pipeline ready (primary=%s, secondary=%s)",
            primary.name,
            secondary.name if secondary is not None and secondary.is_enabled() else "disabled",
        )
        yield Pipeline(
            settings=settings,
            normalizer=normalizer,
            research=research,
            analysis=analysis,
            store=store,
            cache=cache,
            registry=registry,
        )
    finally:
        logger.info("Shutting down IdeaScope pipeline...")
        await registry.shutdown_all()
        await fetcher.shutdown()
        await cache.shutdown()
        if llm is not None:
            await llm.close()
