"""Analysis nodes — LLM workers that turn a ResearchPack into structured analyses.

Four nodes run in parallel over the same pack (market, sizing, competitors,
feasibility); the strategy node then synthesizes their outputs. Ahead of research
the idea normalizer turns free text into a ``NormalizedIdea`` on the light tier.
Every node follows one contract: a single structured request, output validated
against the node's schema, and a fixed retry budget for validation failures
and timeouts. A node that exhausts its budget raises ``NodeFailure``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, ClassVar

from pydantic import BaseModel

from ideascope.config.settings import AnalysisSettings, ResearchSettings
from ideascope.core.errors import NodeFailure
from ideascope.core.llm.client import CompletionProvider, Tier
from ideascope.core.llm.prompts import (
    ANALYSIS_USER_PROMPT,
    COMPETITOR_SCANNER_SYSTEM_PROMPT,
    FEASIBILITY_SYSTEM_PROMPT,
    IDEA_NORMALIZER_SYSTEM_PROMPT,
    IDEA_NORMALIZER_USER_PROMPT,
    MARKET_ANALYST_SYSTEM_PROMPT,
    PROMPT_VERSION,
    STRATEGY_SYSTEM_PROMPT,
    STRATEGY_USER_PROMPT,
    TAM_SAM_SYSTEM_PROMPT,
)
from ideascope.core.llm.structured import request_structured
from ideascope.core.retry import Err
from ideascope.models.analysis import (
    CompetitorLandscape,
    FeasibilityAssessment,
    MarketInsights,
    StrategyRecommendations,
    TamSamSom,
)
from ideascope.models.idea import IdeaProfile, NormalizedIdea
from ideascope.models.research import ResearchPack
from ideascope.models.result import NodeResult

logger = logging.getLogger(__name__)


def _pick(data: dict[str, Any] | None, *path: str, default: str = "N/A") -> Any:
    value: Any = data
    for key in path:
        if not isinstance(value, dict):
            return default
        value = value.get(key)
    return default if value in (None, "") else value


def _names(items: Any, key: str) -> str:
    if not isinstance(items, list):
        return "N/A"
    names = [str(item.get(key)) for item in items if isinstance(item, dict) and item.get(key)]
    return ", ".join(names) or "N/A"


class AnalysisNode:
    """Base class for schema-validated LLM analysis nodes.

    Subclasses set ``name``, ``output_model``, ``system_prompt`` and
    ``instruction``.

    Args:
        provider: Completion provider.
        settings: Retry budget, per-call timeout and backoff.
        research: Context limits (documents and characters per document).
        sleep: Backoff sleep between attempts (injectable for tests).
    """

    name: ClassVar[str]
    output_model: ClassVar[type[BaseModel]]
    system_prompt: ClassVar[str]
    instruction: ClassVar[str] = ""
    tier: ClassVar[Tier] = "heavy"

    def __init__(
        self,
        provider: CompletionProvider,
        *,
        settings: AnalysisSettings | None = None,
        research: ResearchSettings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.settings = settings or AnalysisSettings()
        self.research = research or ResearchSettings()
        self._sleep = sleep

    @property
    def version(self) -> str:
        """Identity of the prompt and model that produce this node's output."""
        return f"{PROMPT_VERSION}:{self.provider.model_for(self.tier)}"

    @property
    def max_attempts(self) -> int:
        return 1 + self.settings.max_validation_retries

    def build_context(self, pack: ResearchPack) -> str:
        """Render the top pack documents as ``[domain] title:`` blocks."""
        chars = self.research.context_chars
        return "\n\n".join(
            f"[{doc.metadata.domain}] {doc.title}:\n{doc.content[:chars]}..."
            for doc in pack.top_documents(self.research.context_documents)
        )

    def build_user_prompt(self, pack: ResearchPack, idea: NormalizedIdea) -> str:
        return ANALYSIS_USER_PROMPT.format(
            idea=idea.to_prompt_block(),
            document_count=len(pack.documents),
            documents=self.build_context(pack) or "(no documents)",
            queries="\n".join(pack.queries),
            instruction=self.instruction,
        )

    async def run(self, pack: ResearchPack, idea: NormalizedIdea) -> NodeResult:
        """Analyze *pack* for *idea*.

        Returns:
            A successful NodeResult carrying the validated output.

        Raises:
            NodeFailure: If no valid output was produced within the retry budget.
            LLMError: On completion transport failure.
        """
        return await self._execute(self.build_user_prompt(pack, idea))

    async def _execute(self, user_prompt: str) -> NodeResult:
        start = time.monotonic()
        outcome = await request_structured(
            self.provider,
            system_prompt=self.system_prompt,
            user_prompt=user_prompt,
            output_model=self.output_model,
            tier=self.tier,
            max_attempts=self.max_attempts,
            call_timeout=self.settings.call_timeout,
            base_delay=self.settings.retry_base_delay,
            sleep=self._sleep,
        )
        timing_ms = int((time.monotonic() - start) * 1000)

        if isinstance(outcome, Err):
            logger.error("[%s] failed after %d attempt(s): %s", self.name, outcome.attempts, outcome.message)
            raise NodeFailure(self.name, outcome.message, outcome.attempts)

        logger.info("[%s] completed in %dms, attempts: %d", self.name, timing_ms, outcome.attempts)
        return NodeResult(
            node=self.name,
            success=True,
            data=outcome.value.model_dump(mode="json"),
            timing_ms=timing_ms,
            attempts=outcome.attempts,
        )


class MarketAnalystNode(AnalysisNode):
    name = "market_analyst"
    output_model = MarketInsights
    system_prompt = MARKET_ANALYST_SYSTEM_PROMPT
    instruction = "Perform a comprehensive market analysis using this research data."


class TamSamEstimatorNode(AnalysisNode):
    name = "tam_sam_estimator"
    output_model = TamSamSom
    system_prompt = TAM_SAM_SYSTEM_PROMPT
    instruction = "Estimate TAM, SAM and SOM for this idea using this research data."


class CompetitorScannerNode(AnalysisNode):
    name = "competitor_scanner"
    output_model = CompetitorLandscape
    system_prompt = COMPETITOR_SCANNER_SYSTEM_PROMPT
    instruction = "Analyze the competitive landscape using this research data."


class FeasibilityEvaluatorNode(AnalysisNode):
    name = "feasibility_evaluator"
    output_model = FeasibilityAssessment
    system_prompt = FEASIBILITY_SYSTEM_PROMPT
    instruction = "Evaluate the feasibility of this idea using this research data."


class StrategyNode(AnalysisNode):
    """Synthesis node: builds the strategy from the four analysis outputs."""

    name = "strategy_recommender"
    output_model = StrategyRecommendations
    system_prompt = STRATEGY_SYSTEM_PROMPT

    def build_strategy_prompt(
        self,
        market: dict[str, Any],
        tam_sam: dict[str, Any],
        competitor: dict[str, Any],
        feasibility: dict[str, Any],
        idea: NormalizedIdea,
    ) -> str:
        return STRATEGY_USER_PROMPT.format(
            idea=idea.to_prompt_block(),
            market_size=_pick(market, "market_size", "current_size"),
            growth_rate=_pick(market, "market_size", "growth_rate"),
            trends=_names(market.get("trends"), "name"),
            segment=_pick(market, "target_audience", "primary_segment"),
            tam=_pick(tam_sam, "tam", "value"),
            sam=_pick(tam_sam, "sam", "value"),
            som=_pick(tam_sam, "som", "value"),
            cagr=_pick(tam_sam, "market_growth", "cagr"),
            leaders=_names(competitor.get("market_leaders"), "name"),
            opportunities=_names(competitor.get("differentiation_opportunities"), "area"),
            overall_score=_pick(feasibility, "overall_feasibility_score"),
            technical_score=_pick(feasibility, "technical", "score"),
            financial_score=_pick(feasibility, "financial", "score"),
        )

    async def run(self, pack: ResearchPack, idea: NormalizedIdea) -> NodeResult:
        raise TypeError("StrategyNode consumes analysis outputs; call synthesize() instead")

    async def synthesize(
        self,
        market: dict[str, Any],
        tam_sam: dict[str, Any],
        competitor: dict[str, Any],
        feasibility: dict[str, Any],
        idea: NormalizedIdea,
    ) -> NodeResult:
        """Produce strategic recommendations from the four analysis outputs.

        Raises:
            NodeFailure: If no valid output was produced within the retry budget.
        """
        return await self._execute(self.build_strategy_prompt(market, tam_sam, competitor, feasibility, idea))


class IdeaNormalizerNode(AnalysisNode):
    """Turns a free-text idea into a ``NormalizedIdea`` on the light tier."""

    name = "idea_normalizer"
    output_model = IdeaProfile
    system_prompt = IDEA_NORMALIZER_SYSTEM_PROMPT
    tier = "light"

    async def run(self, pack: ResearchPack, idea: NormalizedIdea) -> NodeResult:
        raise TypeError("IdeaNormalizerNode runs before research; call normalize() instead")

    async def normalize(self, raw_idea: str) -> NormalizedIdea:
        """Normalize *raw_idea* into title, description, audience, features and keywords.

        Raises:
            ValueError: If *raw_idea* is blank.
            NodeFailure: If no valid profile was produced within the retry budget.
            LLMError: On completion transport failure.
        """
        text = raw_idea.strip()
        if not text:
            raise ValueError("Idea text must not be empty")

        result = await self._execute(IDEA_NORMALIZER_USER_PROMPT.format(idea=text))
        idea = IdeaProfile.model_validate(result.data).to_idea()
        logger.info("[%s] normalized idea '%s' (%d keywords)", self.name, idea.title, len(idea.keywords))
        return idea


ANALYSIS_NODES: tuple[type[AnalysisNode], ...] = (
    MarketAnalystNode,
    TamSamEstimatorNode,
    CompetitorScannerNode,
    FeasibilityEvaluatorNode,
)


def create_analysis_nodes(
    provider: CompletionProvider,
    *,
    settings: AnalysisSettings | None = None,
    research: ResearchSettings | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> tuple[list[AnalysisNode], StrategyNode]:
    """Instantiate the four analysis nodes and the strategy node on one provider."""
    nodes = [cls(provider, settings=settings, research=research, sleep=sleep) for cls in ANALYSIS_NODES]
    strategy = StrategyNode(provider, settings=settings, research=research, sleep=sleep)
    return nodes, strategy
