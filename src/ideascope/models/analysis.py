"""Analysis output schemas — structured JSON each analysis node must produce.

The completion provider receives the JSON schema of the target model and its
response is validated against the model before being accepted. Every schema
carries a ``confidence`` field in the range 0-100.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

Level = Literal["High", "Medium", "Low"]


# ═══════════════════════════════════════════════════════════════════════════════
# Market analysis
# ═══════════════════════════════════════════════════════════════════════════════


class MarketSize(BaseModel):
    current_size: str = Field(description="Market size with source")
    growth_rate: str = Field(description="CAGR with source")
    projected_size: str = Field(description="5-year projection")


class MarketTrend(BaseModel):
    name: str
    description: str
    impact: str
    source: str | None = None


class CustomerNeed(BaseModel):
    need: str
    pain_point: str
    current_solutions: str


class AudienceProfile(BaseModel):
    primary_segment: str
    demographics: str
    psychographics: str
    size: str


class MarketBarrier(BaseModel):
    barrier: str
    severity: Level
    mitigation: str


class MarketInsights(BaseModel):
    """Output of the market analyst node."""

    market_size: MarketSize
    trends: list[MarketTrend] = Field(min_length=3)
    customer_needs: list[CustomerNeed] = Field(min_length=2)
    target_audience: AudienceProfile
    barriers: list[MarketBarrier] = Field(min_length=1)
    citations: list[str] = Field(default_factory=list, description="List of sources cited")
    confidence: float = Field(ge=0, le=100, description="Confidence level 0-100")
    summary: str = Field(min_length=200)


# ═══════════════════════════════════════════════════════════════════════════════
# Market sizing (TAM / SAM / SOM)
# ═══════════════════════════════════════════════════════════════════════════════


class MarketEstimate(BaseModel):
    value: str = Field(description="Dollar value")
    calculation: str = Field(description="How the value was derived")
    sources: list[str] = Field(default_factory=list)
    assumptions: list[str] = Field(min_length=1)


class ServiceableEstimate(MarketEstimate):
    percentage: str = Field(description="Share of the enclosing market")


class ObtainableEstimate(ServiceableEstimate):
    timeline: str


class MarketGrowth(BaseModel):
    cagr: str
    factors: list[str] = Field(min_length=2)


class TamSamSom(BaseModel):
    """Output of the TAM/SAM/SOM estimator node."""

    tam: MarketEstimate
    sam: ServiceableEstimate
    som: ObtainableEstimate
    market_growth: MarketGrowth
    confidence: float = Field(ge=0, le=100, description="Overall confidence 0-100")
    methodology: Literal["top-down", "bottom-up", "hybrid"]
    analysis: str = Field(min_length=200)


# ═══════════════════════════════════════════════════════════════════════════════
# Competitive landscape
# ═══════════════════════════════════════════════════════════════════════════════


class MarketLeader(BaseModel):
    name: str
    description: str
    market_share: str | None = None
    strengths: list[str] = Field(min_length=2)
    weaknesses: list[str] = Field(min_length=2)
    threat: Level
    source: str | None = None


class EmergingPlayer(BaseModel):
    name: str
    description: str
    unique_value: str
    funding_status: str | None = None
    threat: Level


class DifferentiationOpportunity(BaseModel):
    area: str
    strategy: str
    impact: str


class CompetitiveAdvantage(BaseModel):
    advantage: str
    sustainability: str
    development_needs: str


class CompetitorLandscape(BaseModel):
    """Output of the competitor scanner node."""

    market_leaders: list[MarketLeader] = Field(min_length=2)
    emerging_players: list[EmergingPlayer] = Field(min_length=1)
    differentiation_opportunities: list[DifferentiationOpportunity] = Field(min_length=3)
    competitive_advantages: list[CompetitiveAdvantage] = Field(min_length=2)
    citations: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0, le=100)
    summary: str = Field(min_length=200)


# ═══════════════════════════════════════════════════════════════════════════════
# Feasibility
# ═══════════════════════════════════════════════════════════════════════════════


class TechnicalFeasibility(BaseModel):
    complexity: Level
    explanation: str
    required_technologies: list[str] = Field(min_length=1)
    development_timeline: str
    technical_risks: list[str] = Field(min_length=1)
    score: float = Field(ge=1, le=10)


class OperationalFeasibility(BaseModel):
    complexity: Level
    explanation: str
    key_requirements: list[str] = Field(min_length=1)
    operational_risks: list[str] = Field(min_length=1)
    score: float = Field(ge=1, le=10)


class FinancialFeasibility(BaseModel):
    startup_costs: str
    monthly_burn_rate: str
    break_even_timeframe: str
    key_assumptions: list[str] = Field(min_length=2)
    score: float = Field(ge=1, le=10)


class RegulatoryFeasibility(BaseModel):
    key_regulations: list[str] = Field(default_factory=list)
    compliance_complexity: Level
    regulatory_risks: list[str] = Field(default_factory=list)
    score: float = Field(ge=1, le=10)


class MarketFeasibility(BaseModel):
    product_market_fit: str
    adoption_barriers: list[str] = Field(min_length=1)
    market_readiness: str
    score: float = Field(ge=1, le=10)


class FeasibilityAssessment(BaseModel):
    """Output of the feasibility evaluator node (10 = highly feasible)."""

    technical: TechnicalFeasibility
    operational: OperationalFeasibility
    financial: FinancialFeasibility
    regulatory: RegulatoryFeasibility
    market: MarketFeasibility
    overall_feasibility_score: float = Field(ge=1, le=10)
    confidence: float = Field(ge=0, le=100)
    summary: str = Field(min_length=200)


# ═══════════════════════════════════════════════════════════════════════════════
# Strategy
# ═══════════════════════════════════════════════════════════════════════════════


class GoToMarket(BaseModel):
    initial_target_segment: str
    value_proposition: str
    channels: list[str] = Field(min_length=3)
    messaging: str
    timeline: str


class CompetitivePositioning(BaseModel):
    positioning_statement: str
    key_differentiators: list[str] = Field(min_length=3)
    messaging_angles: list[str] = Field(min_length=2)


class Monetization(BaseModel):
    recommended_model: str
    pricing_strategy: str
    revenue_streams: list[str] = Field(min_length=2)
    unit_economics: str


class GrowthStrategy(BaseModel):
    customer_acquisition: list[str] = Field(min_length=3)
    retention: list[str] = Field(min_length=2)
    expansion: list[str] = Field(min_length=2)
    key_metrics: list[str] = Field(min_length=3)


class Partnership(BaseModel):
    partner_type: str
    potential_partners: list[str] = Field(min_length=2)
    collaboration_model: str
    strategic_value: str


class StrategyRecommendations(BaseModel):
    """Output of the strategy recommender (synthesis) node."""

    go_to_market: GoToMarket
    competitive_positioning: CompetitivePositioning
    monetization: Monetization
    growth_strategy: GrowthStrategy
    partnerships: list[Partnership] = Field(min_length=2)
    confidence: float = Field(ge=0, le=100)
    summary: str = Field(min_length=300)
