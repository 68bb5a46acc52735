"""Normalized idea model — the structured input to the research pipeline."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class NormalizedIdea(BaseModel):
    """A business idea after normalization.

    Field names accept both snake_case and the camelCase spelling used by
    upstream idea normalizers (``targetAudience``, ``keyFeatures``).
    """

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(description="Concise title for the business idea", min_length=1)
    description: str = Field(default="", description="One to three sentence description")
    industry: str = Field(default="", description="Primary industry")
    target_audience: str = Field(default="", alias="targetAudience", description="Primary customer segment")
    key_features: list[str] = Field(
        default_factory=list, alias="keyFeatures", description="Key features or value propositions"
    )
    keywords: list[str] = Field(
        default_factory=list, description="Search keywords; domain-like entries scope the search"
    )

    def to_prompt_block(self) -> str:
        """Render the idea as the ``BUSINESS IDEA`` block used in node prompts."""
        lines = [
            "BUSINESS IDEA:",
            f"Title: {self.title}",
            f"Industry: {self.industry or 'N/A'}",
            f"Target Audience: {self.target_audience or 'N/A'}",
            f"Description: {self.description or 'N/A'}",
        ]
        if self.key_features:
            lines.append(f"Key Features: {', '.join(self.key_features)}")
        return "\n".join(lines)


class IdeaProfile(BaseModel):
    """Structured output of the idea normalizer."""

    title: str = Field(description="A concise title for the business idea (5-10 words)", min_length=1)
    description: str = Field(description="A clear description of the business idea (1-3 sentences)", min_length=1)
    industry: str = Field(description="The primary industry this business operates in", min_length=1)
    target_audience: str = Field(description="The primary target audience or customer segment", min_length=1)
    key_features: list[str] = Field(description="Key features or value propositions", min_length=3, max_length=5)
    keywords: list[str] = Field(
        description="Relevant search keywords for this business idea", min_length=5, max_length=8
    )

    def to_idea(self) -> NormalizedIdea:
        return NormalizedIdea(
            title=self.title.strip(),
            description=self.description.strip(),
            industry=self.industry.strip(),
            target_audience=self.target_audience.strip(),
            key_features=[f.strip() for f in self.key_features if f.strip()],
            keywords=[k.strip() for k in self.keywords if k.strip()],
        )  # type: ignore[call-arg]
