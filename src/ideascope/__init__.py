"""IdeaScope — Evidence-backed business idea validation.

Gathers web evidence for a normalized business idea, condenses it into a
reusable ResearchPack, and runs a battery of LLM analysis nodes over it.
"""

__version__ = "0.1.0"
