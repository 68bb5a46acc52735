"""Search provider layer — pluggable web search backends.

Built-in providers:
  - perplexity: Perplexity answer engine citations (required primary)
  - tavily: Tavily web search (optional secondary, feature-flagged)

Implement ``SearchProvider`` to add another backend.
"""
