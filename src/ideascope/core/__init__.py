"""Core pipeline — research orchestration, analysis nodes and the analysis engine."""
