"""Data models shared across the research and analysis pipeline."""
