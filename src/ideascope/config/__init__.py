"""Configuration — pydantic-settings models loaded from env vars and YAML."""
