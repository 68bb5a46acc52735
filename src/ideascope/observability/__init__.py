"""Observability — structured logging and pipeline lifecycle events."""
