"""Document store for ResearchPacks and job status records."""

from ideascope.store.memory import DocumentStore, InMemoryDocumentStore

__all__ = ["DocumentStore", "InMemoryDocumentStore"]
