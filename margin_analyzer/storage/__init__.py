"""Persistence of margin analyses (key-value contract keyed by analysis id)."""

from .analysis_store import AnalysisStore, InMemoryAnalysisStore, JsonFileAnalysisStore, StorageError

__all__ = [
    "AnalysisStore",
    "InMemoryAnalysisStore",
    "JsonFileAnalysisStore",
    "StorageError",
]
