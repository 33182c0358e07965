from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import fields, replace
from pathlib import Path
from typing import Any

from ..models.analysis import MarginAnalysis

"""Analysis persistence layer.

AnalysisStore is the asynchronous CRUD contract the rest of the application
talks to. Two implementations:

- InMemoryAnalysisStore: ephemeral, for tests and one-shot runs
- JsonFileAnalysisStore: every analysis in one JSON array on disk
"""

__all__ = [
    "StorageError",
    "AnalysisStore",
    "InMemoryAnalysisStore",
    "JsonFileAnalysisStore",
]

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = frozenset(f.name for f in fields(MarginAnalysis)) - {"id"}


class StorageError(Exception):
    """Raised when a persistence operation fails."""


def _newest_first(analyses: list[MarginAnalysis]) -> list[MarginAnalysis]:
    return sorted(analyses, key=lambda a: a.created_at_dt, reverse=True)


def _apply_changes(analysis: MarginAnalysis, changes: dict[str, Any]) -> MarginAnalysis:
    unknown = set(changes) - _UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"cannot update fields: {sorted(unknown)}")
    return replace(analysis, **changes)


class AnalysisStore(ABC):
    """Abstract interface for analysis persistence."""

    @abstractmethod
    async def list_analyses(self) -> list[MarginAnalysis]:
        """All analyses, newest first."""
        ...

    @abstractmethod
    async def get_analysis(self, analysis_id: str) -> MarginAnalysis | None:
        """A single analysis, or None when the id is unknown."""
        ...

    @abstractmethod
    async def save_analysis(self, analysis: MarginAnalysis) -> None:
        """Store a new analysis."""
        ...

    @abstractmethod
    async def delete_analysis(self, analysis_id: str) -> None:
        """Delete by id. Unknown ids are ignored."""
        ...

    @abstractmethod
    async def update_analysis(self, analysis_id: str, **changes: Any) -> None:
        """Replace top-level fields of an analysis. Unknown ids are ignored."""
        ...


class InMemoryAnalysisStore(AnalysisStore):
    """Ephemeral in-memory analysis store."""

    def __init__(self) -> None:
        self._data: dict[str, MarginAnalysis] = {}  # id -> analysis

    async def list_analyses(self) -> list[MarginAnalysis]:
        return _newest_first(list(self._data.values()))

    async def get_analysis(self, analysis_id: str) -> MarginAnalysis | None:
        return self._data.get(analysis_id)

    async def save_analysis(self, analysis: MarginAnalysis) -> None:
        self._data[analysis.id] = analysis

    async def delete_analysis(self, analysis_id: str) -> None:
        self._data.pop(analysis_id, None)

    async def update_analysis(self, analysis_id: str, **changes: Any) -> None:
        current = self._data.get(analysis_id)
        if current is not None:
            self._data[analysis_id] = _apply_changes(current, changes)


class JsonFileAnalysisStore(AnalysisStore):
    """Analyses kept as a single JSON array in ``path``.

    A missing or corrupt file reads as an empty store. Writes go to a
    temporary file first and replace the target atomically. Blocking file I/O
    runs in a worker thread.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    # -- sync helpers -------------------------------------------------------

    def _read_all(self) -> list[MarginAnalysis]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:  # JSONDecodeError, UnicodeDecodeError
            logger.warning(f"store unreadable, treating as empty: {self.path} ({e})")
            return []
        if not isinstance(raw, list):
            logger.warning(f"store root is not a list, treating as empty: {self.path}")
            return []
        analyses: list[MarginAnalysis] = []
        for item in raw:
            try:
                analyses.append(MarginAnalysis.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"skipping malformed analysis record: {e}")
        return analyses

    def _write_all(self, analyses: list[MarginAnalysis]) -> None:
        payload = json.dumps([a.to_dict() for a in analyses], ensure_ascii=False)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as e:
            raise StorageError(f"failed to write store {self.path}: {e}") from e

    def _mutate(self, analysis_id: str, changes: dict[str, Any] | None) -> None:
        analyses = self._read_all()
        updated: list[MarginAnalysis] = []
        found = False
        for a in analyses:
            if a.id != analysis_id:
                updated.append(a)
                continue
            found = True
            if changes is not None:  # None = delete
                updated.append(_apply_changes(a, changes))
        if found:
            self._write_all(updated)

    def _append(self, analysis: MarginAnalysis) -> None:
        analyses = self._read_all()
        analyses.append(analysis)
        self._write_all(analyses)

    # -- async API ----------------------------------------------------------

    async def list_analyses(self) -> list[MarginAnalysis]:
        return _newest_first(await asyncio.to_thread(self._read_all))

    async def get_analysis(self, analysis_id: str) -> MarginAnalysis | None:
        analyses = await asyncio.to_thread(self._read_all)
        return next((a for a in analyses if a.id == analysis_id), None)

    async def save_analysis(self, analysis: MarginAnalysis) -> None:
        await asyncio.to_thread(self._append, analysis)

    async def delete_analysis(self, analysis_id: str) -> None:
        await asyncio.to_thread(self._mutate, analysis_id, None)

    async def update_analysis(self, analysis_id: str, **changes: Any) -> None:
        await asyncio.to_thread(self._mutate, analysis_id, changes)
