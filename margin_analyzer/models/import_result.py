from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

"""Import result models.

Aggregated outcome of a multi-file import run, used for the SUMMARY output
line and the CLI exit code.
"""

__all__ = [
    "FileStat",
    "ImportResult",
]


@dataclass(frozen=True)
class FileStat:
    """Per-file import statistics."""
    file_name: str
    status: str  # success/failed
    products: int  # 成功時の商品数
    elapsed_seconds: float
    analysis_id: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class ImportResult:
    """Aggregated results of importing one or more files."""
    success_files: int
    failed_files: int
    total_products: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    file_stats: list[FileStat] | None = None

    @property
    def total_files(self) -> int:
        return self.success_files + self.failed_files
