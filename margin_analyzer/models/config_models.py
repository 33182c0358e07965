from __future__ import annotations

from dataclasses import dataclass

"""Config dataclasses for the margin analyzer.

Defaults for the import guards:
5 MB per file, 1000 products per analysis, 50 stored analyses.
"""

__all__ = [
    "DEFAULT_STORAGE_PATH",
    "AnalyzerSettings",
]

DEFAULT_STORAGE_PATH = "data/analyses.json"


@dataclass(frozen=True)
class AnalyzerSettings:
    """Root configuration object.

    Environment variables (see config.loader) take precedence over
    storage_path from the YAML file.
    """
    storage_path: str = DEFAULT_STORAGE_PATH
    max_file_size_mb: float = 5
    max_products: int = 1000
    max_analyses: int = 50
    default_targets: tuple[int, ...] = (60, 70)  # whole percent, 0-99
    keep_na_strings: list[str] | None = None  # 指定時のみ pandas 既定 NA (これらを除く) を適用

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)
