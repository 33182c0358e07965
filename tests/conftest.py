# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pandas as pd
import pytest

from margin_analyzer.logging.init import reset_logging
from margin_analyzer.models.config_models import AnalyzerSettings
from margin_analyzer.storage import InMemoryAnalysisStore, JsonFileAnalysisStore


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("MARGIN_ANALYZER_STORAGE", raising=False)
        monkeypatch.delenv("MARGIN_ANALYZER_CONFIG", raising=False)
        yield p


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """storage_path: data/analyses.json
max_file_size_mb: 5
max_products: 1000
max_analyses: 50
default_targets: [60, 70]
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "analyzer.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def settings() -> AnalyzerSettings:
    return AnalyzerSettings()


@pytest.fixture()
def memory_store() -> InMemoryAnalysisStore:
    return InMemoryAnalysisStore()


@pytest.fixture()
def json_store(tmp_path: Path) -> JsonFileAnalysisStore:
    return JsonFileAnalysisStore(tmp_path / "store" / "analyses.json")


@pytest.fixture()
def product_rows() -> list[dict[str, object]]:
    """Three rows covering print / pdf / unknown and the three margin buckets."""
    return [
        {"code": "X1/TISK", "name": "Widget", "price": 100, "purchasePrice": 40, "variant:Barva": "red"},
        {"code": "X2/PDF", "name": "Widget ebook", "price": "200", "purchasePrice": "30", "variant:Barva": ""},
        {"code": "X3", "name": "Plain item", "price": "10,00", "purchasePrice": "8", "variant:Barva": "blue"},
    ]


@pytest.fixture()
def make_excel():
    def _make(path: Path, rows: list[dict[str, object]], columns: list[str] | None = None) -> Path:
        pd.DataFrame(rows, columns=columns).to_excel(path, index=False)
        return path
    return _make


@pytest.fixture()
def make_csv():
    def _make(path: Path, rows: list[dict[str, object]], sep: str = ",") -> Path:
        pd.DataFrame(rows).to_csv(path, index=False, sep=sep)
        return path
    return _make
